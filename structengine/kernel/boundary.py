# structengine/kernel/boundary.py
"""
BOUNDARY CONDITIONS: Support Restraints on the Global System
============================================================

Two ways of enforcing u = 0 at a support are used in this package:

1. ELIMINATION IN PLACE (apply_boundary_conditions)
   Clear the row and column of every fixed DOF, put 1 on the diagonal
   and 0 in F. The system keeps its size and stays symmetric, and the
   solution is exactly 0 at the fixed DOFs:

       [ K_ff  0 ] [u_f]   [F_f]
       [  0    I ] [u_s] = [ 0 ]

2. PARTITIONING (free_dofs + kernel.solve.solve_partitioned)
   Solve only on the free DOFs and recover reactions as R = K·u - F.
   Used wherever reactions or prescribed displacements are needed.

Both functions here return NEW objects; the inputs are left untouched.
"""

from typing import Iterable, List, Tuple

import numpy as np

from .dof import DOFManager
from .sparse import SparseMatrix, SparseVector

# diagonal entries below this fraction of the largest one count as unconnected
UNCONNECTED_RTOL = 1e-12


def fixed_dofs(structure, dof: DOFManager) -> List[int]:
    """
    Global indices of every DOF restrained by a node support, sorted.

    Duplicate node ids are ignored after their first occurrence, matching
    Structure3D.node_index().
    """
    fixed = set()
    for position in dof.node_index.values():
        node = structure.nodes[position]
        base = dof.dof_per_node * position
        fixed.update(base + offset for offset in node.supports.fixed_offsets())
    return sorted(fixed)


def unconnected_dofs(K: SparseMatrix, rtol: float = UNCONNECTED_RTOL) -> List[int]:
    """
    DOFs with no stiffness at all (zero diagonal).

    Typical causes: a free node no element connects to, rotations at a
    node where every element is pinned, torsion in a truss-only joint.
    Left in the system they make K singular.
    """
    diag = np.abs(K.diagonal())
    if diag.size == 0:
        return []
    threshold = rtol * diag.max() if diag.max() > 0 else 0.0
    return [int(i) for i in np.flatnonzero(diag <= threshold)]


def free_dofs(ndof: int, fixed: Iterable[int]) -> np.ndarray:
    """Complement of `fixed` in range(ndof), ascending."""
    mask = np.ones(ndof, dtype=bool)
    fixed = [i for i in fixed if 0 <= i < ndof]
    mask[fixed] = False
    return np.flatnonzero(mask)


def apply_boundary_conditions(
    K: SparseMatrix,
    F: SparseVector,
    fixed: Iterable[int],
) -> Tuple[SparseMatrix, SparseVector]:
    """
    Enforce zero displacement at the fixed DOFs.

    For each fixed DOF i: row i and column i are cleared, K[i, i] = 1 and
    F[i] = 0. Applying it twice gives the same result as applying it once.

    Parameters:
    -----------
    K : SparseMatrix
        Global stiffness (not modified)
    F : SparseVector
        Global load vector (not modified)
    fixed : iterable of int
        Restrained DOF indices; out-of-range indices are ignored

    Returns:
    --------
    (K_bc, F_bc) : new SparseMatrix and SparseVector
    """
    idx = sorted({i for i in fixed if 0 <= i < K.rows})
    K_bc = K.copy()
    F_bc = F.copy()
    K_bc.clear_rows_and_columns(idx)
    for i in idx:
        K_bc.set(i, i, 1.0)
        F_bc.set(i, 0.0)
    return K_bc, F_bc
