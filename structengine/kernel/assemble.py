# structengine/kernel/assemble.py
"""
ASSEMBLY: Sparse Global Matrix Assembly
=======================================

PURPOSE:
--------
Scatter-add of element contributions into the global sparse matrices.

    for each element:
        for each (a, b) in ke:
            K[dof_map[a], dof_map[b]] += ke[a, b]

The assembler only needs a DOF map and a matrix per element; it does not
care how the element matrix was formed. Entries shared by elements meeting
at a node accumulate, which is why SparseMatrix.add() is used instead of
set().

PARALLELISM:
------------
Element matrices are independent of each other, so computing them can be
spread over a thread pool (workers > 1). The scatter-add itself stays
serial: SparseMatrix is not thread-safe and the accumulation order must not
depend on thread scheduling.

USAGE:
------
    dof = DOFManager.for_structure(structure)
    contributions = compute_element_contributions(structure, dof)
    K = assemble_global_K(dof.ndof, [(c.dof_map, c.k_global) for c in contributions])
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Hashable, Iterable, List, Optional, Set, Tuple

import numpy as np

from ..elements import ElementContribution, element_contribution
from .dof import DOFManager
from .pool import MatrixPool
from .sparse import SparseMatrix, SparseVector

logger = logging.getLogger(__name__)


def assemble_global_K(
    ndof: int,
    contributions: Iterable[Tuple[List[int], np.ndarray]],
    pool: Optional[MatrixPool] = None,
) -> SparseMatrix:
    """
    Assemble a global sparse matrix from element contributions.

    Used for stiffness, mass and geometric stiffness alike.

    Parameters:
    -----------
    ndof : int
        Total number of DOFs (6 × n_nodes)
    contributions : iterable of (dof_map, ke)
        dof_map: global DOF indices of the element
        ke: element matrix in global coordinates, shape (len(dof_map), len(dof_map))
        Contributions with an empty dof_map are skipped.
    pool : MatrixPool, optional
        Source of the output buffer

    Returns:
    --------
    SparseMatrix
        Shape (ndof, ndof); symmetric when every ke is symmetric
    """
    K = pool.acquire_matrix(ndof, ndof) if pool is not None else SparseMatrix(ndof, ndof)

    for dof_map, ke in contributions:
        n_element_dofs = len(dof_map)
        if n_element_dofs == 0:
            continue

        assert ke.shape == (n_element_dofs, n_element_dofs), \
            f"Element ke shape {ke.shape} doesn't match dof_map length {n_element_dofs}"

        for a in range(n_element_dofs):
            ia = dof_map[a]
            for b in range(n_element_dofs):
                value = ke[a, b]
                if value != 0.0:
                    K.add(ia, dof_map[b], value)

    return K


def assemble_global_F(
    ndof: int,
    contributions: Iterable[Tuple[List[int], np.ndarray]],
) -> SparseVector:
    """
    Assemble a global load vector from (dof_map, fe) contributions.
    """
    F = SparseVector(ndof)
    for dof_map, fe in contributions:
        n_element_dofs = len(dof_map)
        if n_element_dofs == 0:
            continue
        assert fe.shape == (n_element_dofs,), \
            f"Element fe shape {fe.shape} doesn't match dof_map length {n_element_dofs}"
        for a in range(n_element_dofs):
            F.add(dof_map[a], fe[a])
    return F


def add_nodal_load(
    F: SparseVector,
    dof: DOFManager,
    node_id: Hashable,
    load_vector: Iterable[float],
) -> None:
    """
    Add a nodal load [Fx, Fy, Fz, Mx, My, Mz] (or a prefix of it) to F in place.
    """
    base = dof.idx(node_id, 0)
    for i, val in enumerate(load_vector):
        if val:
            F.add(base + i, val)


def compute_element_contributions(
    structure,
    dof: DOFManager,
    workers: int = 1,
    hinges: Optional[Dict[Hashable, Set[int]]] = None,
) -> List[ElementContribution]:
    """
    Element stiffness contributions, in element order.

    Parameters:
    -----------
    structure : Structure3D
    dof : DOFManager
    workers : int
        Number of threads; 1 computes serially
    hinges : dict, optional
        element id -> set of extra released local DOF indices

    Returns:
    --------
    List[ElementContribution]
        One per element, empty ones included (they carry the warning)
    """
    hinges = hinges or {}

    def _one(element):
        return element_contribution(structure, element, dof, hinges.get(element.id, ()))

    elements = list(structure.elements)
    if workers > 1 and len(elements) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(_one, elements))
    return [_one(element) for element in elements]


def assemble_stiffness(
    structure,
    dof: DOFManager,
    workers: int = 1,
    hinges: Optional[Dict[Hashable, Set[int]]] = None,
    pool: Optional[MatrixPool] = None,
) -> Tuple[SparseMatrix, List[ElementContribution], List[str]]:
    """
    Compute element contributions and assemble the global stiffness matrix.

    Returns:
        (K, contributions, warnings)
    """
    contributions = compute_element_contributions(structure, dof, workers, hinges)
    warnings: List[str] = []
    for c in contributions:
        warnings.extend(c.warnings)

    K = assemble_global_K(
        dof.ndof, ((c.dof_map, c.k_global) for c in contributions), pool=pool
    )
    logger.debug(
        "Assembled K: %d DOFs, %d nonzeros from %d elements",
        dof.ndof, K.nnz, len(contributions),
    )
    return K, contributions, warnings
