# structengine/kernel - Sparse linear-algebra core
"""
KERNEL: SPARSE STORAGE, DOF NUMBERING AND LINEAR SOLVERS
========================================================

Everything here works on plain index spaces: a DOF is an integer
(node position × 6 + offset), a matrix is a SparseMatrix or anything
scipy.sparse accepts. Element formulation and model types live one level
up; the assembly, mass, buckling and boundary modules of this package
import them on demand.

    sparse.py      dict-of-keys SparseMatrix / SparseVector
    pool.py        MatrixPool free lists (clear-before-reuse)
    dof.py         DOFManager, DOF offsets
    profiling.py   Profiler
    solve.py       CG, LU, partitioned solves with reactions
    assemble.py    global K/F assembly
    boundary.py    restraint application
    modal.py       mass matrices, Rayleigh damping, eigenmodes, SRSS/CQC
    buckling.py    geometric stiffness, buckling eigenproblem
"""

from .sparse import SparseMatrix, SparseVector
from .pool import MatrixPool
from .dof import DOFManager
from .profiling import Profiler
from .solve import (
    ConvergenceError,
    MechanismError,
    SolverStatus,
    SolverType,
    solve_partitioned,
    solve_system,
)

__all__ = [
    'SparseMatrix', 'SparseVector', 'MatrixPool', 'DOFManager', 'Profiler',
    'ConvergenceError', 'MechanismError', 'SolverStatus', 'SolverType',
    'solve_partitioned', 'solve_system',
]
