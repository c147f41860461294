# structengine/kernel/solve.py
"""Linear solvers (Jacobi-preconditioned CG, sparse LU) and partitioned solves with reactions."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional

import numpy as np
from scipy.sparse.linalg import splu

from .sparse import as_array, as_csr

logger = logging.getLogger(__name__)


class MechanismError(RuntimeError):
    """Raised when structure is unstable (singular stiffness)."""
    pass


class ConvergenceError(RuntimeError):
    """Raised when iterative solution does not converge."""
    pass


class SolverType(Enum):
    CONJUGATE_GRADIENT = "conjugate-gradient"
    DIRECT_LU = "direct-lu"


class SolverStatus(Enum):
    CONVERGED = "converged"
    MAX_ITERATIONS = "max-iterations"
    BREAKDOWN = "breakdown"
    SINGULAR = "singular"
    NON_FINITE = "non-finite"


@dataclass
class SolveResult:
    """
    Outcome of a linear solve. Failures are reported through `status`,
    never raised.

    residual is the relative residual ‖A·x - b‖ / ‖b‖ (0 for b = 0).
    """
    x: np.ndarray
    status: SolverStatus
    method: SolverType
    iterations: int = 0
    residual: float = 0.0
    message: str = ""

    @property
    def success(self) -> bool:
        return self.status is SolverStatus.CONVERGED


def conjugate_gradient(
    A,
    b,
    x0: Optional[np.ndarray] = None,
    tol: float = 1e-10,
    max_iter: int = 1000,
    preconditioned: bool = True,
) -> SolveResult:
    """
    Solve A·x = b for symmetric positive definite A by (preconditioned) CG.

    Args:
        A: SparseMatrix, scipy sparse matrix or ndarray (n × n)
        b: right-hand side (SparseVector or array-like)
        x0: initial guess (zeros by default)
        tol: relative residual ‖r‖/‖b‖ at which to stop
        max_iter: iteration limit
        preconditioned: Jacobi (diagonal) preconditioner

    Returns:
        SolveResult with status CONVERGED, MAX_ITERATIONS, BREAKDOWN
        (pᵀAp <= 0, A not positive definite) or NON_FINITE.
    """
    A = as_csr(A)
    b = as_array(b)
    n = b.size
    method = SolverType.CONJUGATE_GRADIENT

    b_norm = float(np.linalg.norm(b))
    if n == 0 or b_norm == 0.0:
        return SolveResult(np.zeros(n), SolverStatus.CONVERGED, method, 0, 0.0)

    if preconditioned:
        diag = A.diagonal()
        m_inv = np.ones(n)
        positive = diag > 0
        m_inv[positive] = 1.0 / diag[positive]
    else:
        m_inv = np.ones(n)

    x = np.zeros(n) if x0 is None else np.array(x0, dtype=float)
    r = b - A @ x
    residual = float(np.linalg.norm(r)) / b_norm
    if residual <= tol:
        return SolveResult(x, SolverStatus.CONVERGED, method, 0, residual)

    z = m_inv * r
    p = z.copy()
    rz = float(r @ z)

    for k in range(1, max_iter + 1):
        Ap = A @ p
        pAp = float(p @ Ap)
        if not np.isfinite(pAp):
            return SolveResult(x, SolverStatus.NON_FINITE, method, k, residual,
                               "Non-finite value in CG iteration")
        if pAp <= 0.0:
            return SolveResult(x, SolverStatus.BREAKDOWN, method, k, residual,
                               "Matrix is not positive definite (pᵀAp <= 0)")

        alpha = rz / pAp
        x += alpha * p
        r -= alpha * Ap

        residual = float(np.linalg.norm(r)) / b_norm
        if not np.isfinite(residual):
            return SolveResult(x, SolverStatus.NON_FINITE, method, k, residual,
                               "Non-finite residual in CG iteration")
        if residual <= tol:
            return SolveResult(x, SolverStatus.CONVERGED, method, k, residual)

        z = m_inv * r
        rz_new = float(r @ z)
        p = z + (rz_new / rz) * p
        rz = rz_new

    return SolveResult(
        x, SolverStatus.MAX_ITERATIONS, method, max_iter, residual,
        f"CG did not converge in {max_iter} iterations (residual {residual:.2e}, tol {tol:.0e})",
    )


def lu_solve(A, b, pivot_tolerance: float = 1e-13) -> SolveResult:
    """
    Solve A·x = b by sparse LU factorisation (SuperLU).

    The factorisation is reported SINGULAR when SuperLU finds an exactly
    zero pivot or when min|U_ii| < pivot_tolerance × max|U_ii|.
    """
    A = as_csr(A)
    b = as_array(b)
    n = b.size
    method = SolverType.DIRECT_LU
    if n == 0:
        return SolveResult(np.zeros(0), SolverStatus.CONVERGED, method, 0, 0.0)

    try:
        lu = splu(A.tocsc())
    except RuntimeError as e:
        return SolveResult(np.zeros(n), SolverStatus.SINGULAR, method, 0, np.inf,
                           f"LU factorisation failed: {e}")

    pivots = np.abs(lu.U.diagonal())
    max_pivot = float(pivots.max()) if pivots.size else 0.0
    if max_pivot == 0.0 or float(pivots.min()) < pivot_tolerance * max_pivot:
        return SolveResult(
            np.zeros(n), SolverStatus.SINGULAR, method, 0, np.inf,
            f"Near-zero pivot (min {pivots.min():.3e}, max {max_pivot:.3e}); "
            f"structure is unstable",
        )

    x = lu.solve(b)
    if not np.all(np.isfinite(x)):
        return SolveResult(x, SolverStatus.NON_FINITE, method, 1, np.inf,
                           "Non-finite values in LU solution")

    b_norm = float(np.linalg.norm(b))
    residual = float(np.linalg.norm(A @ x - b)) / b_norm if b_norm > 0 else 0.0
    return SolveResult(x, SolverStatus.CONVERGED, method, 1, residual)


def solve_system(A, b, settings=None) -> SolveResult:
    """
    Solve A·x = b with the solver chosen in `settings` (OptimizationSettings).

    When CG does not converge the system is re-solved by LU and the
    returned message records the fallback. Without settings, LU is used.
    """
    solver = SolverType(getattr(settings, "solver", SolverType.DIRECT_LU))
    pivot_tol = getattr(settings, "lu_pivot_tolerance", 1e-13)

    if solver is SolverType.DIRECT_LU:
        return lu_solve(A, b, pivot_tol)

    result = conjugate_gradient(
        A, b,
        tol=getattr(settings, "cg_tolerance", 1e-10),
        max_iter=getattr(settings, "cg_max_iterations", 1000),
        preconditioned=getattr(settings, "cg_preconditioner", True),
    )
    if result.success:
        logger.debug("CG converged in %d iterations (residual %.2e)",
                     result.iterations, result.residual)
        return result

    logger.warning("CG failed (%s); falling back to LU", result.message or result.status.value)
    fallback = lu_solve(A, b, pivot_tol)
    fallback.message = "; ".join(
        m for m in (f"CG {result.status.value}, LU fallback used", fallback.message) if m
    )
    return fallback


@dataclass
class PartitionedSolution:
    """Full-size displacements and reactions from a partitioned solve."""
    displacements: np.ndarray
    reactions: np.ndarray
    free: np.ndarray
    solve: SolveResult

    @property
    def success(self) -> bool:
        return self.solve.success


def solve_partitioned(
    K,
    F,
    fixed: Iterable[int],
    prescribed: Optional[Dict[int, float]] = None,
    settings=None,
    raise_on_failure: bool = False,
) -> PartitionedSolution:
    """
    Solve K·u = F with restrained and prescribed DOFs via partitioning.

        K_ff·u_f = F_f - K_fc·u_c
        R = K·u - F

    Args:
        K: global stiffness (SparseMatrix, scipy sparse or ndarray)
        F: global load vector
        fixed: DOFs with u = 0
        prescribed: {dof: value} DOFs with a given (non-zero) displacement
        settings: OptimizationSettings for the reduced solve
        raise_on_failure: raise MechanismError (singular) or
            ConvergenceError (other failures) instead of returning a
            failed status

    Returns:
        PartitionedSolution(displacements, reactions, free, solve)
    """
    K = as_csr(K)
    F = as_array(F)
    ndof = F.size
    prescribed = dict(prescribed or {})

    u = np.zeros(ndof)
    constrained = set(i for i in fixed if 0 <= i < ndof)
    for i, value in prescribed.items():
        constrained.add(i)
        u[i] = value

    mask = np.ones(ndof, dtype=bool)
    mask[sorted(constrained)] = False
    free = np.flatnonzero(mask)
    c = np.flatnonzero(~mask)

    if free.size == 0:
        result = SolveResult(np.zeros(0), SolverStatus.CONVERGED,
                             SolverType(getattr(settings, "solver", SolverType.DIRECT_LU)))
    else:
        rhs = F[free]
        if prescribed:
            rhs = rhs - K[free][:, c] @ u[c]
        result = solve_system(K[free][:, free], rhs, settings)

    if not result.success:
        if raise_on_failure:
            if result.status is SolverStatus.SINGULAR:
                raise MechanismError(result.message or "Singular stiffness matrix")
            raise ConvergenceError(result.message or result.status.value)
    else:
        u[free] = result.x

    R = K @ u - F
    return PartitionedSolution(displacements=u, reactions=R, free=free, solve=result)
