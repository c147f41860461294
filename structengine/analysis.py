# structengine/analysis.py
"""
STATIC ANALYSIS PIPELINE
========================

    Structure3D
        │  assemble_stiffness      (kernel/assemble.py, elements.py)
        ▼
    K (sparse), element contributions
        │  build_load_vector       (loads.py)
        ▼
    F (sparse)
        │  fixed_dofs + unconnected_dofs, apply_boundary_conditions
        ▼
    K_bc · u = F_bc
        │  solve_system (CG or LU)
        ▼
    u  →  reactions R = K·u - F, member forces, stresses  (post.py)
        ▼
    AnalysisResult

build_linear_system() is shared with the advanced analyses, which need the
same K, F and restraint sets before they start stepping.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Optional, Set

import numpy as np

from .config import OptimizationSettings
from .elements import ElementContribution
from .kernel.assemble import assemble_stiffness
from .kernel.boundary import apply_boundary_conditions, fixed_dofs, unconnected_dofs
from .kernel.dof import DOF_NAMES, DOFManager
from .kernel.pool import MatrixPool
from .kernel.profiling import Profiler
from .kernel.solve import SolveResult, solve_system
from .kernel.sparse import SparseMatrix, SparseVector
from .loads import build_load_vector
from .post import element_stress, internal_forces, node_displacements, support_reactions
from .results import AnalysisResult, PerformanceInfo, SolverInfo

logger = logging.getLogger(__name__)


@dataclass
class LinearSystem:
    """Assembled, not yet restrained, global system of a structure."""
    dof: DOFManager
    K: SparseMatrix
    F: SparseVector
    contributions: List[ElementContribution]
    fixed: List[int]
    unconnected: List[int]
    warnings: List[str] = field(default_factory=list)

    @property
    def restrained(self) -> List[int]:
        """Support DOFs plus DOFs without stiffness."""
        return sorted(set(self.fixed) | set(self.unconnected))


def _describe_dofs(structure, indices: List[int], limit: int = 6) -> str:
    labels = [f"{structure.nodes[i // 6].id!r}.{DOF_NAMES[i % 6]}" for i in indices[:limit]]
    if len(indices) > limit:
        labels.append(f"... ({len(indices) - limit} more)")
    return ", ".join(labels)


def build_linear_system(
    structure,
    settings: Optional[OptimizationSettings] = None,
    pool: Optional[MatrixPool] = None,
    hinges: Optional[Dict[Hashable, Set[int]]] = None,
    profiler: Optional[Profiler] = None,
) -> LinearSystem:
    """
    Assemble K and F and collect the restrained DOFs.

    DOFs with zero stiffness that are not already supported are added to
    `unconnected` with a warning; restraining them keeps K non-singular
    without changing the response of the connected structure.
    """
    settings = settings or OptimizationSettings()
    profiler = profiler or Profiler(enabled=False)
    dof = DOFManager.for_structure(structure)
    warnings = structure.validate()

    with profiler.time("assembly"):
        K, contributions, w = assemble_stiffness(
            structure, dof, workers=settings.workers, hinges=hinges,
            pool=pool if settings.memory_optimization else None,
        )
        warnings.extend(w)
        F, w = build_load_vector(structure, dof)
        warnings.extend(w)

    with profiler.time("boundary-conditions"):
        fixed = fixed_dofs(structure, dof)
        fixed_set = set(fixed)
        unconnected = [i for i in unconnected_dofs(K) if i not in fixed_set]
        if unconnected:
            warnings.append(
                f"{len(unconnected)} DOF(s) have no stiffness and were restrained: "
                f"{_describe_dofs(structure, unconnected)}"
            )

    # duplicates come from per-element default warnings
    unique = list(dict.fromkeys(warnings))
    return LinearSystem(dof, K, F, contributions, fixed, unconnected, unique)


def solver_info(result: SolveResult, ndof: int = 0, nnz: int = 0) -> SolverInfo:
    return SolverInfo(
        method=result.method.value,
        status=result.status.value,
        iterations=result.iterations,
        residual=float(result.residual),
        message=result.message,
        ndof=ndof,
        nnz=nnz,
    )


def postprocess(
    structure,
    system: LinearSystem,
    u: np.ndarray,
    result: AnalysisResult,
) -> AnalysisResult:
    """Fill displacements, reactions, forces and stresses of `result` from u."""
    K, F = system.K, system.F.to_dense()
    R = K.to_csr() @ u - F

    result.displacement_vector = u
    result.displacements = node_displacements(structure, system.dof, u)
    result.reactions = support_reactions(structure, system.dof, R)

    forces, stresses = [], []
    for c in system.contributions:
        if c.is_empty:
            continue
        for f in internal_forces(c, u):
            forces.append(f)
            stresses.append(element_stress(c, f))
    result.element_forces = forces
    result.element_stresses = stresses

    result.max_displacement = max((d.translation for d in result.displacements), default=0.0)
    result.max_stress = max((s.von_mises for s in stresses), default=0.0)
    return result


def analyze_structure(
    structure,
    settings: Optional[OptimizationSettings] = None,
    pool: Optional[MatrixPool] = None,
    profiler: Optional[Profiler] = None,
) -> AnalysisResult:
    """
    Linear static analysis of a 3D frame.

    Args:
        structure: Structure3D (not modified)
        settings: solver and performance options
        pool: MatrixPool used for the global matrices when
            settings.memory_optimization is on
        profiler: Profiler to accumulate stage timings into

    Returns:
        AnalysisResult. Model defects become warnings; an unstable structure
        or a failed solve gives is_valid=False with an error.
    """
    settings = settings or OptimizationSettings()
    if profiler is None:
        profiler = Profiler(enabled=settings.enable_profiling)
    start = time.perf_counter()
    result = AnalysisResult()

    if structure.is_empty:
        result.add_warnings(["Structure has no nodes; nothing to analyze"])
        return result

    logger.info(
        "Static analysis: %d nodes, %d elements, solver=%s",
        len(structure.nodes), len(structure.elements), settings.solver.value,
    )

    system = build_linear_system(structure, settings, pool, profiler=profiler)
    result.add_warnings(system.warnings)
    for msg in system.warnings:
        logger.warning(msg)

    with profiler.time("boundary-conditions"):
        K_bc, F_bc = apply_boundary_conditions(system.K, system.F, system.restrained)

    with profiler.time("solve"):
        solve = solve_system(K_bc, F_bc, settings)
    result.solver_info = solver_info(solve, system.dof.ndof, system.K.nnz)
    if solve.message and solve.success:
        result.add_warnings([solve.message])

    if solve.success:
        with profiler.time("post-processing"):
            postprocess(structure, system, solve.x, result)
        logger.info(
            "Static analysis done: max displacement %.4e m, max stress %.4e Pa",
            result.max_displacement, result.max_stress,
        )
    else:
        result.add_error(f"Solve failed ({solve.status.value}): {solve.message}")
        result.displacement_vector = np.zeros(system.dof.ndof)
        logger.warning("Static analysis failed: %s", solve.message)

    if settings.enable_profiling:
        usage = system.K.memory_usage()
        result.performance = PerformanceInfo(
            total_time=time.perf_counter() - start,
            memory_usage={
                "stiffness_bytes": usage.bytes,
                "dense_bytes": usage.dense_bytes,
                "compression_ratio": usage.compression_ratio,
            },
            solver_info=result.solver_info,
            profile={name: (s.count, s.total_time) for name, s in profiler.stats().items()},
        )

    if pool is not None and settings.memory_optimization:
        pool.release(K_bc)
        pool.release(system.K)
    return result
