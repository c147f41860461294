# structengine/stability.py
"""
LINEAR BUCKLING ANALYSIS
========================

1. Solve the structure under the reference load pattern P_ref.
2. Take the member axial forces N from that solution and assemble the
   geometric stiffness Kg(N).
3. Find the load factors λ with (K + λ·Kg)·φ = 0.

The critical load factor λ_cr is the smallest positive λ: the reference
loads multiplied by λ_cr make the structure unstable. With the
structure's design loads as reference, λ_cr is also the safety factor
against elastic buckling.
"""

import logging
from dataclasses import replace
from typing import Optional

import numpy as np

from .analysis import build_linear_system, postprocess, solver_info
from .config import BucklingConfig, OptimizationSettings
from .kernel.buckling import assemble_geometric_stiffness, buckling_eigenproblem
from .kernel.pool import MatrixPool
from .kernel.solve import solve_partitioned
from .loads import directional_load_vector
from .post import axial_forces
from .results import AdvancedAnalysisResult, AnalysisType, BucklingMode, BucklingResults

logger = logging.getLogger(__name__)


def buckling_analysis(
    structure,
    config: Optional[BucklingConfig] = None,
    settings: Optional[OptimizationSettings] = None,
    pool: Optional[MatrixPool] = None,
) -> AdvancedAnalysisResult:
    """
    Linear (eigenvalue) buckling analysis.

    Args:
        structure: Structure3D
        config: BucklingConfig; config.load_pattern is the reference load,
            the structure's own loads are used when it is empty
        settings: solver options for the reference solve
        pool: MatrixPool for the global stiffness

    Returns:
        AdvancedAnalysisResult(analysis_type=BUCKLING). The static part
        holds the response to the reference load.
    """
    config = config or BucklingConfig()
    settings = settings or OptimizationSettings()
    buckling = BucklingResults()
    result = AdvancedAnalysisResult(analysis_type=AnalysisType.BUCKLING, buckling_results=buckling)

    if structure.is_empty:
        result.add_warnings(["Structure has no nodes; nothing to analyze"])
        return result

    system = build_linear_system(structure, settings, pool)
    try:
        _solve_buckling(structure, system, config, settings, result)
    finally:
        if pool is not None and settings.memory_optimization:
            pool.release(system.K)
    return result


def reference_load_magnitude(F: np.ndarray) -> float:
    """Σ|F| over the translational DOFs (applied moments excluded)."""
    translational = np.arange(F.size) % 6 < 3
    return float(np.sum(np.abs(F[translational])))


def _solve_buckling(structure, system, config, settings, result):
    buckling = result.buckling_results
    result.add_warnings(system.warnings)
    if config.load_pattern:
        F, w = directional_load_vector(config.load_pattern, system.dof)
        result.add_warnings(w)
        system = replace(system, F=F)

    reference = system.F.to_dense()
    buckling.reference_load = reference_load_magnitude(reference)
    if not np.any(reference):
        result.displacement_vector = np.zeros(system.dof.ndof)
        result.add_warnings(["Reference load is zero; no buckling modes computed"])
        return

    sol = solve_partitioned(system.K, reference, system.restrained, settings=settings)
    result.solver_info = solver_info(sol.solve, system.dof.ndof, system.K.nnz)
    if not sol.success:
        result.displacement_vector = np.zeros(system.dof.ndof)
        result.add_error(f"Reference solve failed ({sol.solve.status.value}): {sol.solve.message}")
        return
    postprocess(structure, system, sol.displacements, result)

    if not config.include_geometric_stiffness:
        result.add_warnings(["Geometric stiffness disabled; no buckling modes computed"])
        return

    N = axial_forces(system.contributions, sol.displacements)
    Kg = assemble_geometric_stiffness(system.dof.ndof, system.contributions, N)

    shift = config.shift_value if config.shift_value is not None else 0.0
    try:
        load_factors, phi = buckling_eigenproblem(
            system.K, Kg, sol.free, config.number_of_modes, shift=shift,
        )
    except (ValueError, np.linalg.LinAlgError) as e:
        result.add_error(f"Buckling eigenproblem failed: {e}")
        return

    if load_factors.size == 0:
        result.add_warnings(["No member is in compression under the reference load; no buckling modes"])
        return
    if load_factors.size < config.number_of_modes:
        result.add_warnings([
            f"Only {load_factors.size} buckling mode(s) found, {config.number_of_modes} requested"
        ])

    for k, lam in enumerate(load_factors):
        shape = np.zeros(system.dof.ndof)
        shape[sol.free] = phi[:, k]
        buckling.modes.append(BucklingMode(
            mode_number=k + 1,
            load_factor=float(lam),
            buckling_load=float(lam) * buckling.reference_load,
            mode_shape=shape,
        ))

    critical = buckling.modes[0]
    buckling.critical_load_factor = critical.load_factor
    buckling.critical_buckling_load = critical.buckling_load
    buckling.safety_factor = critical.load_factor
    if critical.load_factor < 1.0:
        message = (
            f"Critical load factor {critical.load_factor:.4g} is below 1: "
            f"the structure buckles under the reference load"
        )
        result.add_warnings([message])
        logger.warning(message)
    logger.info(
        "Buckling analysis: λ_cr = %.4g (P_cr = %.4e N), %d mode(s)",
        critical.load_factor, critical.buckling_load, len(buckling.modes),
    )
