# structengine/dynamics.py
"""
DYNAMIC ANALYSIS: Direct Time Integration, Modal and Response Spectrum
======================================================================

Equation of motion on the free DOFs:

    M·ü + C·u̇ + K·u = F(t),     C = α·M + β·K  (Rayleigh)

TIME INTEGRATION:
-----------------
    newmark             average acceleration (β = 1/4, γ = 1/2),
                        unconditionally stable, no numerical damping
    wilson              Wilson-θ (θ = 1.4), unconditionally stable,
                        damps spurious high modes
    central-difference  explicit, stable only for Δt ≤ T_min/π

The implicit methods factorise the effective stiffness once and reuse the
factorisation for every step; the explicit method factorises the effective
mass instead.

MODAL ANALYSIS:
---------------
    K·φ = ω²·M·φ  →  frequencies, periods, mode shapes, participation
                      factors and effective modal masses

RESPONSE SPECTRUM:
------------------
    modal peaks  u_n = Γ_n·φ_n·Sa(T_n)/ω_n²,  V_n = M_eff,n·Sa(T_n)
    combined by SRSS or CQC (Der Kiureghian correlation coefficients)

Global matrices taken from a MatrixPool go back to it when an analysis
returns, whether it succeeded or not.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Tuple

import numpy as np
import scipy.sparse
from scipy.linalg import eigh
from scipy.sparse.linalg import splu
from tqdm import tqdm

from .analysis import LinearSystem, build_linear_system, postprocess
from .config import (
    IntegrationMethod,
    ModalConfig,
    OptimizationSettings,
    ResponseSpectrumConfig,
    TimeHistoryConfig,
)
from .kernel.boundary import free_dofs
from .kernel.dof import DIRECTION_OFFSET, DOFManager
from .kernel.modal import (
    assemble_mass_matrix,
    combine_modal_responses,
    modal_participation,
    natural_frequencies,
    rayleigh_coefficients,
    rayleigh_damping,
    spectral_acceleration,
)
from .kernel.pool import MatrixPool
from .kernel.solve import MechanismError
from .loads import LoadHistoryInterpolator
from .post import node_displacements
from .results import (
    AdvancedAnalysisResult,
    AnalysisType,
    ModalResults,
    ResponseSpectrumResults,
    TimeHistoryResults,
    TimeHistoryState,
)

logger = logging.getLogger(__name__)

NEWMARK_BETA = 0.25
NEWMARK_GAMMA = 0.5
WILSON_THETA = 1.4
MIN_MASS_PARTICIPATION = 0.9


def _factor(A, what: str):
    try:
        return splu(scipy.sparse.csc_matrix(A))
    except RuntimeError as e:
        raise MechanismError(f"{what} is singular: {e}") from None


def integrate(
    K,
    M,
    C,
    load: Callable[[float], np.ndarray],
    dt: float,
    n_steps: int,
    method: IntegrationMethod = IntegrationMethod.NEWMARK,
    u0: Optional[np.ndarray] = None,
    v0: Optional[np.ndarray] = None,
) -> Iterator[Tuple[int, float, np.ndarray, np.ndarray, np.ndarray]]:
    """
    Step the equation of motion M·ü + C·u̇ + K·u = load(t) in time.

    Args:
        K, M, C: (n × n) matrices, scipy sparse or ndarray
        load: t -> load vector (n,)
        dt: time step (s)
        n_steps: number of steps
        method: IntegrationMethod
        u0, v0: initial displacement and velocity (zeros by default)

    Yields:
        (step, t, u, v, a) for step = 0 (initial state) .. n_steps

    Raises:
        MechanismError: singular effective stiffness or mass
    """
    method = IntegrationMethod(method)
    K = scipy.sparse.csr_matrix(K)
    M = scipy.sparse.csr_matrix(M)
    C = scipy.sparse.csr_matrix(C)
    n = K.shape[0]

    u = np.zeros(n) if u0 is None else np.array(u0, dtype=float)
    v = np.zeros(n) if v0 is None else np.array(v0, dtype=float)

    F = load(0.0)
    M_lu = _factor(M, "Mass matrix")
    a = M_lu.solve(F - C @ v - K @ u)
    yield 0, 0.0, u, v, a

    if method is IntegrationMethod.NEWMARK:
        beta, gamma = NEWMARK_BETA, NEWMARK_GAMMA
        a0 = 1.0 / (beta * dt**2)
        a1 = gamma / (beta * dt)
        a2 = 1.0 / (beta * dt)
        a3 = 1.0 / (2.0 * beta) - 1.0
        a4 = gamma / beta - 1.0
        a5 = dt / 2.0 * (gamma / beta - 2.0)
        a6 = dt * (1.0 - gamma)
        a7 = gamma * dt
        K_hat = _factor(K + a0 * M + a1 * C, "Effective stiffness")

        for k in range(1, n_steps + 1):
            t = k * dt
            rhs = load(t) + M @ (a0 * u + a2 * v + a3 * a) + C @ (a1 * u + a4 * v + a5 * a)
            u_new = K_hat.solve(rhs)
            a_new = a0 * (u_new - u) - a2 * v - a3 * a
            v = v + a6 * a + a7 * a_new
            u, a = u_new, a_new
            yield k, t, u, v, a

    elif method is IntegrationMethod.WILSON:
        theta = WILSON_THETA
        tau = theta * dt
        a0 = 6.0 / tau**2
        a1 = 3.0 / tau
        a2 = 2.0 * a1
        a3 = tau / 2.0
        a4 = a0 / theta
        a5 = -a2 / theta
        a6 = 1.0 - 3.0 / theta
        a7 = dt / 2.0
        a8 = dt**2 / 6.0
        K_hat = _factor(K + a0 * M + a1 * C, "Effective stiffness")

        F_prev = F
        for k in range(1, n_steps + 1):
            t = k * dt
            F_next = load(t)
            F_tau = F_prev + theta * (F_next - F_prev)
            rhs = F_tau + M @ (a0 * u + a2 * v + 2.0 * a) + C @ (a1 * u + 2.0 * v + a3 * a)
            u_tau = K_hat.solve(rhs)
            a_new = a4 * (u_tau - u) + a5 * v + a6 * a
            v_new = v + a7 * (a_new + a)
            u = u + dt * v + a8 * (a_new + 2.0 * a)
            v, a, F_prev = v_new, a_new, F_next
            yield k, t, u, v, a

    else:
        a0 = 1.0 / dt**2
        a1 = 1.0 / (2.0 * dt)
        a2 = 2.0 * a0
        a3 = 1.0 / a2
        u_prev = u - dt * v + a3 * a
        M_hat = _factor(a0 * M + a1 * C, "Effective mass")

        for k in range(1, n_steps + 1):
            t = k * dt
            F_n = load(t - dt)
            rhs = F_n - (K - a2 * M) @ u - (a0 * M - a1 * C) @ u_prev
            u_next = M_hat.solve(rhs)
            v = (u_next - u) / dt
            a = M_lu.solve(load(t) - C @ v - K @ u_next)
            u_prev, u = u, u_next
            yield k, t, u, v, a


def _reduce(matrix, free: np.ndarray):
    return matrix.to_csr()[free][:, free]


def _reference_frequencies(system: LinearSystem, M, free, config: TimeHistoryConfig) -> Tuple[float, float]:
    if config.rayleigh_frequencies is not None:
        return config.rayleigh_frequencies
    omega, _ = natural_frequencies(system.K, M, free, n_modes=2)
    positive = omega[omega > 0]
    if positive.size == 0:
        raise ValueError("No positive natural frequency for Rayleigh damping")
    w1 = float(positive[0])
    w2 = float(positive[1]) if positive.size > 1 else w1
    logger.info("Rayleigh damping fitted to w1=%.4g rad/s, w2=%.4g rad/s", w1, w2)
    return w1, w2


@contextmanager
def _pooled(pool: Optional[MatrixPool], settings: OptimizationSettings) -> Iterator[List]:
    """Matrices appended to the yielded list go back to the pool on exit."""
    held: List = []
    try:
        yield held
    finally:
        if pool is not None and settings.memory_optimization:
            for matrix in held:
                pool.release(matrix)


def time_history_analysis(
    structure,
    config: TimeHistoryConfig,
    settings: Optional[OptimizationSettings] = None,
    pool: Optional[MatrixPool] = None,
    cancel_event: Optional[threading.Event] = None,
    show_progress: bool = False,
) -> AdvancedAnalysisResult:
    """
    Linear dynamic response to a time-varying load history.

    Args:
        structure: Structure3D
        config: TimeHistoryConfig
        settings: OptimizationSettings (assembly options)
        pool: MatrixPool for the global matrices
        cancel_event: set it to stop after the current step
        show_progress: tqdm progress bar over the time steps

    Returns:
        AdvancedAnalysisResult(analysis_type=TIME_HISTORY). The static part
        of the result holds the response at the last computed step.
    """
    settings = settings or OptimizationSettings()
    method = config.integration_method
    th = TimeHistoryResults(method=method.value)
    result = AdvancedAnalysisResult(analysis_type=AnalysisType.TIME_HISTORY, time_history_results=th)

    if structure.is_empty:
        result.add_warnings(["Structure has no nodes; nothing to analyze"])
        th.state = TimeHistoryState.COMPLETED
        return result

    n_steps = max(1, int(round(config.total_time / config.time_step)))
    logger.info(
        "Time-history analysis: %s, dt=%g s, %d steps, damping %.1f%%",
        method.value, config.time_step, n_steps, 100.0 * config.damping_ratio,
    )

    with _pooled(pool, settings) as held:
        system = build_linear_system(structure, settings, pool)
        held.append(system.K)
        _step_history(structure, system, config, n_steps, result, held, pool, settings,
                      cancel_event, show_progress)
    return result


def _step_history(structure, system, config, n_steps, result, held, pool, settings,
                  cancel_event, show_progress):
    th = result.time_history_results
    method = config.integration_method
    dt = config.time_step
    result.add_warnings(system.warnings)
    dof = system.dof
    free = free_dofs(dof.ndof, system.restrained)

    if free.size == 0:
        result.add_warnings(["No free DOFs; response is zero"])
        result.displacement_vector = np.zeros(dof.ndof)
        th.state = TimeHistoryState.COMPLETED
        return

    interp = LoadHistoryInterpolator(config.load_history, dof)
    result.add_warnings(interp.warnings)
    if interp.is_empty:
        result.add_warnings(["Load history is empty; response is zero"])

    try:
        M, w = assemble_mass_matrix(
            structure, dof, config.mass_type.value,
            pool=pool if settings.memory_optimization else None,
        )
        held.append(M)
        result.add_warnings(w)

        alpha = beta = 0.0
        if config.damping_ratio > 0.0:
            w1, w2 = _reference_frequencies(system, M, free, config)
            alpha, beta = rayleigh_coefficients(config.damping_ratio, w1, w2)
        th.rayleigh_alpha, th.rayleigh_beta = alpha, beta
        C = rayleigh_damping(system.K, M, alpha, beta)

        Kf, Mf, Cf = _reduce(system.K, free), _reduce(M, free), _reduce(C, free)

        if method is IntegrationMethod.CENTRAL_DIFFERENCE:
            omega_max = float(np.sqrt(max(eigh(
                Kf.toarray(), Mf.toarray(), eigvals_only=True,
                subset_by_index=[free.size - 1, free.size - 1],
            )[0], 0.0)))
            if omega_max > 0 and dt > 2.0 / omega_max:
                msg = (
                    f"Time step {dt:g} s exceeds the central-difference stability "
                    f"limit {2.0 / omega_max:.3e} s (T_min/π); results may diverge"
                )
                result.add_warnings([msg])
                logger.warning(msg)

        steps = integrate(Kf, Mf, Cf, lambda t: interp(t)[free], dt, n_steps, method)
        if show_progress:
            steps = tqdm(steps, total=n_steps + 1, desc="Time history")

        th.state = TimeHistoryState.STEPPING
        u_full = np.zeros(dof.ndof)
        for k, t, u, v, a in steps:
            if not (np.all(np.isfinite(u)) and np.all(np.isfinite(v)) and np.all(np.isfinite(a))):
                th.state = TimeHistoryState.FAILED
                result.add_error(f"Non-finite response at t={t:.6g} s (step {k})")
                break

            u_full = np.zeros(dof.ndof)
            u_full[free] = u
            th.steps_completed = k

            u_max = float(np.max(np.abs(u)))
            if u_max > th.max_displacement:
                th.max_displacement = u_max
                th.time_of_max_displacement = t
            th.max_velocity = max(th.max_velocity, float(np.max(np.abs(v))))
            th.max_acceleration = max(th.max_acceleration, float(np.max(np.abs(a))))

            if k % config.history_interval == 0 or k == n_steps:
                v_full = np.zeros(dof.ndof)
                a_full = np.zeros(dof.ndof)
                v_full[free], a_full[free] = v, a
                th.time_steps.append(t)
                th.displacements.append(u_full)
                th.velocities.append(v_full)
                th.accelerations.append(a_full)

            if cancel_event is not None and cancel_event.is_set() and k < n_steps:
                th.state = TimeHistoryState.CANCELLED
                result.add_error(f"Time-history analysis cancelled at t={t:.6g} s")
                break
        else:
            th.state = TimeHistoryState.COMPLETED

    except (MechanismError, ValueError, np.linalg.LinAlgError) as e:
        th.state = TimeHistoryState.FAILED
        result.add_error(f"Time-history analysis failed: {e}")
        logger.warning("Time-history analysis failed: %s", e)
        result.displacement_vector = np.zeros(dof.ndof)
        return

    postprocess(structure, system, u_full, result)
    logger.info(
        "Time-history analysis %s: %d steps, max |u| = %.4e m at t = %.4g s",
        th.state.value, th.steps_completed, th.max_displacement, th.time_of_max_displacement,
    )


def modal_analysis(
    structure,
    config: Optional[ModalConfig] = None,
    settings: Optional[OptimizationSettings] = None,
    pool: Optional[MatrixPool] = None,
) -> AdvancedAnalysisResult:
    """
    Natural frequencies and mode shapes of the restrained structure.

    Returns:
        AdvancedAnalysisResult(analysis_type=MODAL) with ModalResults;
        mode shapes are full-size (ndof × n_modes).
    """
    config = config or ModalConfig()
    settings = settings or OptimizationSettings()
    modal = ModalResults()
    result = AdvancedAnalysisResult(analysis_type=AnalysisType.MODAL, modal_results=modal)

    if structure.is_empty:
        result.add_warnings(["Structure has no nodes; nothing to analyze"])
        return result

    logger.info("Modal analysis: %d modes, %s mass", config.number_of_modes, config.mass_type.value)
    with _pooled(pool, settings) as held:
        system = build_linear_system(structure, settings, pool)
        held.append(system.K)
        result.add_warnings(system.warnings)
        dof = system.dof
        free = free_dofs(dof.ndof, system.restrained)
        result.displacement_vector = np.zeros(dof.ndof)

        M, w = assemble_mass_matrix(
            structure, dof, config.mass_type.value,
            pool=pool if settings.memory_optimization else None,
        )
        held.append(M)
        result.add_warnings(w)

        r_x = (np.arange(dof.ndof) % 6 == 0).astype(float)
        modal.total_mass = float(r_x @ M.matvec(r_x))
        for direction, offset in DIRECTION_OFFSET.items():
            r = np.zeros(dof.ndof)
            r[free[free % 6 == offset]] = 1.0
            modal.mobile_mass[direction] = float(r @ M.matvec(r))

        if free.size == 0:
            result.add_warnings(["No free DOFs; structure has no vibration modes"])
            return result

        try:
            omega, phi = natural_frequencies(system.K, M, free, config.number_of_modes)
        except (ValueError, np.linalg.LinAlgError) as e:
            result.add_error(f"Modal analysis failed: {e}")
            logger.warning("Modal analysis failed: %s", e)
            return result

        for direction, offset in DIRECTION_OFFSET.items():
            gamma, m_eff = modal_participation(phi, M, free, offset)
            modal.participation_factors[direction] = gamma
            modal.effective_mass[direction] = m_eff

    if omega.size < config.number_of_modes:
        result.add_warnings([
            f"Only {omega.size} modes available ({config.number_of_modes} requested)"
        ])

    shapes = np.zeros((dof.ndof, omega.size))
    shapes[free, :] = phi
    modal.angular_frequencies = omega
    modal.frequencies = omega / (2.0 * np.pi)
    modal.periods = np.array([2.0 * np.pi / w if w > 0 else np.inf for w in omega])
    modal.mode_shapes = shapes

    logger.info(
        "Modal analysis done: f1 = %.4g Hz", modal.frequencies[0] if omega.size else 0.0
    )
    return result


def design_spectrum(
    sds: float,
    sd1: float,
    long_period: float = 6.0,
    max_period: float = 10.0,
    step: float = 0.01,
    g: float = 9.81,
) -> Tuple[Tuple[float, float], ...]:
    """
    Two-parameter design spectrum as (period, Sa) samples, Sa in m/s².

        T ≤ T0          Sa = SDS·(0.4 + 0.6·T/T0)
        T0 < T ≤ Ts     Sa = SDS
        Ts < T ≤ TL     Sa = SD1/T
        T > TL          Sa = SD1·TL/T²

    with Ts = SD1/SDS and T0 = 0.2·Ts. sds and sd1 are in g.
    """
    if sds <= 0 or sd1 <= 0:
        raise ValueError(f"sds and sd1 must be > 0, got {sds}, {sd1}")
    ts = sd1 / sds
    t0 = 0.2 * ts
    periods = np.unique(np.concatenate([
        np.arange(0.0, max_period + 0.5 * step, step), [t0, ts, long_period],
    ]))
    periods = periods[periods <= max_period]

    sa = np.where(
        periods <= t0, sds * (0.4 + 0.6 * periods / t0),
        np.where(
            periods <= ts, sds,
            np.where(periods <= long_period, sd1 / np.maximum(periods, ts),
                     sd1 * long_period / np.maximum(periods, ts)**2),
        ),
    )
    return tuple((float(T), float(g * a)) for T, a in zip(periods, sa))


def response_spectrum_analysis(
    structure,
    config: ResponseSpectrumConfig,
    settings: Optional[OptimizationSettings] = None,
    pool: Optional[MatrixPool] = None,
) -> AdvancedAnalysisResult:
    """
    Peak response to ground shaking described by a design spectrum.

    For every mode n with participation factor Γ_n in the excitation
    direction and spectral acceleration Sa_n = Sa(T_n):

        u_n = Γ_n · φ_n · Sa_n / ω_n²        modal displacements
        V_n = M_eff,n · Sa_n                 modal base shear

    The modal peaks are combined by SRSS or CQC. Combined displacements
    are per-DOF peaks without sign; member forces are not reported.

    Returns:
        AdvancedAnalysisResult(analysis_type=RESPONSE_SPECTRUM). The
        static part holds the combined displacements.
    """
    settings = settings or OptimizationSettings()
    rs = ResponseSpectrumResults(direction=config.direction, combination=config.combination.value)
    result = AdvancedAnalysisResult(
        analysis_type=AnalysisType.RESPONSE_SPECTRUM, response_spectrum_results=rs,
    )

    modes = modal_analysis(
        structure, ModalConfig(config.number_of_modes, config.mass_type), settings, pool,
    )
    result.add_warnings(modes.warnings)
    for message in modes.errors:
        result.add_error(message)
    result.displacement_vector = modes.displacement_vector
    modal = modes.modal_results
    if not modes.is_valid or modal.angular_frequencies.size == 0:
        return result

    keep = modal.angular_frequencies > 0.0
    if not np.all(keep):
        result.add_warnings([f"{int(np.sum(~keep))} zero-frequency mode(s) left out of the combination"])
    omega = modal.angular_frequencies[keep]
    phi = modal.mode_shapes[:, keep]
    gamma = modal.participation_factors[config.direction][keep]
    m_eff = modal.effective_mass[config.direction][keep]

    rs.periods = modal.periods[keep]
    rs.spectral_accelerations = spectral_acceleration(config.spectrum, rs.periods)
    rs.participation_factors = gamma
    rs.modal_base_shears = m_eff * rs.spectral_accelerations
    rs.modal_displacements = phi * (gamma * rs.spectral_accelerations / omega**2)

    method = config.combination.value
    rs.displacements = combine_modal_responses(rs.modal_displacements, omega, method, config.damping_ratio)
    rs.base_shear = float(combine_modal_responses(rs.modal_base_shears, omega, method, config.damping_ratio))

    mobile = modal.mobile_mass.get(config.direction, 0.0)
    rs.mass_participation = float(np.sum(m_eff) / mobile) if mobile > 0 else 0.0
    if rs.mass_participation < MIN_MASS_PARTICIPATION:
        result.add_warnings([
            f"Modes capture {100.0 * rs.mass_participation:.1f}% of the {config.direction}-mass "
            f"(< {100.0 * MIN_MASS_PARTICIPATION:.0f}%); consider more modes"
        ])

    dof = DOFManager.for_structure(structure)
    result.displacement_vector = rs.displacements
    result.displacements = node_displacements(structure, dof, rs.displacements)
    result.max_displacement = max((d.translation for d in result.displacements), default=0.0)

    logger.info(
        "Response spectrum analysis (%s, %s): %d modes, base shear %.4e N, %.1f%% mass",
        config.direction, method, omega.size, rs.base_shear, 100.0 * rs.mass_participation,
    )
    return result
