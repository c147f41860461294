# structengine/config.py
"""
Analysis configuration objects.

All configs are frozen dataclasses validated in __post_init__. A bad value
raises ConfigurationError (a ValueError) at construction time, so an
analysis never starts with an invalid configuration. Enum fields accept
either the enum member or its string value.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Hashable, Optional, Tuple

from .kernel.solve import SolverType
from .loads import DirectionalLoad, LoadHistoryEntry


class ConfigurationError(ValueError):
    """Raised when an analysis configuration is invalid."""
    pass


class IntegrationMethod(Enum):
    NEWMARK = "newmark"
    WILSON = "wilson"
    CENTRAL_DIFFERENCE = "central-difference"


class MassType(Enum):
    LUMPED = "lumped"
    CONSISTENT = "consistent"


class ModalCombination(Enum):
    SRSS = "srss"
    CQC = "cqc"


def _coerce_enum(cfg, name: str, enum_cls):
    value = getattr(cfg, name)
    if isinstance(value, enum_cls):
        return
    try:
        object.__setattr__(cfg, name, enum_cls(value))
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(
            f"{name}={value!r} is not one of: {allowed}"
        ) from None


def _require_positive(name: str, value, allow_zero: bool = False):
    if value is None:
        raise ConfigurationError(f"{name} is required")
    if allow_zero and value < 0:
        raise ConfigurationError(f"{name} must be >= 0, got {value}")
    if not allow_zero and value <= 0:
        raise ConfigurationError(f"{name} must be > 0, got {value}")


def _require_fraction(name: str, value, allow_zero: bool = False):
    _require_positive(name, value, allow_zero=allow_zero)
    if value >= 1:
        raise ConfigurationError(f"{name} must be < 1, got {value}")


def _require_direction(name: str, value: str):
    if value not in ("x", "y", "z"):
        raise ConfigurationError(f"{name} must be 'x', 'y' or 'z', got {value!r}")


@dataclass(frozen=True)
class OptimizationSettings:
    """
    Solver and performance settings shared by every analysis.

    Attributes:
    -----------
    solver : SolverType
        CONJUGATE_GRADIENT (iterative, default) or DIRECT_LU
    cg_tolerance : float
        Relative residual ‖r‖/‖b‖ at which CG stops
    cg_max_iterations : int
    cg_preconditioner : bool
        Jacobi (diagonal) preconditioning for CG
    lu_pivot_tolerance : float
        LU reports "singular" when min|pivot| < tol × max|pivot|
    memory_optimization : bool
        Reuse matrices through the engine's MatrixPool
    enable_profiling : bool
        Attach timing information to the static result
    workers : int
        Threads used to compute element matrices (1 = serial)
    """
    solver: SolverType = SolverType.CONJUGATE_GRADIENT
    cg_tolerance: float = 1e-10
    cg_max_iterations: int = 1000
    cg_preconditioner: bool = True
    lu_pivot_tolerance: float = 1e-13
    memory_optimization: bool = True
    enable_profiling: bool = False
    workers: int = 1

    def __post_init__(self):
        _coerce_enum(self, "solver", SolverType)
        _require_fraction("cg_tolerance", self.cg_tolerance)
        _require_positive("cg_max_iterations", self.cg_max_iterations)
        _require_fraction("lu_pivot_tolerance", self.lu_pivot_tolerance, allow_zero=True)
        _require_positive("workers", self.workers)


@dataclass(frozen=True)
class TimeHistoryConfig:
    """
    Time-history (direct integration) settings.

    load_history is a sequence of LoadHistoryEntry(time, loads) samples;
    loads between samples are linearly interpolated. rayleigh_frequencies
    (rad/s) default to the first two natural frequencies of the structure.
    """
    time_step: float = 0.01
    total_time: float = 1.0
    damping_ratio: float = 0.05
    integration_method: IntegrationMethod = IntegrationMethod.NEWMARK
    load_history: Tuple[LoadHistoryEntry, ...] = ()
    mass_type: MassType = MassType.LUMPED
    rayleigh_frequencies: Optional[Tuple[float, float]] = None
    history_interval: int = 10

    def __post_init__(self):
        _coerce_enum(self, "integration_method", IntegrationMethod)
        _coerce_enum(self, "mass_type", MassType)
        _require_positive("time_step", self.time_step)
        _require_positive("total_time", self.total_time)
        _require_positive("damping_ratio", self.damping_ratio, allow_zero=True)
        _require_positive("history_interval", self.history_interval)
        if self.time_step > self.total_time:
            raise ConfigurationError(
                f"time_step ({self.time_step}) exceeds total_time ({self.total_time})"
            )
        object.__setattr__(self, "load_history", tuple(self.load_history))
        if self.rayleigh_frequencies is not None:
            freqs = tuple(float(w) for w in self.rayleigh_frequencies)
            if len(freqs) != 2 or min(freqs) <= 0:
                raise ConfigurationError(
                    "rayleigh_frequencies must be two positive angular frequencies"
                )
            object.__setattr__(self, "rayleigh_frequencies", freqs)


@dataclass(frozen=True)
class PushoverConfig:
    """
    Displacement-controlled pushover settings.

    The control node's DOF along control_direction is pushed to
    max_displacement in increment_steps equal increments. An element end
    hinges as soon as it passes material_strain_limit (extreme-fibre
    strain) or element_rotation_limit (rad, relative to the chord).
    """
    control_node: Hashable = None
    control_direction: str = "x"
    max_displacement: float = 0.1
    increment_steps: int = 50
    convergence_tolerance: float = 1e-3
    material_strain_limit: float = 0.002
    element_rotation_limit: float = 0.02
    max_iterations: int = 20
    vertical_direction: str = "y"

    def __post_init__(self):
        if self.control_node is None:
            raise ConfigurationError("control_node is required")
        _require_direction("control_direction", self.control_direction)
        _require_direction("vertical_direction", self.vertical_direction)
        if self.max_displacement == 0:
            raise ConfigurationError("max_displacement must be non-zero")
        _require_positive("increment_steps", self.increment_steps)
        _require_fraction("convergence_tolerance", self.convergence_tolerance)
        _require_positive("material_strain_limit", self.material_strain_limit)
        _require_positive("element_rotation_limit", self.element_rotation_limit)
        _require_positive("max_iterations", self.max_iterations)


@dataclass(frozen=True)
class BucklingConfig:
    """
    Linear buckling settings.

    load_pattern is the reference load (DirectionalLoad list). When empty,
    the structure's own point and nodal loads are used.
    """
    number_of_modes: int = 1
    shift_value: Optional[float] = None
    include_geometric_stiffness: bool = True
    load_pattern: Tuple[DirectionalLoad, ...] = ()

    def __post_init__(self):
        _require_positive("number_of_modes", self.number_of_modes)
        object.__setattr__(self, "load_pattern", tuple(self.load_pattern))


@dataclass(frozen=True)
class ModalConfig:
    number_of_modes: int = 6
    mass_type: MassType = MassType.LUMPED

    def __post_init__(self):
        _coerce_enum(self, "mass_type", MassType)
        _require_positive("number_of_modes", self.number_of_modes)


@dataclass(frozen=True)
class ResponseSpectrumConfig:
    """
    Modal response spectrum settings.

    Attributes:
    -----------
    spectrum : tuple of (period, Sa)
        Design spectrum samples, period in s and spectral acceleration in
        m/s². Sa is interpolated linearly between samples and held at the
        end values outside them. Samples are sorted by period.
    direction : str
        Direction of the ground excitation ('x', 'y' or 'z')
    number_of_modes : int
    damping_ratio : float
        Modal damping, used by the CQC correlation coefficients
    combination : ModalCombination
        SRSS or CQC (default)
    mass_type : MassType
    """
    spectrum: Tuple[Tuple[float, float], ...] = ()
    direction: str = "x"
    number_of_modes: int = 6
    damping_ratio: float = 0.05
    combination: ModalCombination = ModalCombination.CQC
    mass_type: MassType = MassType.LUMPED

    def __post_init__(self):
        _coerce_enum(self, "combination", ModalCombination)
        _coerce_enum(self, "mass_type", MassType)
        _require_direction("direction", self.direction)
        _require_positive("number_of_modes", self.number_of_modes)
        _require_fraction("damping_ratio", self.damping_ratio, allow_zero=True)

        try:
            points = sorted((float(T), float(sa)) for T, sa in self.spectrum)
        except (TypeError, ValueError):
            raise ConfigurationError("spectrum must be a sequence of (period, Sa) pairs") from None
        if not points:
            raise ConfigurationError("spectrum needs at least one (period, Sa) sample")
        if points[0][0] < 0:
            raise ConfigurationError(f"spectrum periods must be >= 0, got {points[0][0]}")
        if any(sa < 0 for _, sa in points):
            raise ConfigurationError("spectral accelerations must be >= 0")
        object.__setattr__(self, "spectrum", tuple(points))
