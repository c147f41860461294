# structengine/results.py
"""
Analysis result containers.

AnalysisResult carries the static (or last converged) response of the
structure; AdvancedAnalysisResult adds exactly one of the time-history,
pushover, buckling, modal or response spectrum result blocks.

Failures never raise across the engine boundary: they are recorded in
`errors` and `is_valid` is False, with whatever partial data was computed
left in place.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Hashable, List, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class NodeDisplacement:
    node_id: Hashable
    ux: float
    uy: float
    uz: float
    rx: float
    ry: float
    rz: float

    @property
    def translation(self) -> float:
        return float(np.sqrt(self.ux**2 + self.uy**2 + self.uz**2))


@dataclass(frozen=True)
class Reaction:
    node_id: Hashable
    fx: float
    fy: float
    fz: float
    mx: float
    my: float
    mz: float


@dataclass(frozen=True)
class ElementForces:
    """
    Internal forces in LOCAL axes at `position` (0.0 = node i, 1.0 = node j).

    axial > 0 is tension.
    """
    element_id: Hashable
    position: float
    axial: float
    shear_y: float
    shear_z: float
    torsion: float
    moment_y: float
    moment_z: float


@dataclass(frozen=True)
class ElementStress:
    """Extreme-fibre stresses (Pa) at `position`."""
    element_id: Hashable
    position: float
    axial: float
    bending_y: float
    bending_z: float
    shear: float
    torsion: float
    von_mises: float


@dataclass(frozen=True)
class SolverInfo:
    method: str
    status: str
    iterations: int = 0
    residual: float = 0.0
    message: str = ""
    ndof: int = 0
    nnz: int = 0


@dataclass(frozen=True)
class PerformanceInfo:
    """Timing and memory figures, present when profiling is enabled."""
    total_time: float
    memory_usage: Dict[str, float]
    solver_info: Optional[SolverInfo]
    profile: Dict[str, Tuple[int, float]]


@dataclass
class AnalysisResult:
    displacements: List[NodeDisplacement] = field(default_factory=list)
    reactions: List[Reaction] = field(default_factory=list)
    element_forces: List[ElementForces] = field(default_factory=list)
    element_stresses: List[ElementStress] = field(default_factory=list)
    is_valid: bool = True
    max_displacement: float = 0.0
    max_stress: float = 0.0
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    solver_info: Optional[SolverInfo] = None
    performance: Optional[PerformanceInfo] = None
    displacement_vector: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def add_warnings(self, messages) -> None:
        for msg in messages:
            if msg not in self.warnings:
                self.warnings.append(msg)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def displacement_of(self, node_id) -> Optional[NodeDisplacement]:
        for d in self.displacements:
            if d.node_id == node_id:
                return d
        return None


# ----------------------------------------------------------------------
# time-history
# ----------------------------------------------------------------------
class TimeHistoryState(Enum):
    INITIALIZED = "initialized"
    STEPPING = "stepping"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class TimeHistoryResults:
    """
    time_steps: times of the stored snapshots
    displacements/velocities/accelerations: full-size (ndof) vectors at
        those times
    max_*: peak absolute values over ALL computed steps
    """
    time_steps: List[float] = field(default_factory=list)
    displacements: List[np.ndarray] = field(default_factory=list)
    velocities: List[np.ndarray] = field(default_factory=list)
    accelerations: List[np.ndarray] = field(default_factory=list)
    max_displacement: float = 0.0
    max_velocity: float = 0.0
    max_acceleration: float = 0.0
    time_of_max_displacement: float = 0.0
    steps_completed: int = 0
    method: str = "newmark"
    rayleigh_alpha: float = 0.0
    rayleigh_beta: float = 0.0
    state: TimeHistoryState = TimeHistoryState.INITIALIZED


# ----------------------------------------------------------------------
# pushover
# ----------------------------------------------------------------------
class PushoverState(Enum):
    INITIALIZED = "initialized"
    INCREMENTING = "incrementing"
    CONVERGED = "converged"
    DID_NOT_CONVERGE = "did-not-converge"
    ULTIMATE_REACHED = "ultimate-reached"
    CANCELLED = "cancelled"


class YieldCriteria(Enum):
    MATERIAL_STRAIN = "material-strain"
    ELEMENT_ROTATION = "element-rotation"


@dataclass(frozen=True)
class PlasticHinge:
    element_id: Hashable
    end: str            # 'i' or 'j'
    step: int
    control_displacement: float
    moment: float       # resultant bending moment when the hinge formed (N·m)
    rotation: float     # end rotation relative to the chord (rad)
    criterion: YieldCriteria = YieldCriteria.MATERIAL_STRAIN  # strain wins when both limits are exceeded


@dataclass(frozen=True)
class PerformancePoint:
    yield_displacement: float
    yield_base_shear: float
    ultimate_displacement: float
    ultimate_base_shear: float
    ductility: float


@dataclass
class PushoverResults:
    displacements: List[float] = field(default_factory=list)
    base_shears: List[float] = field(default_factory=list)
    plastic_hinges: List[PlasticHinge] = field(default_factory=list)
    performance_point: Optional[PerformancePoint] = None
    steps_completed: int = 0
    state: PushoverState = PushoverState.INITIALIZED

    @property
    def capacity_curve(self) -> Tuple[np.ndarray, np.ndarray]:
        return np.asarray(self.displacements), np.asarray(self.base_shears)


# ----------------------------------------------------------------------
# buckling / modal
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class BucklingMode:
    mode_number: int
    load_factor: float
    buckling_load: float
    mode_shape: np.ndarray


@dataclass
class BucklingResults:
    modes: List[BucklingMode] = field(default_factory=list)
    reference_load: float = 0.0
    critical_load_factor: Optional[float] = None
    critical_buckling_load: Optional[float] = None
    safety_factor: Optional[float] = None


@dataclass
class ModalResults:
    """
    frequencies in Hz, angular_frequencies in rad/s, periods in s.
    mode_shapes has shape (ndof, n_modes), mass-normalised.
    participation_factors / effective_mass are keyed by 'x', 'y', 'z'.
    mobile_mass is the translational mass on the free DOFs per direction:
    the effective masses of all modes add up to it.
    """
    frequencies: np.ndarray = field(default_factory=lambda: np.zeros(0))
    angular_frequencies: np.ndarray = field(default_factory=lambda: np.zeros(0))
    periods: np.ndarray = field(default_factory=lambda: np.zeros(0))
    mode_shapes: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    participation_factors: Dict[str, np.ndarray] = field(default_factory=dict)
    effective_mass: Dict[str, np.ndarray] = field(default_factory=dict)
    total_mass: float = 0.0
    mobile_mass: Dict[str, float] = field(default_factory=dict)


@dataclass
class ResponseSpectrumResults:
    """
    Peak response to a design spectrum.

    Per-mode arrays (periods, spectral_accelerations, ...) have one entry
    per mode; modal_displacements has shape (ndof, n_modes). displacements
    and base_shear are the combined peaks, so they carry no sign.
    """
    direction: str = "x"
    combination: str = "cqc"
    periods: np.ndarray = field(default_factory=lambda: np.zeros(0))
    spectral_accelerations: np.ndarray = field(default_factory=lambda: np.zeros(0))
    participation_factors: np.ndarray = field(default_factory=lambda: np.zeros(0))
    modal_base_shears: np.ndarray = field(default_factory=lambda: np.zeros(0))
    modal_displacements: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    displacements: np.ndarray = field(default_factory=lambda: np.zeros(0))
    base_shear: float = 0.0
    mass_participation: float = 0.0


class AnalysisType(Enum):
    STATIC = "static"
    TIME_HISTORY = "time-history"
    PUSHOVER = "pushover"
    BUCKLING = "buckling"
    MODAL = "modal"
    RESPONSE_SPECTRUM = "response-spectrum"


@dataclass
class AdvancedAnalysisResult(AnalysisResult):
    analysis_type: AnalysisType = AnalysisType.STATIC
    time_history_results: Optional[TimeHistoryResults] = None
    pushover_results: Optional[PushoverResults] = None
    buckling_results: Optional[BucklingResults] = None
    modal_results: Optional[ModalResults] = None
    response_spectrum_results: Optional[ResponseSpectrumResults] = None

    @classmethod
    def from_static(cls, base: AnalysisResult, analysis_type: AnalysisType, **blocks) -> "AdvancedAnalysisResult":
        return cls(
            displacements=base.displacements,
            reactions=base.reactions,
            element_forces=base.element_forces,
            element_stresses=base.element_stresses,
            is_valid=base.is_valid,
            max_displacement=base.max_displacement,
            max_stress=base.max_stress,
            warnings=list(base.warnings),
            errors=list(base.errors),
            solver_info=base.solver_info,
            performance=base.performance,
            displacement_vector=base.displacement_vector,
            analysis_type=analysis_type,
            **blocks,
        )
