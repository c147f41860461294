# structengine/pushover.py
"""
PUSHOVER ANALYSIS: Displacement-Controlled Event-to-Event Procedure
===================================================================

The control DOF (control_node, control_direction) is pushed to
max_displacement in equal increments. Each increment is solved on the
current tangent stiffness by prescribing the control displacement:

    K_t·Δu = 0  with  Δu[control] = Δ      (partitioned solve)

Member end forces and reactions are accumulated increment by increment.

PLASTIC HINGES:
---------------
Elastic-perfectly-plastic hinges form at element ends when either

    material-strain:   |N|/(EA) + |My|/(E·Sy) + |Mz|/(E·Sz) > ε_limit
    element-rotation:  end rotation relative to the chord  > θ_limit

Both limits are checked on every run; PlasticHinge.criterion records
which one triggered (strain when both are exceeded). A hinge releases
both bending rotations at that end for every later
solve: its moments stay at the values they had when it formed. When new
hinges form, the current increment is solved again on the updated
tangent.

TERMINATION:
------------
    converged          all increments applied
    ultimate-reached   base shear dropped more than 20 % below the previous
                       point, or the hinges turned the structure into a
                       mechanism (singular tangent)
    did-not-converge   the first tangent is already singular
    cancelled          cancel_event was set

The capacity curve (|control displacement|, |base shear|) is idealised by
an equal-energy bilinear curve to get the yield point and the ductility.
"""

import logging
import threading
from typing import Dict, Hashable, List, Optional, Set, Tuple

import numpy as np
from tqdm import tqdm

from .config import OptimizationSettings, PushoverConfig
from .elements import ElementContribution
from .kernel.assemble import assemble_stiffness
from .kernel.boundary import fixed_dofs, unconnected_dofs
from .kernel.dof import DIRECTION_OFFSET, DOFManager
from .kernel.pool import MatrixPool
from .kernel.solve import ConvergenceError, MechanismError, solve_partitioned
from .post import element_local_displacements, element_stress, node_displacements, support_reactions
from .results import (
    AdvancedAnalysisResult,
    AnalysisType,
    ElementForces,
    PerformancePoint,
    PlasticHinge,
    PushoverResults,
    PushoverState,
    YieldCriteria,
)

logger = logging.getLogger(__name__)

ULTIMATE_DROP = 0.2
HINGE_DOFS = {"i": (4, 5), "j": (10, 11)}


def _end_forces(f: np.ndarray, end: str) -> Tuple[float, float, float]:
    base = 0 if end == "i" else 6
    return f[base], f[base + 4], f[base + 5]


def _chord_rotation(c: ElementContribution, u: np.ndarray, end: str) -> float:
    """Bending rotation at one end relative to the member chord (rad)."""
    d = element_local_displacements(c, u)
    chord_z = (d[7] - d[1]) / c.length
    chord_y = -(d[8] - d[2]) / c.length
    base = 0 if end == "i" else 6
    return float(np.hypot(d[base + 5] - chord_z, d[base + 4] - chord_y))


def _strain(c: ElementContribution, f: np.ndarray, end: str) -> float:
    N, My, Mz = _end_forces(f, end)
    E, p = c.material.E, c.props
    return abs(N) / (E * p.area) + abs(My) / (E * p.sy) + abs(Mz) / (E * p.sz)


def _detect_hinges(
    contributions: List[ElementContribution],
    forces: Dict[Hashable, np.ndarray],
    u: np.ndarray,
    hinges: Dict[Hashable, Set[int]],
    config: PushoverConfig,
) -> List[Tuple[ElementContribution, str, float, float, YieldCriteria]]:
    """(contribution, end, moment, rotation, criterion) for every end that yields now."""
    found = []
    for c in contributions:
        if c.is_empty:
            continue
        released = hinges.get(c.element_id, set()) | set(c.released)
        f = forces[c.element_id]
        for end, dofs in HINGE_DOFS.items():
            if set(dofs) <= released:
                continue
            rotation = _chord_rotation(c, u, end)
            if _strain(c, f, end) > config.material_strain_limit:
                criterion = YieldCriteria.MATERIAL_STRAIN
            elif rotation > config.element_rotation_limit:
                criterion = YieldCriteria.ELEMENT_ROTATION
            else:
                continue
            _, My, Mz = _end_forces(f, end)
            found.append((c, end, float(np.hypot(My, Mz)), rotation, criterion))
    return found


def performance_point(displacements, base_shears) -> Optional[PerformancePoint]:
    """
    Equal-energy bilinear idealisation of a capacity curve.

    The initial stiffness K0 is the secant to the first point; the ultimate
    point is the (last) peak of the base shear. The yield base shear Vy
    makes the area under the bilinear curve equal to the area A under the
    capacity curve up to the ultimate displacement du:

        A = Vy·du - Vy²/(2·K0)  →  Vy = K0·(du - √(du² - 2A/K0))

    Returns None when the curve has no positive initial stiffness.
    """
    D = np.asarray(displacements, dtype=float)
    V = np.asarray(base_shears, dtype=float)
    if D.size == 0 or D[0] <= 0.0 or V[0] <= 0.0:
        return None

    peak = len(V) - 1 - int(np.argmax(V[::-1]))
    du, Vu = float(D[peak]), float(V[peak])
    K0 = V[0] / D[0]

    d = np.concatenate([[0.0], D[:peak + 1]])
    v = np.concatenate([[0.0], V[:peak + 1]])
    area = float(np.sum(0.5 * (v[1:] + v[:-1]) * np.diff(d)))

    disc = du**2 - 2.0 * area / K0
    if disc < 0.0:
        dy, Vy = du, Vu
    else:
        Vy = float(K0 * (du - np.sqrt(disc)))
        dy = Vy / K0
    ductility = du / dy if dy > 0 else 1.0
    return PerformancePoint(
        yield_displacement=float(dy),
        yield_base_shear=float(Vy),
        ultimate_displacement=du,
        ultimate_base_shear=Vu,
        ductility=float(ductility),
    )


def pushover_analysis(
    structure,
    config: PushoverConfig,
    settings: Optional[OptimizationSettings] = None,
    pool: Optional[MatrixPool] = None,
    cancel_event: Optional[threading.Event] = None,
    show_progress: bool = False,
) -> AdvancedAnalysisResult:
    """
    Nonlinear static (pushover) analysis.

    The structure's own loads are not applied; the structure is pushed by
    the control displacement alone.

    Returns:
        AdvancedAnalysisResult(analysis_type=PUSHOVER). The static part of
        the result holds the state at the last accepted increment.
    """
    settings = settings or OptimizationSettings()
    po = PushoverResults()
    result = AdvancedAnalysisResult(analysis_type=AnalysisType.PUSHOVER, pushover_results=po)

    if structure.is_empty:
        result.add_warnings(["Structure has no nodes; nothing to analyze"])
        po.state = PushoverState.CONVERGED
        return result

    dof = DOFManager.for_structure(structure)
    result.displacement_vector = np.zeros(dof.ndof)
    result.add_warnings(structure.validate())
    if not dof.has_node(config.control_node):
        result.add_error(f"Control node {config.control_node!r} not found")
        return result

    control_offset = DIRECTION_OFFSET[config.control_direction]
    control = dof.idx(config.control_node, control_offset)
    support = fixed_dofs(structure, dof)
    if control in support:
        result.add_error(
            f"Control DOF {config.control_direction} of node {config.control_node!r} is restrained"
        )
        return result

    vertical = DIRECTION_OFFSET[config.vertical_direction]
    base_dofs = [
        6 * pos + control_offset
        for pos in dof.node_index.values()
        if structure.nodes[pos].supports.as_tuple()[vertical]
    ]
    if not base_dofs:
        result.add_warnings([
            f"No node restrains {config.vertical_direction}-translation; base shear is zero"
        ])

    increment = config.max_displacement / config.increment_steps
    logger.info(
        "Pushover analysis: node %r, direction %s, %d increments of %.4g m",
        config.control_node, config.control_direction, config.increment_steps, increment,
    )

    hinges: Dict[Hashable, Set[int]] = {}
    u = np.zeros(dof.ndof)
    R = np.zeros(dof.ndof)
    F = np.zeros(dof.ndof)
    forces: Dict[Hashable, np.ndarray] = {}
    base_contributions: Optional[List[ElementContribution]] = None

    steps = range(1, config.increment_steps + 1)
    if show_progress:
        steps = tqdm(steps, desc="Pushover")

    po.state = PushoverState.INCREMENTING
    for step in steps:
        if cancel_event is not None and cancel_event.is_set():
            po.state = PushoverState.CANCELLED
            result.add_error(f"Pushover analysis cancelled before increment {step}")
            break

        previous_shear = None
        accepted = None
        for iteration in range(config.max_iterations):
            K, contributions, w = assemble_stiffness(
                structure, dof, workers=settings.workers, hinges=hinges,
                pool=pool if settings.memory_optimization else None,
            )
            if base_contributions is None:
                base_contributions = contributions
                result.add_warnings(w)
                forces = {c.element_id: np.zeros(12) for c in contributions if not c.is_empty}
            restrained = sorted(set(support) | set(unconnected_dofs(K)) - {control})

            try:
                sol = solve_partitioned(
                    K, F, restrained, prescribed={control: increment},
                    settings=settings, raise_on_failure=True,
                )
            except MechanismError as e:
                if hinges:
                    po.state = PushoverState.ULTIMATE_REACHED
                    result.add_warnings([f"Collapse mechanism at increment {step}: {e}"])
                else:
                    po.state = PushoverState.DID_NOT_CONVERGE
                    result.add_error(f"Tangent stiffness singular at increment {step}: {e}")
                break
            except ConvergenceError as e:
                po.state = PushoverState.DID_NOT_CONVERGE
                result.add_error(f"Increment {step} did not converge: {e}")
                break
            finally:
                if pool is not None and settings.memory_optimization:
                    pool.release(K)

            du = sol.displacements
            u_trial = u + du
            R_trial = R + sol.reactions
            trial_forces = {
                c.element_id: forces[c.element_id] + c.k_local @ (c.transform @ du[c.dof_map])
                for c in contributions if not c.is_empty
            }
            shear = abs(float(np.sum(R_trial[base_dofs]))) if base_dofs else 0.0
            accepted = (u_trial, R_trial, trial_forces, shear)

            new = _detect_hinges(contributions, trial_forces, u_trial, hinges, config)
            if not new:
                break
            for c, end, moment, rotation, criterion in new:
                hinges.setdefault(c.element_id, set()).update(HINGE_DOFS[end])
                po.plastic_hinges.append(PlasticHinge(
                    element_id=c.element_id, end=end, step=step,
                    control_displacement=float(abs(u_trial[control])),
                    moment=moment, rotation=rotation, criterion=criterion,
                ))
                logger.debug(
                    "Hinge at element %r end %s (increment %d, %s)",
                    c.element_id, end, step, criterion.value,
                )
            if previous_shear is not None and previous_shear > 0 and \
                    abs(shear - previous_shear) / previous_shear < config.convergence_tolerance:
                break
            previous_shear = shear
        else:
            result.add_warnings([
                f"Increment {step}: hinge iteration limit ({config.max_iterations}) reached"
            ])

        if po.state is not PushoverState.INCREMENTING:
            break

        u, R, forces, shear = accepted
        po.displacements.append(float(abs(u[control])))
        po.base_shears.append(shear)
        po.steps_completed = step

        if len(po.base_shears) > 1 and shear < (1.0 - ULTIMATE_DROP) * po.base_shears[-2]:
            po.state = PushoverState.ULTIMATE_REACHED
            result.add_warnings([f"Base shear dropped more than 20% at increment {step}"])
            break
    else:
        po.state = PushoverState.CONVERGED

    po.performance_point = performance_point(po.displacements, po.base_shears)

    result.displacement_vector = u
    result.displacements = node_displacements(structure, dof, u)
    result.reactions = support_reactions(structure, dof, R)
    if base_contributions is not None:
        for c in base_contributions:
            if c.is_empty:
                continue
            f = forces[c.element_id]
            for position, sign, base in ((0.0, -1.0, 0), (1.0, 1.0, 6)):
                fe = sign * f[base:base + 6]
                ef = ElementForces(c.element_id, position, *(float(x) for x in fe))
                result.element_forces.append(ef)
                result.element_stresses.append(element_stress(c, ef))
    result.max_displacement = max((d.translation for d in result.displacements), default=0.0)
    result.max_stress = max((s.von_mises for s in result.element_stresses), default=0.0)

    logger.info(
        "Pushover analysis %s: %d increments, %d hinges, peak base shear %.4e N",
        po.state.value, po.steps_completed, len(po.plastic_hinges),
        max(po.base_shears, default=0.0),
    )
    return result
