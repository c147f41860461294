# tests/test_pushover.py
"""
Pushover analysis of the fixed-base portal frame.

The portal runs are held out of plane at the top nodes so that only the
in-plane sway can yield; with the control DOF prescribed the frame never
becomes a mechanism and the push reaches its target.

The first increment is purely elastic, so its secant stiffness V1/d1 must
equal the lateral stiffness P/δ of a linear static run. Pushing the frame
far enough forms plastic hinges and softens the capacity curve.
"""

import threading

import numpy as np
import pytest

from structengine.analysis import analyze_structure
from structengine.config import ConfigurationError, OptimizationSettings, PushoverConfig
from structengine.kernel.solve import SolverType
from structengine.model import Node, Structure3D, Supports
from structengine.pushover import performance_point, pushover_analysis
from structengine.results import AnalysisType, PushoverState, YieldCriteria

from conftest import cantilever, portal_frame

LU = OptimizationSettings(solver=SolverType.DIRECT_LU)


def planar_portal():
    """Portal frame with the top nodes held out of plane (uz, rx, ry)."""
    frame = portal_frame()
    held = Supports(uz=True, rx=True, ry=True)
    nodes = [
        n if n.supports.is_supported else Node(n.id, n.x, n.y, n.z, supports=held)
        for n in frame.nodes
    ]
    return Structure3D(nodes, frame.elements, frame.loads)


def push(structure=None, cancel_event=None, **overrides):
    options = dict(control_node="B", control_direction="x", max_displacement=0.1, increment_steps=20)
    options.update(overrides)
    return pushover_analysis(
        structure or portal_frame(), PushoverConfig(**options), LU, cancel_event=cancel_event,
    )


class TestPortalPushover:
    def setup_method(self):
        self.result = push(planar_portal())
        self.po = self.result.pushover_results

    def test_runs_to_completion(self):
        assert self.result.is_valid, self.result.errors
        assert self.result.analysis_type is AnalysisType.PUSHOVER
        assert self.po.state is PushoverState.CONVERGED
        assert self.po.steps_completed == 20
        assert self.po.steps_completed == len(self.po.displacements) == len(self.po.base_shears)

    def test_capacity_curve_is_monotone_in_displacement(self):
        D, V = self.po.capacity_curve
        assert np.all(np.diff(D) > 0)
        assert np.all(V >= 0)
        assert np.isclose(D[0], 0.1 / 20)

    def test_first_increment_matches_linear_stiffness(self):
        P = 10e3
        static = analyze_structure(portal_frame(lateral_load=P), LU)
        delta = static.displacement_of("B").ux
        V1, d1 = self.po.base_shears[0], self.po.displacements[0]
        assert np.isclose(V1 / d1, P / delta, rtol=1e-6)

    def test_hinges_soften_the_frame(self):
        assert self.po.plastic_hinges
        first = self.po.plastic_hinges[0]
        assert first.end in ("i", "j")
        assert first.step >= 1 and first.moment > 0.0
        D, V = self.po.capacity_curve
        assert V[-1] / D[-1] < V[0] / D[0]

    def test_performance_point(self):
        pp = self.po.performance_point
        assert pp is not None
        assert 0.0 < pp.yield_displacement <= pp.ultimate_displacement
        assert pp.ductility >= 1.0

    def test_last_state_is_reported(self):
        assert np.isclose(self.result.displacement_of("B").ux, self.po.displacements[-1])
        assert {r.node_id for r in self.result.reactions} == {"A", "B", "C", "D"}
        assert len(self.result.element_forces) == 6
        assert self.result.max_stress > 0.0


def test_rotation_limit_applies_under_default_settings():
    # strain limit out of reach, so only the chord rotation can trigger hinges
    result = push(material_strain_limit=1.0, element_rotation_limit=0.005)
    assert result.is_valid, result.errors
    hinges = result.pushover_results.plastic_hinges
    assert hinges
    assert all(h.criterion is YieldCriteria.ELEMENT_ROTATION for h in hinges)
    assert all(h.rotation > 0.005 for h in hinges)


def test_strain_limit_records_its_criterion():
    result = push(planar_portal(), element_rotation_limit=1.0)
    hinges = result.pushover_results.plastic_hinges
    assert hinges
    assert all(h.criterion is YieldCriteria.MATERIAL_STRAIN for h in hinges)


def test_unsupported_structure_does_not_converge():
    nodes = [Node(k, 1.5 * k, 0.0, 0.0) for k in range(3)]
    floating = Structure3D(nodes, cantilever(2).elements)
    result = push(floating, control_node=2, control_direction="y")
    po = result.pushover_results
    assert po.state is PushoverState.DID_NOT_CONVERGE
    assert not result.is_valid
    assert "singular" in result.errors[0]
    assert po.steps_completed == 0
    assert po.displacements == []


def test_hinge_turning_cantilever_into_mechanism_is_ultimate():
    # the base hinge frees out-of-plane rotation about the support
    result = push(cantilever(1, 3.0), control_node=1, control_direction="y", max_displacement=0.2)
    po = result.pushover_results
    assert po.state is PushoverState.ULTIMATE_REACHED
    assert result.is_valid, result.errors
    assert [(h.element_id, h.end) for h in po.plastic_hinges] == [(0, "i")]
    assert any("mechanism" in w for w in result.warnings)
    assert 0 < po.steps_completed < 20


def test_small_push_stays_elastic():
    result = push(max_displacement=1e-4, increment_steps=5)
    po = result.pushover_results
    assert po.state is PushoverState.CONVERGED
    assert po.plastic_hinges == []
    # linear: equal increments give equal shear increments
    np.testing.assert_allclose(np.diff(po.base_shears), po.base_shears[0], rtol=1e-8)


def test_missing_control_node_is_an_error():
    result = push(control_node="Z")
    assert not result.is_valid
    assert "not found" in result.errors[0]


def test_restrained_control_dof_is_an_error():
    result = push(control_node="A")
    assert not result.is_valid
    assert "restrained" in result.errors[0]


def test_cancelled_before_first_increment():
    cancel = threading.Event()
    cancel.set()
    po = push(cancel_event=cancel).pushover_results
    assert po.state is PushoverState.CANCELLED
    assert po.steps_completed == 0
    assert po.performance_point is None


def test_empty_structure(empty_structure):
    result = pushover_analysis(empty_structure, PushoverConfig(control_node="B"))
    assert result.is_valid
    assert result.pushover_results.state is PushoverState.CONVERGED


@pytest.mark.parametrize("options", [
    {},
    {"control_node": "B", "control_direction": "w"},
    {"control_node": "B", "max_displacement": 0.0},
    {"control_node": "B", "increment_steps": 0},
    {"control_node": "B", "yield_criteria": "element-rotation"},
    {"control_node": "B", "convergence_tolerance": 1.0},
])
def test_bad_config_rejected(options):
    with pytest.raises(ConfigurationError):
        PushoverConfig(**options)


class TestPerformancePoint:
    def test_elastic_perfectly_plastic_curve(self):
        pp = performance_point([1.0, 2.0, 3.0, 4.0], [10.0, 20.0, 20.0, 20.0])
        assert np.isclose(pp.yield_displacement, 2.0)
        assert np.isclose(pp.yield_base_shear, 20.0)
        assert pp.ultimate_displacement == 4.0
        assert pp.ultimate_base_shear == 20.0
        assert np.isclose(pp.ductility, 2.0)

    def test_linear_curve_has_unit_ductility(self):
        pp = performance_point([1.0, 2.0, 3.0], [5.0, 10.0, 15.0])
        assert np.isclose(pp.ductility, 1.0)
        assert np.isclose(pp.yield_base_shear, 15.0)

    @pytest.mark.parametrize("D,V", [([], []), ([0.0, 1.0], [0.0, 5.0])])
    def test_degenerate_curves(self, D, V):
        assert performance_point(D, V) is None
