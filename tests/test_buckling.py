# tests/test_buckling.py
"""
BUCKLING VALIDATION
===================

Pin-ended column, length L, axial load P:

    P_cr = π²·E·I_min / L²

The column buckles about its weak axis first; the strong-axis mode and
the second weak-axis mode both come at 4·P_cr for a 0.1 × 0.2 section.
"""

from dataclasses import replace

import numpy as np
import pytest

from structengine.config import BucklingConfig, ConfigurationError, OptimizationSettings
from structengine.kernel.buckling import frame3d_geometric_stiffness
from structengine.kernel.solve import SolverType
from structengine.loads import DirectionalLoad
from structengine.model import NodalLoad, Structure3D
from structengine.results import AnalysisType
from structengine.section import section_properties
from structengine.stability import buckling_analysis

from conftest import E, RECT, pinned_column

PROPS, _ = section_properties(RECT)
L = 4.0
P_CR = np.pi**2 * E * min(PROPS.iy, PROPS.iz) / L**2
LU = OptimizationSettings(solver=SolverType.DIRECT_LU)


def test_euler_load_of_pinned_column():
    result = buckling_analysis(pinned_column(4, L, 1e3), settings=LU)
    assert result.is_valid, result.errors
    assert result.analysis_type is AnalysisType.BUCKLING

    b = result.buckling_results
    assert b.reference_load == 1e3
    assert np.isclose(b.critical_buckling_load, P_CR, rtol=1e-2)
    assert np.isclose(b.critical_load_factor, P_CR / 1e3, rtol=1e-2)
    assert b.safety_factor == b.critical_load_factor


def test_higher_modes():
    structure = pinned_column(8, L, 1e3)
    b = buckling_analysis(structure, BucklingConfig(number_of_modes=3), LU).buckling_results
    assert len(b.modes) == 3
    factors = [m.load_factor for m in b.modes]
    assert all(np.isfinite(factors)) and all(f > 0 for f in factors)
    assert factors == sorted(factors)
    assert [m.mode_number for m in b.modes] == [1, 2, 3]
    for mode in b.modes:
        assert mode.mode_shape.shape == (structure.ndof,)
        assert np.isclose(np.abs(mode.mode_shape).max(), 1.0)
    np.testing.assert_allclose(factors[1:], 4 * factors[0], rtol=2e-2)


def test_load_pattern_replaces_structure_loads():
    config = BucklingConfig(load_pattern=[DirectionalLoad(4, "y", -2e3)])
    b = buckling_analysis(pinned_column(4, L, 1e3), config, LU).buckling_results
    assert b.reference_load == 2e3
    assert np.isclose(b.critical_load_factor, P_CR / 2e3, rtol=1e-2)


def test_applied_moment_is_not_part_of_reference_load():
    column = pinned_column(4, L, 1e3)
    top = replace(column.nodes[-1], load=NodalLoad(mz=5e3))
    structure = Structure3D(column.nodes[:-1] + (top,), column.elements, column.loads)
    b = buckling_analysis(structure, settings=LU).buckling_results
    assert b.reference_load == 1e3
    assert np.isclose(b.critical_buckling_load, P_CR, rtol=1e-2)


def test_load_above_euler_load_warns():
    result = buckling_analysis(pinned_column(4, L, 1e7), settings=LU)
    b = result.buckling_results
    assert b.critical_load_factor < 1.0
    assert np.isclose(b.critical_load_factor, P_CR / 1e7, rtol=1e-2)
    assert any("below 1" in w for w in result.warnings)


def test_load_below_euler_load_does_not_warn():
    result = buckling_analysis(pinned_column(4, L, 1e3), settings=LU)
    assert not any("below 1" in w for w in result.warnings)


def test_tension_has_no_positive_load_factor():
    config = BucklingConfig(load_pattern=[DirectionalLoad(4, "y", 1e3)])
    result = buckling_analysis(pinned_column(4, L, 0), config, LU)
    assert result.is_valid
    assert result.buckling_results.modes == []
    assert any("compression" in w for w in result.warnings)


def test_shift_admits_negative_load_factors():
    config = BucklingConfig(load_pattern=[DirectionalLoad(4, "y", 1e3)], shift_value=-1e12)
    b = buckling_analysis(pinned_column(4, L, 0), config, LU).buckling_results
    assert np.isclose(b.critical_load_factor, -P_CR / 1e3, rtol=1e-2)


def test_zero_reference_load():
    result = buckling_analysis(pinned_column(4, L, 0))
    assert result.is_valid
    assert result.buckling_results.modes == []
    assert result.buckling_results.critical_load_factor is None
    assert any("Reference load is zero" in w for w in result.warnings)


def test_geometric_stiffness_disabled():
    result = buckling_analysis(pinned_column(4, L, 1e3), BucklingConfig(include_geometric_stiffness=False))
    assert result.buckling_results.modes == []
    assert any("Geometric stiffness disabled" in w for w in result.warnings)
    # the reference solve is still reported
    assert result.max_displacement > 0.0


def test_empty_structure(empty_structure):
    result = buckling_analysis(empty_structure)
    assert result.is_valid
    assert result.buckling_results.modes == []


class TestGeometricStiffness:
    def test_zero_force_gives_zero_matrix(self):
        np.testing.assert_array_equal(frame3d_geometric_stiffness(0.0, 0.02, 1e-4, 2.0), 0.0)

    def test_symmetric_and_linear_in_force(self):
        kg1 = frame3d_geometric_stiffness(-1e3, 0.02, 1e-4, 2.0)
        kg2 = frame3d_geometric_stiffness(-2e3, 0.02, 1e-4, 2.0)
        np.testing.assert_allclose(kg1, kg1.T)
        np.testing.assert_allclose(kg2, 2 * kg1)

    def test_rigid_translation_is_unaffected(self):
        kg = frame3d_geometric_stiffness(-1e3, 0.02, 1e-4, 2.0)
        for offset in (1, 2):
            r = np.zeros(12)
            r[[offset, offset + 6]] = 1.0
            np.testing.assert_allclose(kg @ r, 0.0, atol=1e-9)


@pytest.mark.parametrize("modes", [0, -1])
def test_bad_mode_count_rejected(modes):
    with pytest.raises(ConfigurationError):
        BucklingConfig(number_of_modes=modes)
