# tests/test_response_spectrum.py
"""
RESPONSE SPECTRUM VALIDATION
============================

The axial mode of a one-element cantilever is a single oscillator: the
lumped tip mass m = ρAL/2 on the axial spring k = EA/L. Under a flat
spectrum Sa its peak response is

    V = m·Sa,        u_tip = m·Sa / k

whatever the combination rule, because no other mode moves along x.
"""

import numpy as np
import pytest

from structengine.config import ConfigurationError, ResponseSpectrumConfig
from structengine.dynamics import design_spectrum, modal_analysis, response_spectrum_analysis
from structengine.kernel.modal import combine_modal_responses, cqc_correlation, spectral_acceleration
from structengine.results import AnalysisType
from structengine.section import section_properties

from conftest import E, RECT, RHO, cantilever

PROPS, _ = section_properties(RECT)


def spectrum_run(structure, **options):
    options.setdefault("spectrum", [(0.0, 3.0)])
    return response_spectrum_analysis(structure, ResponseSpectrumConfig(**options))


class TestAxialOscillator:
    L = 2.0
    SA = 3.0

    def setup_method(self):
        self.m = RHO * PROPS.area * self.L / 2.0
        self.k = E * PROPS.area / self.L

    @pytest.mark.parametrize("combination", ["srss", "cqc"])
    def test_base_shear_and_tip_displacement(self, combination):
        result = spectrum_run(
            cantilever(1, self.L), spectrum=[(0.0, self.SA)], direction="x",
            number_of_modes=6, combination=combination,
        )
        assert result.is_valid, result.errors
        assert result.analysis_type is AnalysisType.RESPONSE_SPECTRUM
        rs = result.response_spectrum_results
        assert rs.combination == combination
        assert np.isclose(rs.base_shear, self.m * self.SA, rtol=1e-6)
        assert np.isclose(result.displacement_vector[6], self.m * self.SA / self.k, rtol=1e-6)
        assert np.isclose(rs.mass_participation, 1.0, rtol=1e-9)
        assert not any("consider more modes" in w for w in result.warnings)

    def test_per_mode_arrays(self):
        structure = cantilever(1, self.L)
        rs = spectrum_run(structure, direction="x", number_of_modes=6).response_spectrum_results
        assert rs.periods.shape == rs.spectral_accelerations.shape == rs.modal_base_shears.shape == (6,)
        assert rs.modal_displacements.shape == (structure.ndof, 6)
        assert rs.displacements.shape == (structure.ndof,)
        np.testing.assert_allclose(rs.spectral_accelerations, self.SA)
        np.testing.assert_array_equal(rs.displacements[:6], 0.0)


def test_cqc_matches_srss_for_separated_modes():
    structure = cantilever(10, 3.0)
    srss = spectrum_run(structure, direction="y", combination="srss").response_spectrum_results
    cqc = spectrum_run(structure, direction="y", combination="cqc").response_spectrum_results
    assert np.isclose(cqc.base_shear, srss.base_shear, rtol=1e-2)
    np.testing.assert_allclose(cqc.displacements, srss.displacements, rtol=1e-2, atol=1e-12)


def test_combined_base_shear_is_bounded_by_absolute_sum():
    rs = spectrum_run(cantilever(10, 3.0), direction="y", combination="srss").response_spectrum_results
    assert rs.base_shear <= np.sum(np.abs(rs.modal_base_shears)) * (1 + 1e-12)
    assert rs.base_shear >= np.max(np.abs(rs.modal_base_shears))


def test_spectrum_is_read_at_modal_periods():
    spectrum = [(0.0, 2.0), (0.5, 10.0), (2.0, 1.0)]
    rs = spectrum_run(cantilever(6, 3.0), spectrum=spectrum, direction="y").response_spectrum_results
    np.testing.assert_allclose(rs.spectral_accelerations, spectral_acceleration(spectrum, rs.periods))


def test_too_few_modes_warns():
    # the first modes of a cantilever along x are all bending modes
    result = spectrum_run(cantilever(6, 3.0), direction="x", number_of_modes=1)
    assert result.is_valid
    assert result.response_spectrum_results.mass_participation < 0.9
    assert any("consider more modes" in w for w in result.warnings)


def test_empty_structure(empty_structure):
    result = spectrum_run(empty_structure)
    assert result.is_valid
    rs = result.response_spectrum_results
    assert rs.base_shear == 0.0
    assert rs.periods.size == 0


def test_effective_masses_add_up_to_mobile_mass():
    modal = modal_analysis(cantilever(1, 2.0)).modal_results
    for direction in "xyz":
        assert np.isclose(np.sum(modal.effective_mass[direction]), modal.mobile_mass[direction])
    assert modal.mobile_mass["x"] < modal.total_mass


class TestCorrelation:
    def test_diagonal_and_symmetry(self):
        rho = cqc_correlation(np.array([1.0, 2.0, 7.0]), 0.05)
        np.testing.assert_allclose(np.diag(rho), 1.0)
        np.testing.assert_allclose(rho, rho.T)
        assert np.all((rho > 0.0) & (rho <= 1.0))

    def test_known_value(self):
        rho = cqc_correlation(np.array([10.0, 9.0]), 0.05)
        assert np.isclose(rho[0, 1], 0.473028, rtol=1e-5)

    def test_close_modes_are_correlated(self):
        rho = cqc_correlation(np.array([10.0, 10.01, 60.0]), 0.05)
        assert rho[0, 1] > 0.99
        assert rho[0, 2] < 0.01

    def test_undamped_modes(self):
        rho = cqc_correlation(np.array([1.0, 1.0, 3.0]), 0.0)
        assert rho[0, 1] == 1.0
        assert rho[0, 2] == 0.0


class TestCombination:
    def test_srss(self):
        assert np.isclose(combine_modal_responses([3.0, 4.0], np.array([1.0, 5.0]), "srss"), 5.0)

    def test_cqc_of_coincident_modes_adds_algebraically(self):
        omega = np.array([4.0, 4.0])
        assert np.isclose(combine_modal_responses([3.0, 4.0], omega, "cqc"), 7.0)
        assert np.isclose(combine_modal_responses([3.0, -4.0], omega, "cqc"), 1.0)

    def test_vector_responses(self):
        R = np.array([[3.0, 4.0], [0.0, 1.0]])
        np.testing.assert_allclose(combine_modal_responses(R, np.array([1.0, 50.0]), "srss"), [5.0, 1.0])

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            combine_modal_responses([1.0], np.array([1.0]), "abs-sum")


def test_spectral_acceleration_holds_end_values():
    spectrum = [(0.2, 4.0), (1.0, 2.0)]
    np.testing.assert_allclose(
        spectral_acceleration(spectrum, [0.0, 0.2, 0.6, 1.0, 5.0, np.inf]),
        [4.0, 4.0, 3.0, 2.0, 2.0, 2.0],
    )


class TestDesignSpectrum:
    def test_branches(self):
        g = 9.81
        spectrum = design_spectrum(sds=1.0, sd1=0.6, long_period=6.0)
        Sa = spectral_acceleration(spectrum, [0.0, 0.12, 0.3, 1.0, 8.0])
        np.testing.assert_allclose(
            Sa, [0.4 * g, g, g, 0.6 * g, 0.6 * 6.0 / 64.0 * g], rtol=1e-3,
        )

    def test_accepted_by_config(self):
        config = ResponseSpectrumConfig(spectrum=design_spectrum(0.8, 0.4))
        periods = [T for T, _ in config.spectrum]
        assert periods == sorted(periods)
        assert periods[0] == 0.0 and periods[-1] == 10.0

    def test_bad_parameters(self):
        with pytest.raises(ValueError):
            design_spectrum(0.0, 0.4)


def test_bad_config_rejected():
    with pytest.raises(ConfigurationError):
        ResponseSpectrumConfig(spectrum=[(0.5, 1.0)], number_of_modes=0)
