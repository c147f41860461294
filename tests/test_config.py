# tests/test_config.py
"""Configuration validation and enum coercion."""

import dataclasses

import pytest

from structengine.config import (
    BucklingConfig,
    ConfigurationError,
    IntegrationMethod,
    MassType,
    ModalCombination,
    ModalConfig,
    OptimizationSettings,
    PushoverConfig,
    ResponseSpectrumConfig,
    TimeHistoryConfig,
)
from structengine.kernel.solve import SolverType
from structengine.loads import DirectionalLoad, LoadHistoryEntry


@pytest.mark.parametrize("cls,kwargs", [
    (OptimizationSettings, {"solver": "gauss-seidel"}),
    (OptimizationSettings, {"cg_tolerance": 0.0}),
    (OptimizationSettings, {"cg_tolerance": 1.0}),
    (OptimizationSettings, {"lu_pivot_tolerance": 1.0}),
    (OptimizationSettings, {"lu_pivot_tolerance": -1e-12}),
    (OptimizationSettings, {"cg_max_iterations": 0}),
    (OptimizationSettings, {"workers": 0}),
    (TimeHistoryConfig, {"time_step": 0.0}),
    (TimeHistoryConfig, {"total_time": -1.0}),
    (TimeHistoryConfig, {"damping_ratio": -0.01}),
    (TimeHistoryConfig, {"time_step": 2.0, "total_time": 1.0}),
    (TimeHistoryConfig, {"integration_method": "runge-kutta"}),
    (TimeHistoryConfig, {"history_interval": 0}),
    (TimeHistoryConfig, {"rayleigh_frequencies": (0.0, 10.0)}),
    (TimeHistoryConfig, {"rayleigh_frequencies": (1.0, 2.0, 3.0)}),
    (PushoverConfig, {"control_node": "N", "material_strain_limit": 0.0}),
    (PushoverConfig, {"control_node": "N", "vertical_direction": "up"}),
    (PushoverConfig, {"control_node": "N", "max_iterations": 0}),
    (PushoverConfig, {"control_node": "N", "convergence_tolerance": 1.0}),
    (PushoverConfig, {"control_node": "N", "convergence_tolerance": 0.0}),
    (ModalConfig, {"number_of_modes": 0}),
    (ModalConfig, {"mass_type": "diagonal"}),
    (ResponseSpectrumConfig, {}),
    (ResponseSpectrumConfig, {"spectrum": [(-0.1, 1.0)]}),
    (ResponseSpectrumConfig, {"spectrum": [(0.5, -1.0)]}),
    (ResponseSpectrumConfig, {"spectrum": [0.5, 1.0]}),
    (ResponseSpectrumConfig, {"spectrum": [(0.5, 1.0)], "direction": "up"}),
    (ResponseSpectrumConfig, {"spectrum": [(0.5, 1.0)], "damping_ratio": 1.0}),
    (ResponseSpectrumConfig, {"spectrum": [(0.5, 1.0)], "combination": "abs-sum"}),
])
def test_invalid_values_rejected(cls, kwargs):
    with pytest.raises(ConfigurationError):
        cls(**kwargs)


def test_configuration_error_is_value_error():
    assert issubclass(ConfigurationError, ValueError)


def test_string_enums_are_coerced():
    assert OptimizationSettings(solver="direct-lu").solver is SolverType.DIRECT_LU
    th = TimeHistoryConfig(integration_method="wilson", mass_type="consistent")
    assert th.integration_method is IntegrationMethod.WILSON
    assert th.mass_type is MassType.CONSISTENT
    assert ModalCombination("srss") is ModalCombination.SRSS
    rs = ResponseSpectrumConfig(spectrum=[(0.0, 1.0)], combination="srss", mass_type="consistent")
    assert rs.combination is ModalCombination.SRSS
    assert rs.mass_type is MassType.CONSISTENT
    assert ModalConfig(mass_type="lumped").mass_type is MassType.LUMPED


def test_defaults():
    settings = OptimizationSettings()
    assert settings.solver is SolverType.CONJUGATE_GRADIENT
    assert settings.workers == 1
    th = TimeHistoryConfig()
    assert th.integration_method is IntegrationMethod.NEWMARK
    assert th.load_history == ()
    assert BucklingConfig().number_of_modes == 1
    assert BucklingConfig().shift_value is None


def test_sequences_become_tuples():
    entry = LoadHistoryEntry(0.0, [DirectionalLoad(1, "x", 1.0)])
    th = TimeHistoryConfig(load_history=[entry], rayleigh_frequencies=[5, 50])
    assert th.load_history == (entry,)
    assert th.rayleigh_frequencies == (5.0, 50.0)
    assert BucklingConfig(load_pattern=[DirectionalLoad(1, "y", -1.0)]).load_pattern[0].direction == "y"


def test_configs_are_frozen():
    settings = OptimizationSettings()
    with pytest.raises(dataclasses.FrozenInstanceError):
        settings.workers = 4
    assert dataclasses.replace(settings, workers=4).workers == 4


def test_negative_push_is_allowed():
    assert PushoverConfig(control_node="B", max_displacement=-0.05).max_displacement == -0.05


@pytest.mark.parametrize("kwargs", [
    {"cg_tolerance": 0.999},
    {"lu_pivot_tolerance": 0.0},
    {"lu_pivot_tolerance": 0.5},
])
def test_tolerance_fractions_accepted(kwargs):
    OptimizationSettings(**kwargs)


def test_spectrum_samples_are_sorted():
    rs = ResponseSpectrumConfig(spectrum=[(1.0, 2.0), (0.0, 4.0), (0.5, 3.0)])
    assert rs.spectrum == ((0.0, 4.0), (0.5, 3.0), (1.0, 2.0))
    assert rs.combination is ModalCombination.CQC
