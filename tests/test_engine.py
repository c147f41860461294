# tests/test_engine.py
"""AdvancedAnalysisEngine: every analysis type through one object."""

import numpy as np
import pytest

import structengine
from structengine import (
    AdvancedAnalysisEngine,
    AnalysisType,
    BucklingConfig,
    ModalConfig,
    OptimizationSettings,
    PushoverConfig,
    ResponseSpectrumConfig,
    TimeHistoryConfig,
    create_advanced_analysis_engine,
)
from structengine.analysis import analyze_structure

from conftest import pinned_column, portal_frame


def run_all(engine, control_node="B"):
    return {
        AnalysisType.STATIC: engine.analyze_static(),
        AnalysisType.MODAL: engine.perform_modal_analysis(ModalConfig(number_of_modes=2)),
        AnalysisType.BUCKLING: engine.perform_buckling_analysis(BucklingConfig()),
        AnalysisType.TIME_HISTORY: engine.perform_time_history_analysis(
            TimeHistoryConfig(time_step=1e-3, total_time=0.01)
        ),
        AnalysisType.PUSHOVER: engine.perform_pushover_analysis(
            PushoverConfig(control_node=control_node, max_displacement=0.01, increment_steps=2)
        ),
        AnalysisType.RESPONSE_SPECTRUM: engine.perform_response_spectrum_analysis(
            ResponseSpectrumConfig(spectrum=[(0.0, 2.0), (1.0, 1.0)], number_of_modes=2)
        ),
    }


def test_factory_returns_engine():
    engine = create_advanced_analysis_engine(portal_frame())
    assert isinstance(engine, AdvancedAnalysisEngine)
    assert engine.settings == OptimizationSettings()


def test_every_entry_point_tags_its_result():
    engine = create_advanced_analysis_engine(portal_frame(lateral_load=10e3))
    for analysis_type, result in run_all(engine).items():
        assert result.analysis_type is analysis_type
        assert result.is_valid, (analysis_type, result.errors)


def test_result_blocks_match_analysis_type():
    results = run_all(create_advanced_analysis_engine(portal_frame(lateral_load=10e3)))
    assert results[AnalysisType.STATIC].modal_results is None
    assert results[AnalysisType.MODAL].modal_results is not None
    assert results[AnalysisType.BUCKLING].buckling_results is not None
    assert results[AnalysisType.TIME_HISTORY].time_history_results is not None
    assert results[AnalysisType.PUSHOVER].pushover_results is not None
    assert results[AnalysisType.RESPONSE_SPECTRUM].response_spectrum_results is not None
    assert results[AnalysisType.RESPONSE_SPECTRUM].modal_results is None


def test_static_matches_plain_analysis():
    structure = portal_frame(lateral_load=10e3)
    engine = create_advanced_analysis_engine(structure)
    np.testing.assert_allclose(
        engine.analyze_static().displacement_vector,
        analyze_structure(structure).displacement_vector,
    )


def test_buckling_through_engine():
    engine = create_advanced_analysis_engine(pinned_column(4, 4.0, 1e3))
    b = engine.perform_buckling_analysis().buckling_results
    assert b.critical_load_factor > 0.0


def test_empty_structure_is_valid_everywhere(empty_structure):
    engine = create_advanced_analysis_engine(empty_structure)
    for analysis_type, result in run_all(engine).items():
        assert result.analysis_type is analysis_type
        assert result.is_valid, (analysis_type, result.errors)


def test_structure_is_not_modified():
    structure = portal_frame(lateral_load=10e3)
    before = repr(structure)
    run_all(create_advanced_analysis_engine(structure))
    assert repr(structure) == before


def test_performance_report_lists_stages():
    engine = create_advanced_analysis_engine(
        portal_frame(lateral_load=10e3), OptimizationSettings(enable_profiling=True),
    )
    run_all(engine)
    report = engine.performance_report()
    for stage in ("modal", "buckling", "time-history", "pushover", "response-spectrum"):
        assert f"{stage}:" in report
    assert "pool hits:" in report


@pytest.mark.parametrize("run", [
    lambda engine: engine.perform_modal_analysis(ModalConfig(number_of_modes=2)),
    lambda engine: engine.perform_buckling_analysis(),
    lambda engine: engine.perform_time_history_analysis(TimeHistoryConfig(time_step=1e-3, total_time=0.01)),
    lambda engine: engine.perform_response_spectrum_analysis(ResponseSpectrumConfig(spectrum=[(0.0, 1.0)])),
], ids=["modal", "buckling", "time-history", "response-spectrum"])
def test_global_matrices_go_back_to_the_pool(run):
    engine = create_advanced_analysis_engine(pinned_column(4, 4.0, 1e3))
    assert run(engine).is_valid
    assert engine.pool.stats()["pooled_matrices"] >= 1
    misses = engine.pool.stats()["misses"]
    run(engine)
    stats = engine.pool.stats()
    assert stats["misses"] == misses
    assert stats["hits"] >= 1


def test_pool_is_bypassed_without_memory_optimization():
    engine = create_advanced_analysis_engine(
        pinned_column(4, 4.0, 1e3), OptimizationSettings(memory_optimization=False),
    )
    engine.perform_modal_analysis()
    engine.perform_buckling_analysis()
    assert engine.pool.stats() == {"pooled_matrices": 0, "pooled_vectors": 0, "hits": 0, "misses": 0}


def test_profiling_off_by_default():
    engine = create_advanced_analysis_engine(portal_frame(lateral_load=10e3))
    engine.perform_modal_analysis()
    assert engine.profiler.stats() == {}


@pytest.mark.parametrize("name", ["AdvancedAnalysisEngine", "Structure3D", "analyze_structure"])
def test_public_api(name):
    assert name in structengine.__all__
    assert hasattr(structengine, name)
