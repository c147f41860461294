# structengine/engine.py
"""
AdvancedAnalysisEngine: one structure, one set of optimization settings,
every analysis type.

    engine = create_advanced_analysis_engine(structure)
    static = engine.analyze_static()
    modal = engine.perform_modal_analysis(ModalConfig(number_of_modes=4))
    push = engine.perform_pushover_analysis(PushoverConfig(control_node="roof"))

The engine owns a MatrixPool shared by its analyses and a Profiler that
accumulates stage timings across calls. Each call returns a new result;
the structure is never modified.
"""

import logging
import threading
from typing import Optional

from .analysis import analyze_structure
from .config import (
    BucklingConfig,
    ModalConfig,
    OptimizationSettings,
    PushoverConfig,
    ResponseSpectrumConfig,
    TimeHistoryConfig,
)
from .dynamics import modal_analysis, response_spectrum_analysis, time_history_analysis
from .kernel.pool import MatrixPool
from .kernel.profiling import Profiler
from .pushover import pushover_analysis
from .results import AdvancedAnalysisResult, AnalysisType
from .stability import buckling_analysis

logger = logging.getLogger(__name__)


class AdvancedAnalysisEngine:
    def __init__(self, structure, settings: Optional[OptimizationSettings] = None):
        self.structure = structure
        self.settings = settings or OptimizationSettings()
        self.pool = MatrixPool()
        self.profiler = Profiler(enabled=self.settings.enable_profiling)

    def analyze_static(self) -> AdvancedAnalysisResult:
        """Linear static analysis under the structure's own loads."""
        base = analyze_structure(self.structure, self.settings, self.pool, self.profiler)
        return AdvancedAnalysisResult.from_static(base, AnalysisType.STATIC)

    def perform_time_history_analysis(
        self,
        config: TimeHistoryConfig,
        cancel_event: Optional[threading.Event] = None,
        show_progress: bool = False,
    ) -> AdvancedAnalysisResult:
        with self.profiler.time("time-history"):
            return time_history_analysis(
                self.structure, config, self.settings, self.pool,
                cancel_event=cancel_event, show_progress=show_progress,
            )

    def perform_pushover_analysis(
        self,
        config: PushoverConfig,
        cancel_event: Optional[threading.Event] = None,
        show_progress: bool = False,
    ) -> AdvancedAnalysisResult:
        with self.profiler.time("pushover"):
            return pushover_analysis(
                self.structure, config, self.settings, self.pool,
                cancel_event=cancel_event, show_progress=show_progress,
            )

    def perform_buckling_analysis(self, config: Optional[BucklingConfig] = None) -> AdvancedAnalysisResult:
        with self.profiler.time("buckling"):
            return buckling_analysis(self.structure, config, self.settings, self.pool)

    def perform_modal_analysis(self, config: Optional[ModalConfig] = None) -> AdvancedAnalysisResult:
        with self.profiler.time("modal"):
            return modal_analysis(self.structure, config, self.settings, self.pool)

    def perform_response_spectrum_analysis(self, config: ResponseSpectrumConfig) -> AdvancedAnalysisResult:
        with self.profiler.time("response-spectrum"):
            return response_spectrum_analysis(self.structure, config, self.settings, self.pool)

    def performance_report(self) -> str:
        """Profiler report plus pool statistics."""
        stats = self.pool.stats()
        lines = [self.profiler.report(), ""]
        lines.extend(f"pool {name}: {value}" for name, value in stats.items())
        return "\n".join(lines)


def create_advanced_analysis_engine(
    structure,
    settings: Optional[OptimizationSettings] = None,
) -> AdvancedAnalysisEngine:
    logger.debug("Creating analysis engine for %d nodes", len(structure.nodes))
    return AdvancedAnalysisEngine(structure, settings)
