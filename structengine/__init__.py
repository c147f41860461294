# structengine - 3D frame analysis engine
"""
STRUCTENGINE: DIRECT-STIFFNESS ANALYSIS OF 3D FRAMES
====================================================

This package provides:
- Linear static analysis of 3D frames (12-DOF beam-column elements)
- Time-history analysis (Newmark, Wilson-θ, central difference)
- Pushover analysis with plastic hinges
- Linear buckling and modal analysis
- Response spectrum analysis (SRSS / CQC)

ARCHITECTURE:
-------------
    kernel/         Sparse storage, DOF numbering, assembly, solvers
    model.py        Structure3D, Node, Element, Material, Section
    section.py      Section properties and material defaults
    elements.py     12×12 frame element stiffness, transforms, releases
    loads.py        Load vectors and load-history interpolation
    analysis.py     Static pipeline (assemble → restrain → solve → post)
    dynamics.py     Time-history, modal and response spectrum analysis
    pushover.py     Nonlinear static analysis
    stability.py    Linear buckling
    engine.py       AdvancedAnalysisEngine facade
"""

from .config import (
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
from .engine import AdvancedAnalysisEngine, create_advanced_analysis_engine
from .kernel import ConvergenceError, MechanismError, SolverType
from .loads import DirectionalLoad, LoadHistoryEntry
from .model import (
    Element,
    ElementType,
    EndRelease,
    Material,
    NodalLoad,
    Node,
    PointLoad,
    Section,
    SectionShape,
    Structure3D,
    Supports,
)
from .analysis import analyze_structure
from .dynamics import design_spectrum
from .results import AdvancedAnalysisResult, AnalysisResult, AnalysisType, YieldCriteria

__version__ = "0.1.0"

__all__ = [
    'AdvancedAnalysisEngine', 'create_advanced_analysis_engine', 'analyze_structure',
    'Structure3D', 'Node', 'Element', 'ElementType', 'EndRelease', 'Material',
    'Section', 'SectionShape', 'Supports', 'NodalLoad', 'PointLoad',
    'DirectionalLoad', 'LoadHistoryEntry',
    'OptimizationSettings', 'TimeHistoryConfig', 'PushoverConfig', 'BucklingConfig',
    'ModalConfig', 'ResponseSpectrumConfig', 'design_spectrum',
    'IntegrationMethod', 'MassType', 'ModalCombination', 'YieldCriteria', 'SolverType',
    'ConfigurationError', 'MechanismError', 'ConvergenceError',
    'AnalysisResult', 'AdvancedAnalysisResult', 'AnalysisType',
]
