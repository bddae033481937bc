"""
Analysis Runner Package

Topology normalization, path search, override application and aggregate
analysis for NetViz.
"""

from .types import (
    Diagnostic,
    PathResult,
    OverrideRecord,
    CountryMatrixResult,
    TransitExposureResult,
    ImpactResult,
    ScenarioDiffResult,
    CountryPairAnalysis,
    HealthReport,
    AnalysisResponse,
    AnalysisError,
)
from .errors import (
    TopologyError,
    StructuralError,
    InvalidWeightError,
    StaleOverrideError,
    StaleResultError,
)
from .normalizer import normalize, normalize_topology_data
from .path_runner import shortest_path, all_paths
from .overrides import OverrideSet, apply_overrides, export_topology
from .aggregate import (
    country_pair_matrix,
    transit_exposure,
    downstream_impact,
    compare_scenarios,
    analyze_country_pair,
)
from .health import network_health
from .session import TopologySession

__all__ = [
    # Types
    'Diagnostic',
    'PathResult',
    'OverrideRecord',
    'CountryMatrixResult',
    'TransitExposureResult',
    'ImpactResult',
    'ScenarioDiffResult',
    'CountryPairAnalysis',
    'HealthReport',
    'AnalysisResponse',
    'AnalysisError',
    # Errors
    'TopologyError',
    'StructuralError',
    'InvalidWeightError',
    'StaleOverrideError',
    'StaleResultError',
    # Functions
    'normalize',
    'normalize_topology_data',
    'shortest_path',
    'all_paths',
    'OverrideSet',
    'apply_overrides',
    'export_topology',
    'country_pair_matrix',
    'transit_exposure',
    'downstream_impact',
    'compare_scenarios',
    'analyze_country_pair',
    'network_health',
    'TopologySession',
]
