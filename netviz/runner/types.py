"""
Analysis Runner Types

Pydantic models for engine results and the handler request/response layer.
"""

from typing import Optional, Any
from pydantic import BaseModel, Field, model_validator


# ============================================================================
# Diagnostics
# ============================================================================

class Diagnostic(BaseModel):
    """Non-fatal, record-level problem reported alongside a result."""
    code: str = Field(description="unknown_endpoint, self_loop, missing_cost, non_positive_cost, duplicate_link, status_conflict, stale_override, unknown_element")
    message: str = Field(description="Human-readable description")
    record: Optional[int] = Field(default=None, description="Position of the offending raw record")
    link_index: Optional[int] = Field(default=None, description="Affected link index")
    node_id: Optional[str] = Field(default=None, description="Affected node id")


# ============================================================================
# Path Results
# ============================================================================

class PathResult(BaseModel):
    """Single path between two nodes."""
    nodes: list[str] = Field(min_length=2, description="Node ids in traversal order")
    links: list[int] = Field(description="Traversed link indices (len(nodes) - 1)")
    total_cost: float = Field(description="Sum of direction-aware costs")
    hop_count: int = Field(ge=1)

    @model_validator(mode="after")
    def check_lengths(self):
        if len(self.links) != len(self.nodes) - 1:
            raise ValueError("links must have exactly one entry per hop")
        if self.hop_count != len(self.links):
            raise ValueError("hop_count must equal the number of traversed links")
        return self

    def sort_key(self) -> tuple:
        return (self.total_cost, self.hop_count, tuple(self.nodes))

    def touches(self, link_indices: set[int], node_ids: set[str]) -> bool:
        return bool(link_indices.intersection(self.links)) or bool(node_ids.intersection(self.nodes))


# ============================================================================
# Override Records
# ============================================================================

class OverrideRecord(BaseModel):
    """Simulated edit of one link, keyed by link index."""
    link_index: int = Field(ge=0)
    forward_cost: float
    reverse_cost: float
    status: str
    original_forward_cost: float
    original_reverse_cost: float
    original_status: str
    is_modified: bool = Field(default=True)


# ============================================================================
# Aggregate Results
# ============================================================================

class CountryPairCell(BaseModel):
    """Best path between two countries."""
    source_country: str
    dest_country: str
    reachable: bool = False
    cost: Optional[float] = None
    hop_count: Optional[int] = None
    path: Optional[PathResult] = None


class CountryMatrixResult(BaseModel):
    """Cost/utilization matrix over ordered country pairs."""
    generation: str
    granularity: str
    countries: list[str] = Field(default_factory=list)
    cells: list[CountryPairCell] = Field(default_factory=list)
    link_utilization: dict[int, int] = Field(
        default_factory=dict,
        description="Link index -> number of country-pair best paths traversing it"
    )

    def get_cell(self, source_country: str, dest_country: str) -> Optional[CountryPairCell]:
        for cell in self.cells:
            if cell.source_country == source_country and cell.dest_country == dest_country:
                return cell
        return None


class CountryPairRef(BaseModel):
    source: str
    dest: str
    path_count: int = 1


class NodeExposure(BaseModel):
    """Country pairs whose best path transits a node."""
    node_id: str
    country: str
    pair_count: int = 0
    pairs: list[CountryPairRef] = Field(default_factory=list)


class TransitCountryExposure(BaseModel):
    """A country used as transit between two other countries."""
    country: str
    transit_path_count: int = 0
    transit_for_pairs: list[CountryPairRef] = Field(default_factory=list)
    criticality_score: int = Field(default=0, ge=0, le=100)
    node_count: int = 0


class TransitExposureResult(BaseModel):
    generation: str
    pairs_analyzed: int = 0
    pairs_total: int = 0
    truncated: bool = False
    nodes: list[NodeExposure] = Field(default_factory=list)
    countries: list[TransitCountryExposure] = Field(default_factory=list)


class PairImpact(BaseModel):
    """Before/after comparison for one country pair."""
    source_country: str
    dest_country: str
    status: str = Field(description="unchanged, rerouted, cost_changed, disconnected, restored")
    before: Optional[PathResult] = None
    after: Optional[PathResult] = None
    cost_delta: Optional[float] = None


class ImpactResult(BaseModel):
    """Downstream impact of failed links/nodes."""
    generation: str
    failed_links: list[int] = Field(default_factory=list)
    failed_nodes: list[str] = Field(default_factory=list)
    pairs_total: int = 0
    pairs_recomputed: int = 0
    affected_pairs: list[PairImpact] = Field(default_factory=list)
    local_impact: list[str] = Field(default_factory=list)
    downstream_impact: list[str] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def impact_percentage(self) -> float:
        if not self.pairs_total:
            return 0.0
        changed = [p for p in self.affected_pairs if p.status != "unchanged"]
        return len(changed) / self.pairs_total * 100


class ScenarioDiffResult(BaseModel):
    """Full before/after matrix comparison for an override set."""
    generation: str
    modified_links: list[int] = Field(default_factory=list)
    pairs_total: int = 0
    changed_pairs: list[PairImpact] = Field(default_factory=list)
    impact_percentage: float = 0.0


class CountryTransitUse(BaseModel):
    country: str
    path_count: int = 0
    node_count: int = 0


class CountryPairAnalysis(BaseModel):
    """Path statistics between two countries."""
    source_country: str
    dest_country: str
    paths: list[PathResult] = Field(default_factory=list)
    node_count: int = 0
    link_count: int = 0
    avg_cost: float = 0.0
    min_cost: float = 0.0
    max_cost: float = 0.0
    transit_countries: list[CountryTransitUse] = Field(default_factory=list)


class Bottleneck(BaseModel):
    type: str = Field(description="link, node")
    id: str
    severity: str = Field(description="medium, high, critical")
    paths_affected: int = 0


class HealthReport(BaseModel):
    """Structural health metrics of a topology."""
    generation: str
    node_count: int = 0
    link_count: int = 0
    active_links: int = 0
    down_links: int = 0
    asymmetric_link_count: int = 0
    avg_links_per_node: float = 0.0
    country_count: int = 0
    component_count: int = 0
    single_points_of_failure: list[int] = Field(default_factory=list)
    avg_path_cost: float = 0.0
    redundancy_score: int = Field(default=0, ge=0, le=100)
    bottlenecks: list[Bottleneck] = Field(default_factory=list)


# ============================================================================
# Handler Response Types
# ============================================================================

class AnalysisError(BaseModel):
    """Error response from analytics."""
    error: bool = Field(default=True)
    error_type: str = Field(description="Error category: structural_error, invalid_weight, stale_override, validation_error")
    message: str = Field(description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional error context"
    )


class AnalysisResponse(BaseModel):
    """Response envelope returned by every handler."""
    success: bool = Field(default=True, description="Whether the call succeeded")
    result: Optional[Any] = Field(default=None, description="Result payload")
    generation: Optional[str] = Field(default=None, description="Graph generation the result was computed against")
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    error: Optional[AnalysisError] = Field(default=None, description="Error details if success=False")
