"""
Topology data type definitions using Pydantic

These models describe the normalized node/link records handed to the
rendering and export collaborators. Raw input is loose (costs may be given
as `cost` or `forward_cost`/`reverse_cost`, endpoints as ids or node
objects); after normalization every record has the shape below.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import networkx as nx
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


UNKNOWN_COUNTRY = "UNKNOWN"
STATUS_UP = "up"
STATUS_DOWN = "down"


# ============================================================================
# Node Structure
# ============================================================================

class Node(BaseModel):
    """
    Router in the topology.

    Extra input fields (hostname, loopback_ip, neighbor_count, layout
    positions, ...) are kept so they survive an export round-trip.
    """
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1, description="Unique node identifier, stable across reloads")
    name: str = Field("", description="Display name (defaults to id)")
    country: str = Field(UNKNOWN_COUNTRY, description="Free-form country code")
    is_active: bool = Field(True, description="Inactive nodes are excluded from path traversal")
    node_type: str = Field("router", description="Node kind")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        """Numeric ids are accepted and stored as strings."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("country", mode="before")
    @classmethod
    def default_country(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return UNKNOWN_COUNTRY
        return str(v).strip()

    @field_validator("name", "node_type", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    def model_post_init(self, __context: Any) -> None:
        if not self.name:
            self.name = self.id
        if not self.node_type:
            self.node_type = "router"


# ============================================================================
# Link Structure
# ============================================================================

class Link(BaseModel):
    """
    Physical point-to-point connection between two routers.

    One entity per unordered endpoint pair. The direction-aware weight is
    `forward_cost` when traversed source -> target and `reverse_cost` when
    traversed target -> source.
    """
    model_config = ConfigDict(extra="allow")

    index: int = Field(..., ge=0, description="Stable index assigned at normalization time")
    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    forward_cost: float = Field(..., description="Cost source -> target")
    reverse_cost: float = Field(..., description="Cost target -> source")
    status: str = Field(STATUS_UP, description="up / down / other")
    source_interface: Optional[str] = None
    target_interface: Optional[str] = None
    edge_type: Optional[str] = None

    # Simulation properties (effective graphs only)
    original_cost: Optional[float] = Field(None, description="forward_cost before overrides")
    original_reverse_cost: Optional[float] = Field(None, description="reverse_cost before overrides")
    original_status: Optional[str] = Field(None, description="status before overrides")
    is_modified: bool = Field(False, description="True when an override was applied")

    @field_validator("status", mode="before")
    @classmethod
    def normalise_status(cls, v):
        if v is None:
            return STATUS_UP
        return str(v).strip().lower() or STATUS_UP

    @computed_field
    @property
    def cost(self) -> float:
        """Legacy single cost, mirrors forward_cost."""
        return self.forward_cost

    @computed_field
    @property
    def is_asymmetric(self) -> bool:
        return self.forward_cost != self.reverse_cost

    @property
    def is_up(self) -> bool:
        return self.status != STATUS_DOWN

    def endpoints(self) -> Tuple[str, str]:
        return self.source, self.target

    def other_end(self, node_id: str) -> str:
        """Return the endpoint opposite to node_id."""
        if node_id == self.source:
            return self.target
        if node_id == self.target:
            return self.source
        raise KeyError(f"Node {node_id!r} is not an endpoint of link {self.index}")

    def cost_from(self, node_id: str) -> float:
        """Cost of traversing this link starting at node_id."""
        if node_id == self.source:
            return self.forward_cost
        if node_id == self.target:
            return self.reverse_cost
        raise KeyError(f"Node {node_id!r} is not an endpoint of link {self.index}")


# ============================================================================
# Graph Structure
# ============================================================================

def new_generation() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class TopologyGraph:
    """
    Normalized topology value object.

    Built once by the normalizer (or derived by the override layer) and
    passed explicitly into every query. Never mutated after construction.
    """
    nodes: Tuple[Node, ...]
    links: Tuple[Link, ...]
    node_lookup: Dict[str, Node]
    adjacency: Dict[str, Tuple[int, ...]]
    generation: str = field(default_factory=new_generation)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.node_lookup.get(node_id)

    def get_link(self, index: int) -> Optional[Link]:
        if 0 <= index < len(self.links):
            return self.links[index]
        return None

    def is_active_node(self, node_id: str) -> bool:
        node = self.node_lookup.get(node_id)
        return node is not None and node.is_active

    def is_traversable(self, link: Link) -> bool:
        """A link is usable when it is not down and both endpoints are active."""
        return (
            link.is_up
            and self.is_active_node(link.source)
            and self.is_active_node(link.target)
        )

    def traversable_links(self) -> Iterator[Link]:
        return (link for link in self.links if self.is_traversable(link))

    def arcs_from(self, node_id: str) -> Iterator[Tuple[str, float, int]]:
        """
        Yield (neighbor, weight, link_index) for every usable arc leaving node_id,
        in ascending link index order.
        """
        if not self.is_active_node(node_id):
            return
        for index in self.adjacency.get(node_id, ()):
            link = self.links[index]
            if not self.is_traversable(link):
                continue
            yield link.other_end(node_id), link.cost_from(node_id), index

    def active_nodes(self) -> List[Node]:
        return [n for n in self.nodes if n.is_active]

    def countries(self, active_only: bool = True) -> List[str]:
        nodes = self.active_nodes() if active_only else self.nodes
        return sorted({n.country for n in nodes})

    def find_link(self, a: str, b: str) -> Optional[Link]:
        """Link joining a and b in either orientation."""
        for index in self.adjacency.get(a, ()):
            link = self.links[index]
            if link.other_end(a) == b:
                return link
        return None

    def to_networkx(self, traversable_only: bool = True) -> nx.Graph:
        """
        Undirected NetworkX view of the physical topology.

        Edge attributes: index, forward_cost, reverse_cost, status.
        """
        G = nx.Graph()
        for node in self.nodes:
            if traversable_only and not node.is_active:
                continue
            G.add_node(node.id, country=node.country, node_type=node.node_type)
        for link in self.links:
            if traversable_only and not self.is_traversable(link):
                continue
            G.add_edge(
                link.source,
                link.target,
                index=link.index,
                forward_cost=link.forward_cost,
                reverse_cost=link.reverse_cost,
                status=link.status,
            )
        return G
