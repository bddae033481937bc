"""
Override Layer

Simulated, non-persistent link edits. An OverrideSet is bound to the graph
generation it was recorded against; applying it to any other generation is
refused. apply_overrides never mutates the base graph.
"""

import logging
from typing import Any, Optional

from ..topology_types import Node, TopologyGraph
from .errors import StaleOverrideError
from .types import Diagnostic, OverrideRecord

logger = logging.getLogger(__name__)


class OverrideSet:
    """Override records keyed by link index for one graph generation."""

    def __init__(self, generation: Optional[str] = None):
        self.generation = generation
        self._records: dict[int, OverrideRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, link_index: int) -> bool:
        return link_index in self._records

    def __iter__(self):
        return iter(sorted(self._records.values(), key=lambda r: r.link_index))

    def get(self, link_index: int) -> Optional[OverrideRecord]:
        return self._records.get(link_index)

    def bind(self, graph: TopologyGraph) -> None:
        """Bind an empty set to a graph generation."""
        if self._records and self.generation != graph.generation:
            raise StaleOverrideError(self.generation, graph.generation)
        self.generation = graph.generation

    def set_override(
        self,
        graph: TopologyGraph,
        link_index: int,
        forward_cost: Optional[float] = None,
        reverse_cost: Optional[float] = None,
        status: Optional[str] = None,
    ) -> OverrideRecord:
        """
        Record a simulated edit of one link.

        Unspecified values keep the link's current base value. Originals are
        always taken from the base graph so repeated edits still diff against
        the loaded data.

        Raises:
            StaleOverrideError: set is bound to another generation
            IndexError: link_index is not a link of graph
        """
        self.bind(graph)
        link = graph.get_link(link_index)
        if link is None:
            raise IndexError(f"Link index {link_index} out of range (0..{len(graph.links) - 1})")

        record = OverrideRecord(
            link_index=link_index,
            forward_cost=link.forward_cost if forward_cost is None else forward_cost,
            reverse_cost=link.reverse_cost if reverse_cost is None else reverse_cost,
            status=link.status if status is None else str(status).strip().lower(),
            original_forward_cost=link.forward_cost,
            original_reverse_cost=link.reverse_cost,
            original_status=link.status,
        )
        record.is_modified = (
            record.forward_cost != record.original_forward_cost
            or record.reverse_cost != record.original_reverse_cost
            or record.status != record.original_status
        )
        self._records[link_index] = record
        logger.debug("Override link %d: %s", link_index, record.model_dump())
        return record

    def remove(self, link_index: int) -> None:
        self._records.pop(link_index, None)

    def clear(self) -> None:
        """Drop every record and release the generation binding."""
        if self._records:
            logger.info("Clearing %d override(s)", len(self._records))
        self._records.clear()
        self.generation = None

    def to_dict(self) -> dict[int, dict[str, Any]]:
        return {r.link_index: r.model_dump() for r in self}

    @classmethod
    def from_dict(cls, generation: str, data: dict[Any, dict[str, Any]]) -> 'OverrideSet':
        """
        Restore persisted records for a generation.

        Indices are not checked against any graph here; apply_overrides drops
        records that do not match a link.
        """
        overrides = cls(generation)
        for key, value in data.items():
            record = OverrideRecord.model_validate({'link_index': int(key), **value})
            overrides._records[record.link_index] = record
        return overrides


def apply_overrides(
    base: TopologyGraph,
    overrides: OverrideSet,
) -> tuple[TopologyGraph, list[Diagnostic]]:
    """
    Derive the effective graph.

    Args:
        base: Normalized base graph (not modified)
        overrides: Override set recorded against base.generation

    Returns:
        (effective graph, diagnostics). Records whose index is outside the
        base graph are dropped with a stale_override diagnostic.

    Raises:
        StaleOverrideError: overrides were recorded against another generation
    """
    if len(overrides) == 0:
        return base, []
    if overrides.generation != base.generation:
        raise StaleOverrideError(overrides.generation, base.generation)

    diagnostics: list[Diagnostic] = []
    links = list(base.links)
    for record in overrides:
        if not 0 <= record.link_index < len(links):
            diag = Diagnostic(
                code='stale_override',
                message=f"Override for link {record.link_index} does not match any link; dropped",
                link_index=record.link_index,
            )
            logger.warning(diag.message)
            diagnostics.append(diag)
            continue

        link = links[record.link_index]
        links[record.link_index] = link.model_copy(update={
            'forward_cost': record.forward_cost,
            'reverse_cost': record.reverse_cost,
            'status': record.status,
            'original_cost': link.forward_cost,
            'original_reverse_cost': link.reverse_cost,
            'original_status': link.status,
            'is_modified': record.is_modified,
        })

    effective = TopologyGraph(
        nodes=base.nodes,
        links=tuple(links),
        node_lookup=base.node_lookup,
        adjacency=base.adjacency,
        generation=base.generation,
        metadata=dict(base.metadata),
    )
    return effective, diagnostics


def with_failures(
    base: TopologyGraph,
    failed_links: Optional[list[int]] = None,
    failed_nodes: Optional[list[str]] = None,
) -> tuple[TopologyGraph, list[Diagnostic]]:
    """
    Derive a graph with links forced down and nodes forced inactive.

    Used by impact analysis; the base graph is not modified.
    """
    diagnostics: list[Diagnostic] = []
    failures = OverrideSet(base.generation)
    for index in failed_links or []:
        if base.get_link(index) is None:
            diagnostics.append(Diagnostic(
                code='unknown_element',
                message=f"Failed link {index} is not part of the topology",
                link_index=index,
            ))
            continue
        failures.set_override(base, index, status='down')

    degraded, _ = apply_overrides(base, failures)

    down_nodes = set()
    for node_id in failed_nodes or []:
        if node_id not in base.node_lookup:
            diagnostics.append(Diagnostic(
                code='unknown_element',
                message=f"Failed node {node_id!r} is not part of the topology",
                node_id=node_id,
            ))
            continue
        down_nodes.add(node_id)

    if down_nodes:
        nodes: list[Node] = [
            n.model_copy(update={'is_active': False}) if n.id in down_nodes else n
            for n in degraded.nodes
        ]
        degraded = TopologyGraph(
            nodes=tuple(nodes),
            links=degraded.links,
            node_lookup={n.id: n for n in nodes},
            adjacency=degraded.adjacency,
            generation=degraded.generation,
            metadata=dict(degraded.metadata),
        )

    for diag in diagnostics:
        logger.warning(diag.message)
    return degraded, diagnostics


def export_topology(G: TopologyGraph) -> dict[str, Any]:
    """
    Serialize a graph in the input shape.

    Re-normalizing the result reproduces the graph (overrides merged in) as
    a new baseline. Link entries carry forward_cost, reverse_cost and the
    legacy cost mirror.
    """
    return {
        'nodes': [node.model_dump() for node in G.nodes],
        'links': [link.model_dump(exclude_none=True) for link in G.links],
        'metadata': {
            **G.metadata,
            'node_count': len(G.nodes),
            'edge_count': len(G.links),
        },
    }
