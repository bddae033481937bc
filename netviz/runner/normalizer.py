"""
Topology Normalizer

Converts raw node/link records (as exported by the topology collector or a
previous export of this engine) into a validated TopologyGraph.
"""

import logging
import math
from typing import Any, Optional

from pydantic import ValidationError

from ..topology_types import Link, Node, TopologyGraph, new_generation
from .errors import StructuralError
from .types import Diagnostic

logger = logging.getLogger(__name__)

_LINK_FIELDS = (
    'source', 'target', 'cost', 'forward_cost', 'reverse_cost', 'status',
    'index', 'is_asymmetric', 'is_symmetric',
    'original_cost', 'original_reverse_cost', 'original_status', 'is_modified',
)


def normalize_topology_data(data: Any) -> tuple[TopologyGraph, list[Diagnostic]]:
    """
    Normalize a whole topology document.

    Args:
        data: Mapping with 'nodes', 'links' and optional 'metadata'

    Returns:
        (graph, diagnostics)

    Raises:
        StructuralError: document is not a mapping or lacks a node list
    """
    if not isinstance(data, dict):
        raise StructuralError(
            f"Topology must be an object with 'nodes' and 'links', got {type(data).__name__}"
        )
    if 'nodes' not in data:
        raise StructuralError("Topology is missing the 'nodes' array")

    links = data.get('links')
    if links is None:
        links = []

    metadata = data.get('metadata')
    return normalize(data['nodes'], links, metadata=metadata if isinstance(metadata, dict) else None)


def normalize(
    raw_nodes: Any,
    raw_links: Any,
    metadata: Optional[dict[str, Any]] = None,
) -> tuple[TopologyGraph, list[Diagnostic]]:
    """
    Build a TopologyGraph from raw node and link records.

    Nodes are validated strictly: any problem rejects the whole load.
    Links are validated per record: problems are reported as diagnostics
    and the record is excluded.

    Merge policy: one link entity per unordered endpoint pair. The first
    record for a pair fixes the orientation (source -> target). A later
    record in the opposite orientation sets reverse_cost; a later record in
    the same orientation replaces forward_cost.

    Args:
        raw_nodes: List of node dicts ({id, name, country, is_active, ...})
        raw_links: List of link dicts ({source, target, cost | forward_cost/reverse_cost, status})
        metadata: Optional metadata carried through to export

    Returns:
        (graph, diagnostics)

    Raises:
        StructuralError: empty or malformed node list, non-list link list
    """
    nodes = _build_nodes(raw_nodes)
    node_lookup = {node.id: node for node in nodes}

    if not isinstance(raw_links, (list, tuple)):
        raise StructuralError(f"'links' must be an array, got {type(raw_links).__name__}")

    diagnostics: list[Diagnostic] = []
    link_data: list[dict[str, Any]] = []
    pair_index: dict[tuple[str, str], int] = {}

    for position, raw in enumerate(raw_links):
        if not isinstance(raw, dict):
            diagnostics.append(Diagnostic(
                code='malformed_link',
                message=f"Link record {position} is not an object",
                record=position,
            ))
            continue

        source = _endpoint_id(raw.get('source'))
        target = _endpoint_id(raw.get('target'))

        missing = [ref for ref in (source, target) if ref is None or ref not in node_lookup]
        if missing:
            diagnostics.append(Diagnostic(
                code='unknown_endpoint',
                message=f"Link record {position} references unknown node(s): "
                        f"{', '.join(repr(m) for m in missing)}",
                record=position,
            ))
            continue

        if source == target:
            diagnostics.append(Diagnostic(
                code='self_loop',
                message=f"Link record {position} connects {source!r} to itself",
                record=position,
                node_id=source,
            ))
            continue

        forward = _extract_cost(raw, 'forward_cost', 'cost')
        if forward is None:
            diagnostics.append(Diagnostic(
                code='missing_cost',
                message=f"Link record {position} ({source} -> {target}) has no numeric cost",
                record=position,
            ))
            continue
        explicit_reverse = _extract_cost(raw, 'reverse_cost')

        existing = pair_index.get((source, target))
        if existing is not None:
            # Same orientation seen again: latest data wins for that direction
            entry = link_data[existing]
            entry['forward_cost'] = forward
            if explicit_reverse is not None:
                entry['reverse_cost'] = explicit_reverse
            diagnostics.append(Diagnostic(
                code='duplicate_link',
                message=f"Link record {position} repeats {source} -> {target}; forward cost updated",
                record=position,
                link_index=existing,
            ))
            _check_status(entry, raw, position, existing, diagnostics)
            continue

        existing = pair_index.get((target, source))
        if existing is not None:
            # Opposite orientation: this record's cost is the existing link's reverse cost
            entry = link_data[existing]
            entry['reverse_cost'] = forward
            _check_status(entry, raw, position, existing, diagnostics)
            continue

        entry = {
            **{k: v for k, v in raw.items() if k not in _LINK_FIELDS},
            'index': len(link_data),
            'source': source,
            'target': target,
            'forward_cost': forward,
            'reverse_cost': explicit_reverse if explicit_reverse is not None else forward,
            'status': raw.get('status'),
        }
        # Validate before the index is taken so indices stay dense
        try:
            Link.model_validate(entry)
        except ValidationError as e:
            first = e.errors()[0]
            field = '.'.join(str(part) for part in first['loc']) or 'record'
            diagnostics.append(Diagnostic(
                code='malformed_link',
                message=f"Link record {position} ({source} -> {target}) has invalid {field}: {first['msg']}",
                record=position,
            ))
            continue

        pair_index[(source, target)] = entry['index']
        link_data.append(entry)

    links = []
    for entry in link_data:
        link = Link(**entry)
        for direction, value in (('forward', link.forward_cost), ('reverse', link.reverse_cost)):
            if value <= 0:
                diagnostics.append(Diagnostic(
                    code='non_positive_cost',
                    message=f"Link {link.index} ({link.source} <-> {link.target}) has "
                            f"non-positive {direction} cost {value}",
                    link_index=link.index,
                ))
        links.append(link)

    adjacency: dict[str, list[int]] = {node.id: [] for node in nodes}
    for link in links:
        adjacency[link.source].append(link.index)
        adjacency[link.target].append(link.index)

    graph = TopologyGraph(
        nodes=tuple(nodes),
        links=tuple(links),
        node_lookup=node_lookup,
        adjacency={node_id: tuple(indices) for node_id, indices in adjacency.items()},
        generation=new_generation(),
        metadata=dict(metadata or {}),
    )

    for diag in diagnostics:
        logger.warning("normalize: %s", diag.message)
    logger.info(
        "Normalized topology %s: %d nodes, %d links (%d raw link records, %d diagnostics)",
        graph.generation, len(nodes), len(links), len(raw_links), len(diagnostics),
    )
    return graph, diagnostics


def _build_nodes(raw_nodes: Any) -> list[Node]:
    """Validate the node list; any problem is fatal."""
    if not isinstance(raw_nodes, (list, tuple)):
        raise StructuralError(f"'nodes' must be an array, got {type(raw_nodes).__name__}")
    if not raw_nodes:
        raise StructuralError("Topology contains no nodes")

    nodes: list[Node] = []
    seen: set[str] = set()
    for position, raw in enumerate(raw_nodes):
        if not isinstance(raw, dict):
            raise StructuralError(
                f"Node record {position} is not an object",
                details={'record': position},
            )
        try:
            node = Node.model_validate(raw)
        except ValidationError as e:
            raise StructuralError(
                f"Node record {position} is invalid: {e.errors()[0]['msg']}",
                details={'record': position, 'errors': e.errors(include_url=False)},
            ) from e
        if node.id in seen:
            raise StructuralError(
                f"Duplicate node id {node.id!r} at record {position}",
                details={'record': position, 'node_id': node.id},
            )
        seen.add(node.id)
        nodes.append(node)
    return nodes


def _endpoint_id(ref: Any) -> Optional[str]:
    """
    Resolve a link endpoint reference.

    The renderer replaces endpoint ids with node objects, so both forms are
    accepted.
    """
    if isinstance(ref, dict):
        ref = ref.get('id')
    if ref is None or isinstance(ref, bool):
        return None
    if isinstance(ref, (int, float)):
        return str(ref)
    if isinstance(ref, str):
        return ref.strip() or None
    return None


def _extract_cost(raw: dict, *keys: str) -> Optional[float]:
    """First finite numeric value among keys, or None."""
    for key in keys:
        value = raw.get(key)
        if value is None or isinstance(value, bool):
            continue
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                continue
        if isinstance(value, (int, float)) and math.isfinite(value):
            return float(value)
    return None


def _check_status(
    entry: dict[str, Any],
    raw: dict,
    position: int,
    index: int,
    diagnostics: list[Diagnostic],
) -> None:
    status = raw.get('status')
    if status is None:
        return
    current = str(entry.get('status') or 'up').strip().lower()
    if str(status).strip().lower() != current:
        diagnostics.append(Diagnostic(
            code='status_conflict',
            message=f"Link record {position} reports status {status!r} for link {index}, "
                    f"keeping {current!r}",
            record=position,
            link_index=index,
        ))


def graph_summary(graph: TopologyGraph) -> dict:
    """
    Basic statistics about a normalized graph.

    Returns:
        Dict with node_count, link_count, active_node_count, countries,
        asymmetric_link_count
    """
    return {
        'generation': graph.generation,
        'node_count': len(graph.nodes),
        'link_count': len(graph.links),
        'active_node_count': len(graph.active_nodes()),
        'countries': graph.countries(active_only=False),
        'asymmetric_link_count': sum(1 for link in graph.links if link.is_asymmetric),
    }
