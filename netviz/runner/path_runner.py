"""
Path Analysis Runner

Shortest-path and bounded all-simple-paths search over a TopologyGraph.

Every physical link induces up to two arcs: source -> target weighted by
forward_cost and target -> source weighted by reverse_cost. Down links and
inactive nodes are absent from traversal.
"""

import heapq
import logging
import math
from dataclasses import dataclass, field
from itertools import islice
from typing import Iterable, Optional

import networkx as nx

from ..topology_types import TopologyGraph
from .errors import InvalidWeightError
from .types import PathResult

logger = logging.getLogger(__name__)


@dataclass
class ShortestPathTree:
    """Result of a (multi-source) Dijkstra run."""
    sources: set[str]
    distances: dict[str, float] = field(default_factory=dict)
    predecessors: dict[str, tuple[str, int]] = field(default_factory=dict)  # node -> (prev node, link index)
    settled: set[str] = field(default_factory=set)
    reached_target: Optional[str] = None

    def path_to(self, node_id: str) -> Optional[PathResult]:
        """Reconstruct the best path ending at node_id, or None if unreached."""
        if node_id not in self.settled or node_id in self.sources:
            return None

        nodes = [node_id]
        links = []
        current = node_id
        while current not in self.sources:
            prev, link_index = self.predecessors[current]
            nodes.append(prev)
            links.append(link_index)
            current = prev

        nodes.reverse()
        links.reverse()
        return PathResult(
            nodes=nodes,
            links=links,
            total_cost=self.distances[node_id],
            hop_count=len(links),
        )


def validate_weights(G: TopologyGraph, source_id: Optional[str] = None) -> None:
    """
    Reject non-positive costs before any traversal.

    With source_id, only links in the source's connected component are
    checked; otherwise every traversable link is.

    Raises:
        InvalidWeightError: for the lowest-index offending link
    """
    if source_id is None:
        candidates = G.traversable_links()
    else:
        nx_graph = G.to_networkx(traversable_only=True)
        if source_id not in nx_graph:
            return
        component = nx.node_connected_component(nx_graph, source_id)
        candidates = (
            G.links[data['index']]
            for _, _, data in nx_graph.subgraph(component).edges(data=True)
        )

    offenders = []
    for link in candidates:
        if link.forward_cost <= 0 or not math.isfinite(link.forward_cost):
            offenders.append((link.index, 'forward', link.forward_cost))
        elif link.reverse_cost <= 0 or not math.isfinite(link.reverse_cost):
            offenders.append((link.index, 'reverse', link.reverse_cost))

    if offenders:
        index, direction, cost = min(offenders)
        raise InvalidWeightError(index, direction, cost)


def shortest_path_tree(
    G: TopologyGraph,
    sources: Iterable[str],
    targets: Optional[set[str]] = None,
) -> ShortestPathTree:
    """
    Multi-source Dijkstra over the direction-aware arc view.

    All sources start at distance 0. When targets is given the search stops
    as soon as the first target is settled, which makes this the minimum over
    every (source, target) node pair in a single run.

    Ties are broken by link index: among equal-distance candidates, the one
    arriving over the lower-indexed link wins. Weights are assumed to have
    been validated (see validate_weights).
    """
    start = sorted(s for s in set(sources) if G.is_active_node(s))
    tree = ShortestPathTree(sources=set(start))

    heap: list[tuple[float, int, str]] = []
    for s in start:
        tree.distances[s] = 0.0
        heapq.heappush(heap, (0.0, -1, s))

    while heap:
        dist, _, node = heapq.heappop(heap)
        if node in tree.settled or dist > tree.distances.get(node, math.inf):
            continue
        tree.settled.add(node)

        if targets and node in targets and node not in tree.sources:
            tree.reached_target = node
            break

        for neighbor, weight, link_index in G.arcs_from(node):
            if neighbor in tree.settled:
                continue
            candidate = dist + weight
            current = tree.distances.get(neighbor)
            if (
                current is None
                or candidate < current
                or (candidate == current
                    and neighbor in tree.predecessors
                    and link_index < tree.predecessors[neighbor][1])
            ):
                tree.distances[neighbor] = candidate
                tree.predecessors[neighbor] = (node, link_index)
                heapq.heappush(heap, (candidate, link_index, neighbor))

    return tree


def shortest_path(G: TopologyGraph, source_id: str, target_id: str) -> Optional[PathResult]:
    """
    Best path from source_id to target_id.

    Args:
        G: Effective topology graph
        source_id: Start node id
        target_id: End node id

    Returns:
        PathResult, or None when either node is absent/inactive, the nodes
        are disconnected, or source_id == target_id

    Raises:
        InvalidWeightError: a link reachable from source_id has a non-positive cost
    """
    if source_id == target_id:
        return None
    if not G.is_active_node(source_id) or not G.is_active_node(target_id):
        return None

    validate_weights(G, source_id)

    tree = shortest_path_tree(G, [source_id], {target_id})
    path = tree.path_to(target_id)
    if path is None:
        logger.debug("No path %s -> %s", source_id, target_id)
    return path


def all_paths(
    G: TopologyGraph,
    source_id: str,
    target_id: str,
    max_hops: int,
    max_results: int,
) -> list[PathResult]:
    """
    Bounded enumeration of simple paths from source_id to target_id.

    No path repeats a node. Paths longer than max_hops links are not
    explored, and the search itself stops once max_results paths are
    collected.

    Returns:
        Paths sorted by (total_cost, hop_count, node id sequence); empty
        when nothing fits the bounds

    Raises:
        InvalidWeightError: a link reachable from source_id has a non-positive cost
    """
    if max_hops <= 0 or max_results <= 0 or source_id == target_id:
        return []
    if not G.is_active_node(source_id) or not G.is_active_node(target_id):
        return []

    validate_weights(G, source_id)
    return enumerate_paths(G, source_id, target_id, max_hops, max_results)


def enumerate_paths(
    G: TopologyGraph,
    source_id: str,
    target_id: str,
    max_hops: int,
    max_results: int,
    nx_graph: Optional[nx.Graph] = None,
) -> list[PathResult]:
    """
    all_paths without the weight check, for callers that validated the whole graph.

    nx_graph is the traversable view of G; pass it when enumerating many
    node pairs of the same graph.
    """
    if max_hops <= 0 or max_results <= 0 or source_id == target_id:
        return []
    if not G.is_active_node(source_id) or not G.is_active_node(target_id):
        return []

    if nx_graph is None:
        nx_graph = G.to_networkx(traversable_only=True)

    results = []
    found = nx.all_simple_paths(nx_graph, source_id, target_id, cutoff=max_hops)
    for node_ids in islice(found, max_results):
        results.append(PathResult(
            nodes=node_ids,
            links=[nx_graph.edges[a, b]['index'] for a, b in zip(node_ids, node_ids[1:])],
            total_cost=path_cost(G, node_ids),
            hop_count=len(node_ids) - 1,
        ))

    if len(results) >= max_results:
        logger.debug("all_paths %s -> %s stopped at cap %d", source_id, target_id, max_results)

    results.sort(key=PathResult.sort_key)
    return results


def path_cost(G: TopologyGraph, node_ids: list[str]) -> Optional[float]:
    """
    Direction-aware cost of walking node_ids in order, or None if two
    consecutive nodes are not joined by a link.
    """
    total = 0.0
    for a, b in zip(node_ids, node_ids[1:]):
        link = G.find_link(a, b)
        if link is None:
            return None
        total += link.cost_from(a)
    return total
