"""
Network health metrics: structural counts, single points of failure,
redundancy and bottlenecks.
"""

import logging
from collections import defaultdict
from itertools import combinations

import networkx as nx

from ..topology_types import TopologyGraph
from .aggregate import country_pair_matrix
from .types import Bottleneck, HealthReport

logger = logging.getLogger(__name__)


def _connected_country_pairs(nx_graph: nx.Graph) -> set[frozenset]:
    """Unordered country pairs with at least one connected node pair."""
    pairs = set()
    for component in nx.connected_components(nx_graph):
        countries = {nx_graph.nodes[n]['country'] for n in component}
        pairs.update(frozenset(p) for p in combinations(sorted(countries), 2))
    return pairs


def find_single_points_of_failure(G: TopologyGraph) -> list[int]:
    """
    Links whose failure disconnects at least one country pair.

    Only bridges of the active undirected view can disconnect anything, so
    just those are tested.
    """
    nx_graph = G.to_networkx(traversable_only=True)
    baseline = _connected_country_pairs(nx_graph)

    spof = []
    for u, v in nx.bridges(nx_graph):
        index = nx_graph.edges[u, v]['index']
        trial = nx_graph.copy()
        trial.remove_edge(u, v)
        if baseline - _connected_country_pairs(trial):
            spof.append(index)
    return sorted(spof)


def _severity(share: float, critical: float, high: float) -> str:
    if share >= critical:
        return 'critical'
    if share >= high:
        return 'high'
    return 'medium'


def network_health(G: TopologyGraph, bottleneck_threshold: float = 0.7) -> HealthReport:
    """
    Compute health metrics for a topology.

    Redundancy score (0-100):
        40 * share of ordered country pairs that are reachable
      + 30 * min(1, active links / nodes)
      + 30 - 10 per single point of failure (floored at 0)

    Raises:
        InvalidWeightError: any traversable link has a non-positive cost
    """
    nx_graph = G.to_networkx(traversable_only=True)
    node_count = len(G.nodes)
    link_count = len(G.links)
    active_links = sum(1 for link in G.links if G.is_traversable(link))
    down_links = sum(1 for link in G.links if not link.is_up)

    matrix = country_pair_matrix(G)
    reachable = [c for c in matrix.cells if c.reachable]
    spof = find_single_points_of_failure(G)

    reach_share = len(reachable) / len(matrix.cells) if matrix.cells else 1.0
    link_share = min(1.0, active_links / node_count) if node_count else 0.0
    redundancy = round(40 * reach_share + 30 * link_share + max(0, 30 - 10 * len(spof)))

    bottlenecks = []
    usage = matrix.link_utilization
    max_link_usage = max(usage.values(), default=0)
    for index, count in sorted(usage.items()):
        share = count / max_link_usage
        if share >= bottleneck_threshold:
            link = G.links[index]
            bottlenecks.append(Bottleneck(
                type='link',
                id=f"{link.source} <-> {link.target}",
                severity=_severity(share, 0.9, 0.8),
                paths_affected=count,
            ))

    node_usage: dict[str, int] = defaultdict(int)
    for cell in reachable:
        for node_id in cell.path.nodes[1:-1]:
            node_usage[node_id] += 1
    max_node_usage = max(node_usage.values(), default=0)
    for node_id, count in sorted(node_usage.items()):
        share = count / max_node_usage
        if share >= 0.8:
            bottlenecks.append(Bottleneck(
                type='node',
                id=node_id,
                severity=_severity(share, 0.95, 0.8),
                paths_affected=count,
            ))

    report = HealthReport(
        generation=G.generation,
        node_count=node_count,
        link_count=link_count,
        active_links=active_links,
        down_links=down_links,
        asymmetric_link_count=sum(1 for link in G.links if link.is_asymmetric),
        avg_links_per_node=(link_count * 2 / node_count) if node_count else 0.0,
        country_count=len(G.countries(active_only=False)),
        component_count=nx.number_connected_components(nx_graph),
        single_points_of_failure=spof,
        avg_path_cost=(sum(c.cost for c in reachable) / len(reachable)) if reachable else 0.0,
        redundancy_score=max(0, min(100, redundancy)),
        bottlenecks=bottlenecks,
    )
    logger.debug("Health %s: redundancy %d, %d SPOF", G.generation, report.redundancy_score, len(spof))
    return report
