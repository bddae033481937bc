"""
Aggregate Runners

Cross-cutting views built from repeated path computations: the country-pair
matrix, transit exposure, downstream impact of failures, scenario diffs and
country-pair path statistics.

Complexity policy: node/country lookup maps are built once per call, and
each ordered country pair costs at most one multi-source Dijkstra run
(all nodes of the source country as sources, stopping at the first settled
node of the destination country).
"""

import logging
from collections import defaultdict
from itertools import permutations
from typing import Optional

from ..settings import GRANULARITIES
from ..topology_types import TopologyGraph
from .errors import StaleResultError
from .overrides import with_failures
from .path_runner import enumerate_paths, shortest_path_tree, validate_weights
from .types import (
    CountryMatrixResult,
    CountryPairAnalysis,
    CountryPairCell,
    CountryPairRef,
    CountryTransitUse,
    ImpactResult,
    NodeExposure,
    PairImpact,
    PathResult,
    ScenarioDiffResult,
    TransitCountryExposure,
    TransitExposureResult,
)

logger = logging.getLogger(__name__)


def check_granularity(granularity: str) -> None:
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity {granularity!r}, expected one of {list(GRANULARITIES)}")


def build_country_index(G: TopologyGraph, granularity: str = 'all_pairs') -> dict[str, list[str]]:
    """
    Map country -> sorted active node ids.

    With granularity 'representative' each country keeps only its
    lexicographically smallest active node.

    Raises:
        ValueError: unknown granularity
    """
    check_granularity(granularity)

    index: dict[str, list[str]] = defaultdict(list)
    for node in G.active_nodes():
        index[node.country].append(node.id)

    result = {}
    for country, node_ids in index.items():
        node_ids.sort()
        result[country] = node_ids[:1] if granularity == 'representative' else node_ids
    return result


def best_path_between(
    G: TopologyGraph,
    source_nodes: list[str],
    dest_nodes: list[str],
) -> Optional[PathResult]:
    """Cheapest path from any source node to any destination node (one Dijkstra run)."""
    if not source_nodes or not dest_nodes:
        return None
    tree = shortest_path_tree(G, source_nodes, set(dest_nodes))
    if tree.reached_target is None:
        return None
    return tree.path_to(tree.reached_target)


def _ordered_pairs(countries: list[str]) -> list[tuple[str, str]]:
    return list(permutations(countries, 2))


def _select_countries(country_index: dict[str, list[str]], countries: Optional[list[str]]) -> list[str]:
    if countries is None:
        return sorted(country_index)
    return sorted(c for c in set(countries) if c in country_index)


# ============================================================================
# Country-pair matrix
# ============================================================================

def country_pair_matrix(
    G: TopologyGraph,
    granularity: str = 'all_pairs',
    countries: Optional[list[str]] = None,
) -> CountryMatrixResult:
    """
    Best path for every ordered pair of distinct countries.

    Args:
        G: Effective topology graph
        granularity: 'all_pairs' (minimum over every node pair) or
            'representative' (smallest active node id per country)
        countries: Restrict to these countries (default: all with active nodes)

    Returns:
        CountryMatrixResult with one cell per ordered pair and link utilization

    Raises:
        ValueError: unknown granularity
        InvalidWeightError: any traversable link has a non-positive cost
    """
    country_index = build_country_index(G, granularity)
    validate_weights(G)
    selected = _select_countries(country_index, countries)

    cells = []
    utilization: dict[int, int] = defaultdict(int)
    for src, dst in _ordered_pairs(selected):
        path = best_path_between(G, country_index[src], country_index[dst])
        cell = CountryPairCell(source_country=src, dest_country=dst)
        if path is not None:
            cell.reachable = True
            cell.cost = path.total_cost
            cell.hop_count = path.hop_count
            cell.path = path
            for link_index in path.links:
                utilization[link_index] += 1
        cells.append(cell)

    logger.debug(
        "Country matrix (%s): %d countries, %d pairs, %d reachable",
        granularity, len(selected), len(cells), sum(1 for c in cells if c.reachable),
    )
    return CountryMatrixResult(
        generation=G.generation,
        granularity=granularity,
        countries=selected,
        cells=cells,
        link_utilization=dict(sorted(utilization.items())),
    )


# ============================================================================
# Transit exposure
# ============================================================================

def transit_exposure(
    G: TopologyGraph,
    max_pairs: int = 10000,
    granularity: str = 'all_pairs',
    countries: Optional[list[str]] = None,
) -> TransitExposureResult:
    """
    Which nodes and countries carry traffic between other countries.

    A node is exposed to a country pair when it is an intermediate hop of
    the pair's best path. A country is a transit country for a pair when an
    intermediate hop lies in it and it is neither endpoint country.

    Criticality (0-100) weights: 70% share of the busiest transit country's
    path count, 20% share of all ordered country pairs served, 10% share of
    active nodes used as transit.

    Args:
        G: Effective topology graph
        max_pairs: Cap on ordered country pairs analysed; reaching it sets truncated
        granularity: See country_pair_matrix
        countries: Restrict to these countries

    Raises:
        ValueError: unknown granularity
        InvalidWeightError: any traversable link has a non-positive cost
    """
    # Lookup maps built once, before the pair loop
    node_country = {node.id: node.country for node in G.nodes}
    country_index = build_country_index(G, granularity)
    validate_weights(G)
    selected = _select_countries(country_index, countries)
    pairs = _ordered_pairs(selected)

    node_pairs: dict[str, list[tuple[str, str]]] = defaultdict(list)
    transit_paths: dict[str, int] = defaultdict(int)
    transit_pairs: dict[str, dict[tuple[str, str], int]] = defaultdict(lambda: defaultdict(int))
    transit_nodes: dict[str, set[str]] = defaultdict(set)

    analyzed = 0
    truncated = False
    for src, dst in pairs:
        if analyzed >= max_pairs:
            truncated = True
            logger.warning(
                "Transit exposure truncated after %d of %d country pairs", analyzed, len(pairs)
            )
            break
        analyzed += 1

        path = best_path_between(G, country_index[src], country_index[dst])
        if path is None:
            continue

        crossed = set()
        for node_id in path.nodes[1:-1]:
            node_pairs[node_id].append((src, dst))
            country = node_country[node_id]
            if country not in (src, dst):
                crossed.add(country)
                transit_nodes[country].add(node_id)
        for country in crossed:
            transit_paths[country] += 1
            transit_pairs[country][(src, dst)] += 1

    nodes = [
        NodeExposure(
            node_id=node_id,
            country=node_country[node_id],
            pair_count=len(served),
            pairs=[CountryPairRef(source=s, dest=d) for s, d in served],
        )
        for node_id, served in node_pairs.items()
    ]
    nodes.sort(key=lambda n: (-n.pair_count, n.node_id))

    max_paths = max(transit_paths.values(), default=1)
    total_pairs = max(len(pairs), 1)
    active_count = max(len(G.active_nodes()), 1)

    transit_countries = []
    for country, path_count in transit_paths.items():
        served = transit_pairs[country]
        score = (
            path_count / max_paths * 70
            + len(served) / total_pairs * 20
            + len(transit_nodes[country]) / active_count * 10
        )
        transit_countries.append(TransitCountryExposure(
            country=country,
            transit_path_count=path_count,
            transit_for_pairs=sorted(
                (CountryPairRef(source=s, dest=d, path_count=n) for (s, d), n in served.items()),
                key=lambda p: (-p.path_count, p.source, p.dest),
            ),
            criticality_score=min(100, round(score)),
            node_count=len(transit_nodes[country]),
        ))
    transit_countries.sort(key=lambda c: (-c.criticality_score, c.country))

    return TransitExposureResult(
        generation=G.generation,
        pairs_analyzed=analyzed,
        pairs_total=len(pairs),
        truncated=truncated,
        nodes=nodes,
        countries=transit_countries,
    )


# ============================================================================
# Impact analysis
# ============================================================================

def _compare_paths(
    src: str,
    dst: str,
    before: Optional[PathResult],
    after: Optional[PathResult],
) -> PairImpact:
    if before is None and after is None:
        status = 'unchanged'
    elif after is None:
        status = 'disconnected'
    elif before is None:
        status = 'restored'
    elif after.nodes != before.nodes:
        status = 'rerouted'
    elif after.total_cost != before.total_cost:
        status = 'cost_changed'
    else:
        status = 'unchanged'

    delta = None
    if before is not None and after is not None:
        delta = after.total_cost - before.total_cost

    return PairImpact(
        source_country=src,
        dest_country=dst,
        status=status,
        before=before,
        after=after,
        cost_delta=delta,
    )


def downstream_impact(
    G: TopologyGraph,
    failed_links: Optional[list[int]] = None,
    failed_nodes: Optional[list[str]] = None,
    baseline: Optional[CountryMatrixResult] = None,
    granularity: str = 'all_pairs',
) -> ImpactResult:
    """
    Effect of failing links and/or nodes on country-pair best paths.

    Only pairs whose baseline path touched a failed element are recomputed.
    Failures only remove elements, so an untouched best path stays optimal.

    Args:
        G: Effective topology graph before the failures
        failed_links: Link indices to force down
        failed_nodes: Node ids to force inactive
        baseline: Matrix for G (computed when omitted)
        granularity: Used when baseline is computed here

    Raises:
        StaleResultError: baseline belongs to another graph generation
        ValueError: unknown granularity
        InvalidWeightError: any traversable link has a non-positive cost
    """
    check_granularity(granularity)
    if baseline is None:
        baseline = country_pair_matrix(G, granularity)
    elif baseline.generation != G.generation:
        raise StaleResultError(baseline.generation, G.generation)

    degraded, diagnostics = with_failures(G, failed_links, failed_nodes)
    link_set = {i for i in (failed_links or []) if G.get_link(i) is not None}
    node_set = {n for n in (failed_nodes or []) if n in G.node_lookup}

    country_index = build_country_index(degraded, baseline.granularity)

    affected = []
    recomputed = 0
    downstream: set[str] = set()
    for cell in baseline.cells:
        before = cell.path
        if before is None or not before.touches(link_set, node_set):
            continue
        recomputed += 1
        after = best_path_between(
            degraded,
            country_index.get(cell.source_country, []),
            country_index.get(cell.dest_country, []),
        )
        impact = _compare_paths(cell.source_country, cell.dest_country, before, after)
        if impact.status != 'unchanged':
            downstream.update(before.nodes)
        affected.append(impact)

    local = set(node_set)
    for index in link_set:
        local.update(G.links[index].endpoints())

    logger.info(
        "Impact of %d link(s), %d node(s): %d of %d pairs recomputed",
        len(link_set), len(node_set), recomputed, len(baseline.cells),
    )
    return ImpactResult(
        generation=G.generation,
        failed_links=sorted(link_set),
        failed_nodes=sorted(node_set),
        pairs_total=len(baseline.cells),
        pairs_recomputed=recomputed,
        affected_pairs=affected,
        local_impact=sorted(local),
        downstream_impact=sorted(downstream - local),
        diagnostics=diagnostics,
    )


def compare_scenarios(
    base: TopologyGraph,
    effective: TopologyGraph,
    granularity: str = 'all_pairs',
) -> ScenarioDiffResult:
    """
    Ripple effect of an override set: full matrix before and after.

    Cost edits can attract paths that never touched the edited link, so
    this is a full recomputation rather than an incremental one.

    Raises:
        StaleResultError: effective was not derived from base
        InvalidWeightError: either graph has a non-positive traversable cost
    """
    if base.generation != effective.generation:
        raise StaleResultError(effective.generation, base.generation)

    before = country_pair_matrix(base, granularity)
    after = country_pair_matrix(effective, granularity)
    after_cells = {(c.source_country, c.dest_country): c for c in after.cells}

    changed = []
    for cell in before.cells:
        key = (cell.source_country, cell.dest_country)
        after_cell = after_cells.get(key)
        impact = _compare_paths(
            cell.source_country, cell.dest_country,
            cell.path, after_cell.path if after_cell else None,
        )
        if impact.status != 'unchanged':
            changed.append(impact)

    pairs_total = len(before.cells)
    return ScenarioDiffResult(
        generation=base.generation,
        modified_links=[link.index for link in effective.links if link.is_modified],
        pairs_total=pairs_total,
        changed_pairs=changed,
        impact_percentage=(len(changed) / pairs_total * 100) if pairs_total else 0.0,
    )


# ============================================================================
# Country-pair path statistics
# ============================================================================

def analyze_country_pair(
    G: TopologyGraph,
    source_country: str,
    dest_country: str,
    paths_per_pair: int = 3,
    max_hops: int = 8,
) -> CountryPairAnalysis:
    """
    Bounded path enumeration between every node of two countries.

    Args:
        G: Effective topology graph
        source_country: Country of the source nodes
        dest_country: Country of the destination nodes
        paths_per_pair: all-paths cap per node pair
        max_hops: all-paths hop bound

    Raises:
        InvalidWeightError: any traversable link has a non-positive cost
    """
    validate_weights(G)
    node_country = {node.id: node.country for node in G.nodes}
    country_index = build_country_index(G)
    nx_graph = G.to_networkx(traversable_only=True)

    paths: list[PathResult] = []
    for s in country_index.get(source_country, []):
        for d in country_index.get(dest_country, []):
            paths.extend(enumerate_paths(G, s, d, max_hops, paths_per_pair, nx_graph))
    paths.sort(key=PathResult.sort_key)

    result = CountryPairAnalysis(source_country=source_country, dest_country=dest_country, paths=paths)
    if not paths:
        return result

    costs = [p.total_cost for p in paths]
    used_nodes = {n for p in paths for n in p.nodes}
    used_links = {i for p in paths for i in p.links}

    transit_paths: dict[str, int] = defaultdict(int)
    transit_nodes: dict[str, set[str]] = defaultdict(set)
    for path in paths:
        crossed = set()
        for node_id in path.nodes[1:-1]:
            country = node_country[node_id]
            if country not in (source_country, dest_country):
                crossed.add(country)
                transit_nodes[country].add(node_id)
        for country in crossed:
            transit_paths[country] += 1

    result.node_count = len(used_nodes)
    result.link_count = len(used_links)
    result.avg_cost = sum(costs) / len(costs)
    result.min_cost = min(costs)
    result.max_cost = max(costs)
    result.transit_countries = sorted(
        (
            CountryTransitUse(country=c, path_count=n, node_count=len(transit_nodes[c]))
            for c, n in transit_paths.items()
        ),
        key=lambda t: (-t.path_count, t.country),
    )
    return result
