"""
Shared handlers for the engine's external interface.

Each handler takes a TopologySession and a request dict and returns a
response dict (AnalysisResponse shape). Engine exceptions become explicit
failure values here; not-found results are successful responses with an
empty/None result.
"""
import logging
from typing import Any, Callable, Dict, Optional

from .runner.aggregate import (
    analyze_country_pair,
    compare_scenarios,
    country_pair_matrix,
    downstream_impact,
    transit_exposure,
)
from .runner.errors import TopologyError
from .runner.health import network_health
from .runner.normalizer import graph_summary
from .runner.overrides import apply_overrides, export_topology
from .runner.path_runner import all_paths, shortest_path
from .runner.session import TopologySession
from .runner.types import AnalysisError, AnalysisResponse, Diagnostic
from .settings import compute_settings_signature

logger = logging.getLogger(__name__)


def _respond(fn: Callable[[], tuple[Any, list[Diagnostic]]], session: TopologySession) -> Dict[str, Any]:
    """Run fn and wrap its (result, diagnostics) or its failure in an AnalysisResponse."""
    try:
        result, diagnostics = fn()
    except TopologyError as e:
        logger.warning("%s: %s", e.error_type, e.message)
        response = AnalysisResponse(
            success=False,
            generation=session.generation,
            error=AnalysisError(error_type=e.error_type, message=e.message, details=e.details),
        )
    except (ValueError, LookupError, TypeError) as e:
        response = AnalysisResponse(
            success=False,
            generation=session.generation,
            error=AnalysisError(error_type='validation_error', message=str(e)),
        )
    else:
        if hasattr(result, 'model_dump'):
            result = result.model_dump()
        response = AnalysisResponse(
            success=True,
            result=result,
            generation=session.generation,
            diagnostics=diagnostics,
        )
    return response.model_dump()


def _require(data: Dict[str, Any], key: str) -> Any:
    value = data.get(key)
    if value is None:
        raise ValueError(f"Missing '{key}' field")
    return value


def _int_or(data: Dict[str, Any], key: str, default: int) -> int:
    value = data.get(key)
    return default if value is None else int(value)


def _topology_payload(session: TopologySession) -> tuple[Dict[str, Any], list[Diagnostic]]:
    graph, diagnostics = session.effective_graph()
    return {
        **graph_summary(graph),
        'simulation': session.simulation,
        'nodes': [n.model_dump() for n in graph.nodes],
        'links': [l.model_dump() for l in graph.links],
    }, diagnostics


def handle_load_topology(session: TopologySession, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Load a new topology. Clears every override.

    Request: { "topology": { "nodes": [...], "links": [...] } }
    """
    def run():
        load_diagnostics = session.load(_require(data, 'topology'))
        payload, diagnostics = _topology_payload(session)
        return payload, load_diagnostics + diagnostics

    return _respond(run, session)


def handle_get_topology(session: TopologySession, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Normalized node/link arrays of the effective graph, for rendering."""
    return _respond(lambda: _topology_payload(session), session)


def handle_set_simulation(session: TopologySession, data: Dict[str, Any]) -> Dict[str, Any]:
    """Request: { "enabled": true }"""
    def run():
        session.require_base()
        session.simulation = bool(data.get('enabled', False))
        return {'simulation': session.simulation}, []

    return _respond(run, session)


def handle_set_override(session: TopologySession, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Record a simulated link edit.

    Request: { "link_index": 2, "forward_cost": 50, "reverse_cost": 40, "status": "up" }
    """
    def run():
        record = session.set_override(
            int(_require(data, 'link_index')),
            forward_cost=data.get('forward_cost', data.get('cost')),
            reverse_cost=data.get('reverse_cost'),
            status=data.get('status'),
        )
        return record, []

    return _respond(run, session)


def handle_remove_override(session: TopologySession, data: Dict[str, Any]) -> Dict[str, Any]:
    """Request: { "link_index": 2 }"""
    def run():
        session.require_base()
        session.remove_override(int(_require(data, 'link_index')))
        return {'override_count': len(session.overrides)}, []

    return _respond(run, session)


def handle_clear_overrides(session: TopologySession, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    def run():
        session.clear_overrides()
        return {'override_count': 0}, []

    return _respond(run, session)


def handle_shortest_path(session: TopologySession, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Request: { "source": "R1", "target": "R3" }
    Response result: PathResult dict, or None when no path exists.
    """
    def run():
        graph, diagnostics = session.effective_graph()
        path = shortest_path(graph, str(_require(data, 'source')), str(_require(data, 'target')))
        return (path.model_dump() if path else None), diagnostics

    return _respond(run, session)


def handle_all_paths(session: TopologySession, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Request: { "source": "R1", "target": "R3", "max_hops": 10, "max_results": 50 }
    """
    def run():
        graph, diagnostics = session.effective_graph()
        paths = all_paths(
            graph,
            str(_require(data, 'source')),
            str(_require(data, 'target')),
            max_hops=_int_or(data, 'max_hops', session.settings.default_max_hops),
            max_results=_int_or(data, 'max_results', session.settings.default_max_results),
        )
        return [p.model_dump() for p in paths], diagnostics

    return _respond(run, session)


def handle_country_matrix(session: TopologySession, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Request: { "granularity": "all_pairs", "countries": ["US", "DE"] }"""
    data = data or {}

    def run():
        graph, diagnostics = session.effective_graph()
        matrix = country_pair_matrix(
            graph,
            granularity=data.get('granularity') or session.settings.matrix_granularity,
            countries=data.get('countries'),
        )
        return matrix, diagnostics

    return _respond(run, session)


def handle_transit_exposure(session: TopologySession, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Request: { "max_pairs": 1000, "countries": [...] }"""
    data = data or {}

    def run():
        graph, diagnostics = session.effective_graph()
        result = transit_exposure(
            graph,
            max_pairs=_int_or(data, 'max_pairs', session.settings.max_transit_pairs),
            granularity=data.get('granularity') or session.settings.matrix_granularity,
            countries=data.get('countries'),
        )
        payload = result.model_dump()
        payload['settings_signature'] = compute_settings_signature(session.settings)
        return payload, diagnostics

    return _respond(run, session)


def handle_impact(session: TopologySession, data: Dict[str, Any]) -> Dict[str, Any]:
    """Request: { "failed_links": [0, 3], "failed_nodes": ["R2"] }"""
    def run():
        graph, diagnostics = session.effective_graph()
        result = downstream_impact(
            graph,
            failed_links=[int(i) for i in data.get('failed_links') or []],
            failed_nodes=[str(n) for n in data.get('failed_nodes') or []],
            granularity=data.get('granularity') or session.settings.matrix_granularity,
        )
        payload = result.model_dump()
        payload['impact_percentage'] = result.impact_percentage
        return payload, diagnostics + result.diagnostics

    return _respond(run, session)


def handle_scenario_diff(session: TopologySession, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Ripple effect of the current override set, independent of the simulation toggle."""
    data = data or {}

    def run():
        base = session.require_base()
        effective, diagnostics = apply_overrides(base, session.overrides)
        result = compare_scenarios(
            base, effective,
            granularity=data.get('granularity') or session.settings.matrix_granularity,
        )
        return result, diagnostics

    return _respond(run, session)


def handle_country_pair(session: TopologySession, data: Dict[str, Any]) -> Dict[str, Any]:
    """Request: { "source_country": "US", "dest_country": "DE" }"""
    def run():
        graph, diagnostics = session.effective_graph()
        result = analyze_country_pair(
            graph,
            str(_require(data, 'source_country')),
            str(_require(data, 'dest_country')),
            paths_per_pair=_int_or(data, 'paths_per_pair', session.settings.pair_paths_per_node_pair),
            max_hops=_int_or(data, 'max_hops', session.settings.pair_max_hops),
        )
        return result, diagnostics

    return _respond(run, session)


def handle_network_health(session: TopologySession, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    def run():
        graph, diagnostics = session.effective_graph()
        return network_health(graph, session.settings.bottleneck_threshold), diagnostics

    return _respond(run, session)


def handle_export(session: TopologySession, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Effective graph (overrides merged in when simulating) in the input shape."""
    def run():
        graph, diagnostics = session.effective_graph()
        return export_topology(graph), diagnostics

    return _respond(run, session)
