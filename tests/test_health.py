"""
Tests for network health metrics.
"""

import pytest

from netviz.runner.errors import InvalidWeightError
from netviz.runner.health import find_single_points_of_failure, network_health
from netviz.runner.normalizer import normalize_topology_data
from conftest import build_three_router_data, build_world_data


class TestSinglePointsOfFailure:

    def test_bridge_to_single_country(self, world_graph):
        # DE1-JP1 is the only way into JP; the rest is a ring
        assert find_single_points_of_failure(world_graph) == [5]

    def test_bridge_inside_country_is_not_spof(self, three_router_graph):
        # Losing R1-R2 leaves US (R2) connected to DE (R3)
        assert find_single_points_of_failure(three_router_graph) == [1]

    def test_down_links_ignored(self):
        data = build_world_data()
        data['links'][5]['status'] = 'down'
        graph, _ = normalize_topology_data(data)
        assert find_single_points_of_failure(graph) == []


class TestNetworkHealth:

    def test_counts(self, world_graph):
        report = network_health(world_graph)

        assert report.generation == world_graph.generation
        assert report.node_count == 6
        assert report.link_count == 6
        assert report.active_links == 6
        assert report.down_links == 0
        assert report.country_count == 5
        assert report.component_count == 1
        assert report.avg_links_per_node == pytest.approx(2.0)
        assert report.avg_path_cost == pytest.approx(20.8)

    def test_redundancy_score(self, world_graph):
        # 40 (all pairs reachable) + 30 (links >= nodes) + 20 (one SPOF)
        assert network_health(world_graph).redundancy_score == 90

    def test_bottlenecks(self, world_graph):
        report = network_health(world_graph)
        found = {(b.type, b.id): (b.severity, b.paths_affected) for b in report.bottlenecks}

        assert found == {
            ('link', 'UK1 <-> DE1'): ('critical', 10),
            ('link', 'DE1 <-> JP1'): ('high', 8),
            ('node', 'DE1'): ('critical', 8),
        }

    def test_disconnected_topology(self, three_router_graph):
        report = network_health(three_router_graph)

        assert report.component_count == 2
        assert report.single_points_of_failure == [1]
        assert report.asymmetric_link_count == 1

    def test_down_link_counted(self):
        data = build_three_router_data()
        data['links'][0]['status'] = 'down'
        graph, _ = normalize_topology_data(data)
        report = network_health(graph)

        assert report.down_links == 1
        assert report.active_links == 1

    def test_invalid_weight_rejected(self):
        data = build_world_data()
        data['links'][0]['cost'] = -1
        graph, _ = normalize_topology_data(data)
        with pytest.raises(InvalidWeightError):
            network_health(graph)
