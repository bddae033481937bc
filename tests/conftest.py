"""
Shared topology fixtures.

world_data layout (costs symmetric unless noted):

    US1 --1-- US2 --10-- UK1 --5-- DE1 --30-- JP1
     |                              |
     +------------18---- FR1 --5----+

Link indices follow the order of the raw records below.
"""

import pytest

from netviz.runner.normalizer import normalize_topology_data
from netviz.runner.session import TopologySession


def build_three_router_data():
    """R1 -(5/5)- R2 -(3/8)- R3, plus an isolated R4."""
    return {
        'nodes': [
            {'id': 'R1', 'name': 'r1', 'country': 'US', 'is_active': True},
            {'id': 'R2', 'name': 'r2', 'country': 'US', 'is_active': True},
            {'id': 'R3', 'name': 'r3', 'country': 'DE', 'is_active': True},
            {'id': 'R4', 'name': 'r4', 'country': 'FR', 'is_active': True},
        ],
        'links': [
            {'source': 'R1', 'target': 'R2', 'forward_cost': 5, 'reverse_cost': 5, 'status': 'up'},
            {'source': 'R2', 'target': 'R3', 'forward_cost': 3, 'reverse_cost': 8, 'status': 'up'},
        ],
    }


def build_world_data():
    return {
        'nodes': [
            {'id': 'US1', 'country': 'US'},
            {'id': 'US2', 'country': 'US'},
            {'id': 'UK1', 'country': 'UK'},
            {'id': 'DE1', 'country': 'DE'},
            {'id': 'FR1', 'country': 'FR'},
            {'id': 'JP1', 'country': 'JP'},
        ],
        'links': [
            {'source': 'US1', 'target': 'US2', 'cost': 1, 'status': 'up'},   # 0
            {'source': 'US2', 'target': 'UK1', 'cost': 10, 'status': 'up'},  # 1
            {'source': 'UK1', 'target': 'DE1', 'cost': 5, 'status': 'up'},   # 2
            {'source': 'US1', 'target': 'FR1', 'cost': 18, 'status': 'up'},  # 3
            {'source': 'FR1', 'target': 'DE1', 'cost': 5, 'status': 'up'},   # 4
            {'source': 'DE1', 'target': 'JP1', 'cost': 30, 'status': 'up'},  # 5
        ],
    }


def build_diamond_data():
    """
    A-B 1, B-D 1, A-C 2, C-D 2, B-C 1, A-D 10 (indices 0..5).
    """
    return {
        'nodes': [{'id': n, 'country': 'XX'} for n in ('A', 'B', 'C', 'D')],
        'links': [
            {'source': 'A', 'target': 'B', 'cost': 1},
            {'source': 'B', 'target': 'D', 'cost': 1},
            {'source': 'A', 'target': 'C', 'cost': 2},
            {'source': 'C', 'target': 'D', 'cost': 2},
            {'source': 'B', 'target': 'C', 'cost': 1},
            {'source': 'A', 'target': 'D', 'cost': 10},
        ],
    }


@pytest.fixture
def three_router_graph():
    graph, _ = normalize_topology_data(build_three_router_data())
    return graph


@pytest.fixture
def world_graph():
    graph, _ = normalize_topology_data(build_world_data())
    return graph


@pytest.fixture
def diamond_graph():
    graph, _ = normalize_topology_data(build_diamond_data())
    return graph


@pytest.fixture
def session():
    s = TopologySession()
    s.load(build_three_router_data())
    return s
