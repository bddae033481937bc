"""
Topology Session

Holds the loaded base graph, the simulation toggle and the active override
set for one caller. Queries themselves are pure functions of a graph; the
session only decides which graph (base or effective) they receive.

Reload discipline: load() clears every override before the new base graph
is built, so no override recorded against one dataset can reach another.
"""

import logging
from typing import Any, Optional

from ..settings import AnalysisSettings
from ..topology_types import TopologyGraph
from .normalizer import normalize_topology_data
from .overrides import OverrideSet, apply_overrides, export_topology
from .types import Diagnostic, OverrideRecord

logger = logging.getLogger(__name__)


class TopologySession:
    """Base graph + overrides + simulation flag."""

    def __init__(self, settings: Optional[AnalysisSettings] = None):
        self.settings = settings or AnalysisSettings()
        self.base: Optional[TopologyGraph] = None
        self.overrides = OverrideSet()
        self.simulation = False
        self.load_diagnostics: list[Diagnostic] = []

    @property
    def generation(self) -> Optional[str]:
        return self.base.generation if self.base else None

    def load(self, data: Any) -> list[Diagnostic]:
        """
        Replace the topology.

        Overrides are cleared first. On a structural error the previous graph
        stays installed and the exception propagates.
        """
        self.clear_overrides()
        graph, diagnostics = normalize_topology_data(data)
        self.base = graph
        self.overrides.bind(graph)
        self.load_diagnostics = diagnostics
        logger.info("Session loaded generation %s", graph.generation)
        return diagnostics

    def clear_overrides(self) -> None:
        self.overrides.clear()
        if self.base is not None:
            self.overrides.bind(self.base)

    def require_base(self) -> TopologyGraph:
        if self.base is None:
            raise LookupError("No topology loaded")
        return self.base

    def set_override(
        self,
        link_index: int,
        forward_cost: Optional[float] = None,
        reverse_cost: Optional[float] = None,
        status: Optional[str] = None,
    ) -> OverrideRecord:
        return self.overrides.set_override(
            self.require_base(), link_index,
            forward_cost=forward_cost, reverse_cost=reverse_cost, status=status,
        )

    def remove_override(self, link_index: int) -> None:
        self.overrides.remove(link_index)

    def effective_graph(self) -> tuple[TopologyGraph, list[Diagnostic]]:
        """Graph queries should run against: base, or base + overrides in simulation mode."""
        base = self.require_base()
        if not self.simulation:
            return base, []
        return apply_overrides(base, self.overrides)

    def is_current(self, result: Any) -> bool:
        """True when result was computed against the currently loaded generation."""
        generation = getattr(result, 'generation', None)
        if generation is None and isinstance(result, dict):
            generation = result.get('generation')
        return generation is not None and generation == self.generation

    def export(self) -> dict[str, Any]:
        """Effective graph in the input shape."""
        graph, _ = self.effective_graph()
        return export_topology(graph)
