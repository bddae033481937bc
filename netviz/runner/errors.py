"""
Engine exceptions.

Structural and weight problems are raised here and converted into explicit
failure values (AnalysisError) at the handler boundary. Not-found is never
an exception.
"""

from typing import Any, Optional


class TopologyError(Exception):
    """Base class for engine errors."""

    error_type = "topology_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StructuralError(TopologyError):
    """Input cannot be loaded at all (empty or malformed node list, bad shape)."""

    error_type = "structural_error"


class InvalidWeightError(TopologyError):
    """A traversable link carries a non-positive cost."""

    error_type = "invalid_weight"

    def __init__(self, link_index: int, direction: str, cost: float):
        super().__init__(
            f"Link {link_index} has non-positive {direction} cost {cost!r}; "
            f"shortest-path algorithms require positive weights",
            details={"link_index": link_index, "direction": direction, "cost": cost},
        )
        self.link_index = link_index
        self.direction = direction
        self.cost = cost


class StaleOverrideError(TopologyError):
    """Override set was recorded against a different graph generation."""

    error_type = "stale_override"

    def __init__(self, override_generation: Optional[str], graph_generation: str):
        super().__init__(
            "Override set belongs to a previously loaded topology; "
            "clear overrides before applying them to a reloaded graph",
            details={
                "override_generation": override_generation,
                "graph_generation": graph_generation,
            },
        )


class StaleResultError(TopologyError):
    """A cached result was computed against a different graph generation."""

    error_type = "stale_result"

    def __init__(self, result_generation: Optional[str], graph_generation: str):
        super().__init__(
            "Result was computed against a previously loaded topology; recompute it",
            details={
                "result_generation": result_generation,
                "graph_generation": graph_generation,
            },
        )
