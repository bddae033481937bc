"""
Analysis settings: bounds and policies for path and aggregate queries.

Defaults live here. A deployment may supply a YAML file and/or NETVIZ_*
environment variables; callers may also pass explicit values per request,
which take precedence.
"""

import hashlib
import json
import logging
import math
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "NETVIZ_"
GRANULARITIES = ("all_pairs", "representative")


@dataclass
class AnalysisSettings:
    """All tunable bounds used by the path engine and aggregate analyzer."""

    # ── Path engine ────────────────────────────────────────────

    default_max_hops: int = 10
    """Hop bound for all-paths searches when the caller gives none."""

    default_max_results: int = 50
    """Result cap for all-paths searches when the caller gives none."""

    # ── Aggregate analyzer ─────────────────────────────────────

    matrix_granularity: str = "all_pairs"
    """all_pairs: minimum over every node pair; representative: one node per country."""

    max_transit_pairs: int = 10000
    """Maximum ordered country pairs analysed by transit exposure before truncating."""

    pair_paths_per_node_pair: int = 3
    """Paths collected per node pair by country-pair analysis."""

    pair_max_hops: int = 8
    """Hop bound used by country-pair analysis."""

    bottleneck_threshold: float = 0.7
    """Share of the busiest link's usage at which a link is reported as a bottleneck."""


def settings_from_dict(d: Optional[Dict[str, Any]]) -> AnalysisSettings:
    """
    Construct AnalysisSettings from a dict (e.g. a request body or YAML file).

    Missing fields use defaults. Extra fields, wrong types and non-finite
    numbers are ignored.
    """
    if not d:
        return AnalysisSettings()

    kwargs = {}
    for f in fields(AnalysisSettings):
        if f.name not in d:
            continue
        val = _coerce(f.type, d[f.name])
        if val is None:
            logger.warning("Ignoring invalid setting %s=%r", f.name, d[f.name])
            continue
        kwargs[f.name] = val

    if kwargs.get("matrix_granularity", "all_pairs") not in GRANULARITIES:
        logger.warning("Unknown matrix_granularity %r, using all_pairs", kwargs["matrix_granularity"])
        kwargs.pop("matrix_granularity")

    return AnalysisSettings(**kwargs)


def _coerce(field_type: Any, value: Any) -> Any:
    type_name = field_type if isinstance(field_type, str) else getattr(field_type, "__name__", "")
    if type_name == "str":
        return str(value) if value is not None else None
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    if type_name == "int":
        return int(value)
    return float(value)


def load_settings(path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> AnalysisSettings:
    """
    Load settings from an optional YAML file, then apply NETVIZ_* overrides.

    Args:
        path: YAML file with a mapping of setting names (missing file is not an error)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        AnalysisSettings
    """
    data: Dict[str, Any] = {}

    if path is not None:
        path = Path(path)
        if path.exists():
            with open(path, "r") as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                logger.warning("Settings file %s is not a mapping; ignoring", path)
            else:
                data.update(loaded)
        else:
            logger.warning("Settings file %s not found; using defaults", path)

    environ = os.environ if environ is None else environ
    for f in fields(AnalysisSettings):
        key = ENV_PREFIX + f.name.upper()
        if key in environ:
            data[f.name] = environ[key]

    return settings_from_dict(data)


def compute_settings_signature(settings: AnalysisSettings) -> str:
    """
    Deterministic hash of the settings, attached to aggregate results so a
    caller can tell which bounds produced them.
    """
    d = asdict(settings)
    canonical = json.dumps(d, sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return digest[:16]
