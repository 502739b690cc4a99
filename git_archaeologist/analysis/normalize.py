"""Turn a loosely structured analysis payload into ordered, display-ready views."""
from __future__ import annotations

import logging
import math
from typing import Any, List, Mapping, Optional, Tuple

from .types import AnalysisView, ClusterView, NoiseView

TITLE_SEPARATOR = " • "

logger = logging.getLogger(__name__)


def normalize(payload: Optional[Mapping[str, Any]]) -> AnalysisView:
    """Build an :class:`AnalysisView` from a raw response payload.

    Optional per-cluster fields fall back instead of raising: size to the
    message count, confidence to ``0.0``, title to the joined keywords and then
    to ``"Topic #<id>"``. Cluster keys that are not integers are skipped.
    Clusters are ordered by size, then confidence (both descending), then id.
    """

    if not isinstance(payload, Mapping):
        return AnalysisView()

    clusters: List[ClusterView] = []
    seen = set()
    raw_clusters = payload.get("clusters")
    if isinstance(raw_clusters, Mapping):
        for key, raw_messages in raw_clusters.items():
            cluster_id = _parse_cluster_id(key)
            if cluster_id is None:
                logger.warning("Skipping cluster with non-integer id %r", key)
                continue
            if cluster_id in seen:
                logger.warning("Skipping duplicate cluster id %r", key)
                continue
            seen.add(cluster_id)
            clusters.append(_build_cluster(payload, cluster_id, raw_messages))

    clusters.sort(key=lambda view: (-view.size, -view.avg_confidence, view.id))

    noise: Optional[NoiseView] = None
    if "noise" in payload:
        noise = NoiseView(
            messages=_as_strings(payload.get("noise")),
            rate=_as_float(payload.get("noise_rate"), 0.0),
        )

    return AnalysisView(clusters=tuple(clusters), noise=noise)


def _build_cluster(payload: Mapping[str, Any], cluster_id: int, raw_messages: Any) -> ClusterView:
    messages = _as_strings(raw_messages)
    labels = _as_strings(_lookup(payload, "cluster_labels", cluster_id))
    raw_keywords = _lookup(payload, "cluster_keywords", cluster_id)
    keywords = _as_strings(raw_keywords) if raw_keywords is not None else labels

    title = _lookup(payload, "cluster_titles", cluster_id)
    if not isinstance(title, str) or not title.strip():
        title = TITLE_SEPARATOR.join(keywords) if keywords else f"Topic #{cluster_id}"

    return ClusterView(
        id=cluster_id,
        messages=messages,
        title=title.strip(),
        keywords=keywords,
        size=_as_int(_lookup(payload, "cluster_sizes", cluster_id), len(messages)),
        avg_confidence=_as_float(_lookup(payload, "cluster_avg_prob", cluster_id), 0.0),
        labels=labels,
    )


def _parse_cluster_id(key: Any) -> Optional[int]:
    if isinstance(key, bool):
        return None
    if isinstance(key, int):
        return key
    if isinstance(key, str):
        try:
            return int(key.strip())
        except ValueError:
            return None
    return None


def _lookup(payload: Mapping[str, Any], field: str, cluster_id: int) -> Any:
    """Fetch ``payload[field][cluster_id]`` accepting string or integer keys."""
    section = payload.get(field)
    if not isinstance(section, Mapping):
        return None
    value = section.get(str(cluster_id))
    if value is None:
        value = section.get(cluster_id)
    return value


def _as_strings(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(item if isinstance(item, str) else str(item) for item in value if item is not None)


def _as_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return int(number)


def _as_float(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number
