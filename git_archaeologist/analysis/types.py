"""Dataclasses shared across the analysis feature."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class AnalysisRequest:
    """Immutable request payload built fresh for every submit."""

    repository_url: str
    use_topic_model: bool = True
    min_cluster_size: Optional[int] = 8

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "repo_url": self.repository_url,
            "use_bertopic": self.use_topic_model,
        }
        if self.min_cluster_size is not None:
            payload["min_cluster_size"] = self.min_cluster_size
        return payload


@dataclass(frozen=True)
class AnalysisReply:
    """Raw HTTP outcome handed back by a transport."""

    status_code: int
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class ClusterView:
    """Display-ready view of one cluster."""

    id: int
    messages: Tuple[str, ...]
    title: str
    keywords: Tuple[str, ...]
    size: int
    avg_confidence: float
    labels: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NoiseView:
    messages: Tuple[str, ...] = ()
    rate: float = 0.0


@dataclass(frozen=True)
class AnalysisView:
    """Normalized analysis result: ordered clusters plus the optional noise bucket."""

    clusters: Tuple[ClusterView, ...] = ()
    noise: Optional[NoiseView] = None

    @property
    def is_empty(self) -> bool:
        return not self.clusters


# ---- Request lifecycle states ---------------------------------------------


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Pending:
    request: AnalysisRequest


@dataclass(frozen=True)
class Success:
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Failed:
    message: str


RequestState = Union[Idle, Pending, Success, Failed]
