"""Shared exports for the repository analysis feature."""
from __future__ import annotations

from .client import (
    DEFAULT_API_PATH,
    LEGACY_API_PATH,
    AnalysisClient,
    AnalysisServiceError,
    AnalysisTransport,
    ClientConfigurationError,
    TransportError,
)
from .controller import RequestController, decode_payload, server_error_message
from .normalize import normalize
from .types import (
    AnalysisReply,
    AnalysisRequest,
    AnalysisView,
    ClusterView,
    Failed,
    Idle,
    NoiseView,
    Pending,
    RequestState,
    Success,
)


__all__ = [
    "AnalysisRequest",
    "AnalysisReply",
    "AnalysisView",
    "ClusterView",
    "NoiseView",
    "RequestState",
    "Idle",
    "Pending",
    "Success",
    "Failed",
    "AnalysisClient",
    "AnalysisTransport",
    "AnalysisServiceError",
    "TransportError",
    "ClientConfigurationError",
    "DEFAULT_API_PATH",
    "LEGACY_API_PATH",
    "RequestController",
    "decode_payload",
    "server_error_message",
    "normalize",
]
