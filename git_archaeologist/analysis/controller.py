"""Request lifecycle for a single analysis session."""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Mapping, Optional

from ..validation import is_valid_repository_url
from .client import AnalysisServiceError, AnalysisTransport
from .types import (
    AnalysisReply,
    AnalysisRequest,
    Failed,
    Idle,
    Pending,
    RequestState,
    Success,
)

StateListener = Callable[[RequestState], None]


class RequestController:
    """Owns the ``Idle -> Pending -> Success | Failed`` state machine.

    Only one request may be in flight: ``start`` refuses while the state is
    :class:`Pending`. The blocking network call lives in ``finish`` so a UI can
    run it in a worker while keeping ``start`` on its event loop. A failed call
    is terminal for that submission; nothing is retried.
    """

    def __init__(
        self,
        transport: AnalysisTransport,
        *,
        use_topic_model: bool = True,
        min_cluster_size: Optional[int] = 8,
        listener: Optional[StateListener] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._transport = transport
        self.use_topic_model = use_topic_model
        self.min_cluster_size = min_cluster_size
        self._listener = listener
        self._logger = logger or logging.getLogger(__name__)
        self._state: RequestState = Idle()

    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def is_pending(self) -> bool:
        return isinstance(self._state, Pending)

    def can_submit(self, url: str) -> bool:
        return not self.is_pending and is_valid_repository_url(url)

    def start(self, url: str) -> Optional[AnalysisRequest]:
        """Enter :class:`Pending` for ``url``; return ``None`` when submission is refused."""

        if self.is_pending:
            self._log_debug("refused", {"reason": "pending", "repo_url": url})
            return None
        if not is_valid_repository_url(url):
            self._log_debug("refused", {"reason": "invalid-url", "repo_url": url})
            return None

        request = AnalysisRequest(
            repository_url=url.strip(),
            use_topic_model=self.use_topic_model,
            min_cluster_size=self.min_cluster_size,
        )
        self._transition(Pending(request))
        return request

    def finish(self, request: AnalysisRequest) -> RequestState:
        """Perform the external call for ``request`` and resolve the pending state."""

        state = self._state
        if not isinstance(state, Pending) or state.request is not request:
            raise RuntimeError("finish() called without a matching pending request")

        try:
            reply = self._transport.send(request)
        except AnalysisServiceError as exc:
            self._transition(Failed(str(exc) or exc.__class__.__name__))
            return self._state
        except Exception as exc:
            self._transition(Failed(f"Unexpected error: {exc}"))
            raise

        if reply.ok:
            self._transition(Success(decode_payload(reply.text)))
        else:
            self._transition(Failed(server_error_message(reply)))
        return self._state

    def submit(self, url: str) -> RequestState:
        """Start and resolve a request in one call; a refused submit is a no-op."""

        request = self.start(url)
        if request is None:
            return self._state
        return self.finish(request)

    def _transition(self, state: RequestState) -> None:
        previous = self._state
        self._state = state
        self._log_debug(
            "transition",
            {"from": type(previous).__name__, "to": type(state).__name__},
        )
        if self._listener is not None:
            self._listener(state)

    def _log_debug(self, event: str, extra: Mapping[str, object]) -> None:
        if not self._logger:
            return
        payload = {"event": event}
        payload.update(dict(extra))
        self._logger.debug("analysis-controller", extra={"analysis": payload})


def decode_payload(text: str) -> Mapping[str, Any]:
    """Decode a success body, treating anything but a JSON object as ``{}``."""
    try:
        data = json.loads(text) if text else {}
    except ValueError:
        return {}
    return data if isinstance(data, Mapping) else {}


def server_error_message(reply: AnalysisReply) -> str:
    """Prefer the server's ``detail`` message, else ``Server error <status>``."""
    detail = decode_payload(reply.text).get("detail")
    if isinstance(detail, str) and detail.strip():
        return detail
    if isinstance(detail, list):
        messages = [
            item["msg"]
            for item in detail
            if isinstance(item, Mapping) and isinstance(item.get("msg"), str)
        ]
        if messages:
            return "; ".join(messages)
    return f"Server error {reply.status_code}"
