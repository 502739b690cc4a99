from __future__ import annotations

import asyncio
import logging
import threading
from functools import partial
from typing import Dict, List, Optional, Tuple

from prompt_toolkit.application import Application
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.data_structures import Point
from prompt_toolkit.document import Document
from prompt_toolkit.filters import Condition, has_focus
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, Layout, ScrollOffsets, VSplit, Window
from prompt_toolkit.layout.controls import BufferControl, FormattedTextControl
from prompt_toolkit.layout.dimension import D
from prompt_toolkit.styles import Style

from .analysis import (
    AnalysisRequest,
    AnalysisTransport,
    AnalysisView,
    ClusterView,
    Failed,
    Idle,
    Pending,
    RequestController,
    RequestState,
    Success,
    normalize,
)
from .progressive import ProgressiveList
from .settings import Settings
from .validation import invalid_reason

Line = Tuple[str, str]

PENDING_TEXT = "Analyzing repository... this may take a moment."
EMPTY_RESULT_TEXT = "No clusters found. Try a smaller min_cluster_size."
IDLE_TEXT = "Paste a GitHub repository URL (e.g., https://github.com/owner/repo) and press Enter."

logger = logging.getLogger(__name__)


def format_cluster_meta(cluster: ClusterView) -> str:
    return f"Topic #{cluster.id} • {cluster.size} commits • avg conf {cluster.avg_confidence:.2f}"


def format_noise_header(message_count: int, rate: float) -> str:
    return f"Unclustered (noise): {message_count} messages • noise rate {rate:.2f}"


class AnalysisBrowser:
    """Interactive analysis browser backed by prompt_toolkit."""

    PAGE_JUMP = 5

    def __init__(
        self,
        transport: AnalysisTransport,
        settings: Settings,
        initial_url: str = "",
    ) -> None:
        self.settings = settings
        self.controller = RequestController(
            transport,
            use_topic_model=settings.use_topic_model,
            min_cluster_size=settings.min_cluster_size,
            listener=self._on_state_change,
        )
        self.status: str = f"Analysis service: {transport_label(transport)}"
        self.selected_index = 0
        self.noise_open = False
        self._view: Optional[AnalysisView] = None
        self._view_source: Optional[RequestState] = None
        self._cluster_lists: Dict[int, ProgressiveList[str]] = {}
        self._noise_list: Optional[ProgressiveList[str]] = None
        self._cursor_line = 0
        self._app: Optional[Application] = None
        self._input_window: Optional[Window] = None
        self._results_window: Optional[Window] = None
        self._active_task: Optional[asyncio.Task[None]] = None

        self.url_buffer = Buffer(
            document=Document(initial_url, len(initial_url)),
            multiline=False,
            accept_handler=self._accept_url,
            read_only=Condition(lambda: self.controller.is_pending),
        )

    # ---- State handling --------------------------------------------------
    @property
    def view(self) -> Optional[AnalysisView]:
        return self._view

    def cluster_list(self, cluster_id: int) -> Optional[ProgressiveList[str]]:
        return self._cluster_lists.get(cluster_id)

    @property
    def noise_list(self) -> Optional[ProgressiveList[str]]:
        return self._noise_list

    def _on_state_change(self, state: RequestState) -> None:
        # May run on the request thread; invalidate() is thread-safe.
        if self._app is not None:
            self._app.invalidate()

    def _apply_state(self) -> None:
        state = self.controller.state
        if isinstance(state, Success):
            if self._view_source is state:
                return
            view = normalize(state.payload)
            self._view = view
            self._view_source = state
            self._cluster_lists = {
                cluster.id: ProgressiveList(cluster.messages, self.settings.message_limit)
                for cluster in view.clusters
            }
            self._noise_list = (
                ProgressiveList(view.noise.messages, self.settings.noise_sample_limit)
                if view.noise is not None
                else None
            )
            self.selected_index = 0
            self.noise_open = False
            count = len(view.clusters)
            noun = "cluster" if count == 1 else "clusters"
            self.status = f"Analysis complete: {count} {noun}."
            return

        self._view = None
        self._view_source = None
        self._cluster_lists = {}
        self._noise_list = None
        self.selected_index = 0
        self.noise_open = False
        if isinstance(state, Pending):
            self.status = f"Analyzing {state.request.repository_url}..."
        elif isinstance(state, Failed):
            self.status = "Analysis failed."

    # ---- Submission ------------------------------------------------------
    def _accept_url(self, buffer: Buffer) -> bool:
        self._handle_submit(buffer.text)
        return True

    def _handle_submit(self, url: str) -> None:
        if self.controller.is_pending:
            self.status = "Analysis already in progress."
            self._invalidate()
            return

        reason = invalid_reason(url)
        if reason:
            self.status = reason
            self._invalidate()
            return

        request = self.controller.start(url)
        if request is None:  # pragma: no cover - guarded above
            return
        self._apply_state()
        self._invalidate()

        async def worker() -> None:
            failure: Optional[str] = None
            try:
                await self._finish_in_background(request)
            except Exception as exc:  # pragma: no cover - defensive
                logger.exception("Analysis worker crashed")
                failure = f"Analysis failed: {exc}"
            finally:
                self._active_task = None
                self._apply_state()
                if failure:
                    self.status = failure
                self._invalidate()

        if self._app is None:  # pragma: no cover - defensive
            return
        self._active_task = self._app.create_background_task(worker())

    def _finish_in_background(self, request: AnalysisRequest) -> "asyncio.Future[RequestState]":
        """Run the blocking ``finish`` call on a daemon thread; exiting never joins it."""

        loop = asyncio.get_running_loop()
        future: "asyncio.Future[RequestState]" = loop.create_future()

        def resolve(state: Optional[RequestState] = None, error: Optional[BaseException] = None) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(state)

        def target() -> None:
            try:
                state = self.controller.finish(request)
            except Exception as exc:
                outcome = partial(resolve, error=exc)
            else:
                outcome = partial(resolve, state=state)
            try:
                loop.call_soon_threadsafe(outcome)
            except RuntimeError:
                # Event loop already closed: the browser exited first.
                logger.debug("Analysis for %s finished after exit", request.repository_url)

        threading.Thread(target=target, name="analysis-request", daemon=True).start()
        return future

    def _invalidate(self) -> None:
        if self._app is not None:
            self._app.invalidate()

    # ---- Layout helpers --------------------------------------------------
    def _header_fragments(self) -> List[Line]:
        return [
            ("class:title", "Git Archaeologist"),
            ("", "\n"),
            ("class:subtitle", "Uncover the history of any public Git repository."),
        ]

    def _button_fragments(self) -> List[Line]:
        if self.controller.is_pending:
            return [("class:button.disabled", " [ Analyzing... ] ")]
        if invalid_reason(self.url_buffer.text):
            return [("class:button.disabled", " [ Analyze ] ")]
        return [("class:button", " [ Analyze ] ")]

    def _hint_fragments(self) -> List[Line]:
        reason = invalid_reason(self.url_buffer.text)
        if reason and not self.controller.is_pending:
            return [("class:hint", reason)]
        return [("", "")]

    def results_lines(self) -> List[Line]:
        """Return the styled lines of the results pane for the current state."""

        state = self.controller.state
        self._cursor_line = 0
        if isinstance(state, Idle):
            return [("class:detail", IDLE_TEXT)]
        if isinstance(state, Pending):
            return [("class:pending", PENDING_TEXT)]
        if isinstance(state, Failed):
            return [("class:error", f"Error: {state.message}")]

        self._apply_state()
        view = self._view
        if view is None:  # pragma: no cover - Success always yields a view
            return []

        lines: List[Line] = []
        if view.noise is not None and self._noise_list is not None:
            lines.append(("class:noise.header", format_noise_header(len(view.noise.messages), view.noise.rate)))
            if self.noise_open:
                lines.extend(("class:noise", f"  - {message}") for message in self._noise_list.visible)
                if self._noise_list.has_more:
                    lines.append(("class:hint", self._more_text(self._noise_list, "N")))
            else:
                lines.append(("class:hint", "  (n to show sample)"))
            lines.append(("", ""))

        if view.is_empty:
            lines.append(("class:detail", EMPTY_RESULT_TEXT))
            return lines

        lines.append(("class:heading", "Commit Clusters"))
        for index, cluster in enumerate(view.clusters):
            selected = index == self.selected_index
            if selected:
                self._cursor_line = len(lines)
            marker = "> " if selected else "  "
            title_style = "class:cluster.title.selected" if selected else "class:cluster.title"
            lines.append((title_style, f"{marker}{cluster.title}"))
            lines.append(("class:cluster.meta", f"  {format_cluster_meta(cluster)}"))
            messages = self._cluster_lists[cluster.id]
            lines.extend(("class:cluster.message", f"    - {message}") for message in messages.visible)
            if messages.has_more:
                lines.append(("class:hint", "  " + self._more_text(messages, "space")))
        return lines

    def _more_text(self, items: ProgressiveList[str], key: str) -> str:
        if items.expanded:
            return f"  ({key} to collapse)"
        return f"  … {items.hidden_count} more ({key} to expand)"

    def _results_fragments(self) -> List[Line]:
        fragments: List[Line] = []
        lines = self.results_lines()
        for idx, (style, text) in enumerate(lines):
            fragments.append((style, text))
            if idx != len(lines) - 1:
                fragments.append(("", "\n"))
        return fragments

    def _instructions_fragment(self) -> List[Line]:
        text = (
            "Enter analyze | Tab switch focus | Up/Down select cluster | "
            "space expand | n noise | N more noise | q quit"
        )
        return [("class:instructions", text)]

    def _status_fragment(self) -> List[Line]:
        return [("class:status", self.status)]

    # ---- Key bindings ----------------------------------------------------
    def _build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()
        results_focused = has_focus(self._results_window)

        @kb.add("tab")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            if event.app.layout.has_focus(self._results_window):
                event.app.layout.focus(self._input_window)
            else:
                event.app.layout.focus(self._results_window)

        @kb.add("up", filter=results_focused)
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self.move_selection(-1)

        @kb.add("down", filter=results_focused)
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self.move_selection(1)

        @kb.add("pageup", filter=results_focused)
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self.move_selection(-self.PAGE_JUMP)

        @kb.add("pagedown", filter=results_focused)
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self.move_selection(self.PAGE_JUMP)

        @kb.add("home", filter=results_focused)
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self.set_selection(0)

        @kb.add("end", filter=results_focused)
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            if self._view is not None and self._view.clusters:
                self.set_selection(len(self._view.clusters) - 1)

        @kb.add("space", filter=results_focused)
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self.toggle_selected_cluster()

        @kb.add("n", filter=results_focused)
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self.toggle_noise()

        @kb.add("N", filter=results_focused)
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            if self._noise_list is not None:
                self.noise_open = True
                self._noise_list.toggle()
                self._invalidate()

        @kb.add("q", filter=results_focused)
        @kb.add("Q", filter=results_focused)
        @kb.add("escape")
        @kb.add("c-c")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            event.app.exit(result=0)

        return kb

    # ---- Selection helpers -----------------------------------------------
    def move_selection(self, delta: int) -> None:
        if self._view is None or not self._view.clusters:
            return
        new_index = max(0, min(len(self._view.clusters) - 1, self.selected_index + delta))
        self.set_selection(new_index)

    def set_selection(self, index: int) -> None:
        if self._view is None or not self._view.clusters:
            return
        if index == self.selected_index:
            return
        self.selected_index = index
        self._invalidate()

    def toggle_selected_cluster(self) -> None:
        if self._view is None or not self._view.clusters:
            return
        cluster = self._view.clusters[self.selected_index]
        messages = self._cluster_lists[cluster.id]
        if not messages.has_more:
            return
        messages.toggle()
        self._invalidate()

    def toggle_noise(self) -> None:
        if self._noise_list is None:
            return
        self.noise_open = not self.noise_open
        self._invalidate()

    def _cleanup(self) -> None:
        if self._active_task and not self._active_task.done():
            self._active_task.cancel()

    # ---- Public API ------------------------------------------------------
    def run(self) -> int:
        def cursor_position() -> Point:
            return Point(0, self._cursor_line)

        header_window = Window(
            content=FormattedTextControl(self._header_fragments),
            height=2,
            always_hide_cursor=True,
        )
        self._input_window = Window(
            content=BufferControl(buffer=self.url_buffer),
            height=1,
        )
        input_row = VSplit(
            [
                Window(
                    content=FormattedTextControl([("class:label", "Repository URL: ")]),
                    width=16,
                    height=1,
                ),
                self._input_window,
                Window(
                    content=FormattedTextControl(self._button_fragments),
                    width=18,
                    height=1,
                    always_hide_cursor=True,
                ),
            ]
        )
        hint_window = Window(
            content=FormattedTextControl(self._hint_fragments),
            height=1,
            always_hide_cursor=True,
        )
        self._results_window = Window(
            content=FormattedTextControl(
                self._results_fragments,
                focusable=True,
                get_cursor_position=cursor_position,
            ),
            height=D(min=5),
            wrap_lines=True,
            always_hide_cursor=True,
            scroll_offsets=ScrollOffsets(top=2, bottom=4),
        )
        instructions_window = Window(
            content=FormattedTextControl(self._instructions_fragment),
            height=1,
            always_hide_cursor=True,
        )
        status_window = Window(
            content=FormattedTextControl(self._status_fragment),
            height=1,
            always_hide_cursor=True,
        )

        layout = Layout(
            HSplit(
                [
                    header_window,
                    Window(height=1, char=" ", always_hide_cursor=True),
                    input_row,
                    hint_window,
                    Window(height=1, char="-", always_hide_cursor=True),
                    self._results_window,
                    Window(height=1, char="-", always_hide_cursor=True),
                    instructions_window,
                    status_window,
                ]
            ),
            focused_element=self._input_window,
        )

        style = Style.from_dict(
            {
                "title": "bold",
                "subtitle": "fg:#888888",
                "label": "bold",
                "button": "fg:#ffffff bg:#e11d48 bold",
                "button.disabled": "fg:#cccccc bg:#4b5563",
                "hint": "fg:#888888",
                "heading": "bold underline",
                "pending": "italic",
                "error": "fg:#f87171 bold",
                "noise.header": "fg:#facc15 bold",
                "noise": "",
                "cluster.title": "fg:#fda4af bold",
                "cluster.title.selected": "fg:#fda4af bold reverse",
                "cluster.meta": "fg:#9ca3af",
                "cluster.message": "",
                "instructions": "fg:#888888",
                "status": "fg:#000000 bg:#e5e5e5",
                "detail": "",
            }
        )

        self._app = Application(
            layout=layout,
            key_bindings=self._build_key_bindings(),
            style=style,
            full_screen=True,
        )
        result = self._app.run()
        self._cleanup()
        return 0 if result is None else result


def transport_label(transport: AnalysisTransport) -> str:
    endpoint = getattr(transport, "endpoint", None)
    return endpoint if isinstance(endpoint, str) else type(transport).__name__


def browse_repository(
    transport: AnalysisTransport,
    settings: Settings,
    initial_url: str = "",
) -> int:
    browser = AnalysisBrowser(
        transport=transport,
        settings=settings,
        initial_url=initial_url,
    )
    return browser.run()
