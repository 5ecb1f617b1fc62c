"""Interactive fuzzy picker fed incrementally from an item channel."""

from __future__ import annotations

import asyncio
import json
import queue
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

import typer
from prompt_toolkit.application import Application
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, Layout, VSplit, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.layout.dimension import Dimension
from prompt_toolkit.output import create_output
from prompt_toolkit.styles import Style
from prompt_toolkit.widgets import TextArea
from rapidfuzz import fuzz, process
from rapidfuzz.utils import default_process
from rich.console import Console
from rich.json import JSON
from rich.text import Text

from ec2pick.core.items import Selectable, SelectionError
from ec2pick.core.stream import ItemChannel

__all__ = [
    "FuzzyPickerUI",
    "InstancePicker",
    "PickerSession",
    "PickerUI",
    "PromptPickerUI",
    "fuzzy_filter",
]

PromptFn = Callable[[str], str]
OutputFn = Callable[[str], None]

_MESSAGE_EMPTY = "No instances matched the filters."
_MESSAGE_ABORTED = "Selection aborted."
_MESSAGE_NO_MATCH = "No entries to select. Type 'clear' to reset or 'q' to quit."

_FUZZY_SCORE_CUTOFF = 50
_POLL_INTERVAL = 0.05
_WAIT_TIMEOUT = 0.1


def _default_output(message: str) -> None:
    """Emit a single line to stderr, keeping stdout for the picked id."""

    typer.echo(message, err=True)


def _default_prompt(text: str) -> str:
    """Ask on stderr and read one line from stdin; a blank answer is allowed."""

    typer.echo(f"{text}: ", nl=False, err=True)
    line = sys.stdin.readline()
    if not line:
        raise EOFError
    return line.rstrip("\r\n")


def fuzzy_filter(items: Iterable[Selectable], query: str) -> list[Selectable]:
    """Rank ``items`` by fuzzy similarity of their display text to ``query``."""

    candidates = list(items)
    query = query.strip()
    if not query:
        return candidates

    choices = [item.display_text() for item in candidates]
    matches = process.extract(
        query,
        choices,
        scorer=fuzz.WRatio,
        processor=default_process,
        limit=None,
        score_cutoff=_FUZZY_SCORE_CUTOFF,
    )
    # matches is a list of (choice, score, index)
    return [candidates[match[2]] for match in matches]


@dataclass(slots=True)
class PickerSession:
    """Mutable list state shared between a UI and the incoming item stream."""

    items: list[Selectable] = field(default_factory=list)
    page_size: int = 15
    filter_query: str = ""
    selection_index: int = 0
    filtered_items: list[Selectable] = field(init=False, repr=False, default_factory=list)

    def __post_init__(self) -> None:
        """Normalize defaults once the dataclass is created."""
        self.page_size = max(5, self.page_size)
        self.filtered_items = list(self.items)
        self.selection_index = 0 if self.filtered_items else -1

    def extend(self, new_items: Iterable[Selectable]) -> None:
        """Append streamed items and refresh the filtered view."""

        fresh = list(new_items)
        if not fresh:
            return
        self.items.extend(fresh)
        self.apply_filter(self.filter_query)

    def apply_filter(self, query: str) -> None:
        self.filter_query = query
        self.filtered_items = fuzzy_filter(self.items, self.filter_query)
        if not self.filtered_items:
            self.selection_index = -1
        else:
            self.selection_index = _clamp(self.selection_index, 0, len(self.filtered_items) - 1)

    def clear_filter(self) -> None:
        self.apply_filter("")

    def move_selection(self, delta: int) -> None:
        if not self.filtered_items:
            self.selection_index = -1
            return
        self.selection_index = _clamp(
            self.selection_index + delta, 0, len(self.filtered_items) - 1
        )

    def set_selection(self, index: int) -> bool:
        if not self.filtered_items:
            self.selection_index = -1
            return False
        if 0 <= index < len(self.filtered_items):
            self.selection_index = index
            return True
        return False

    def filtered(self) -> list[Selectable]:
        return list(self.filtered_items)

    def current(self) -> Selectable | None:
        if not self.filtered_items or self.selection_index < 0:
            return None
        return self.filtered_items[self.selection_index]

    def total_count(self) -> int:
        return len(self.items)

    def filtered_count(self) -> int:
        return len(self.filtered_items)

    def page_bounds(self) -> tuple[int, int]:
        if self.selection_index < 0:
            return (0, self.page_size)
        start = (self.selection_index // self.page_size) * self.page_size
        return (start, start + self.page_size)


class PickerUI(Protocol):
    """UI contract for choosing one item from a streaming session."""

    def run(self, session: PickerSession, channel: ItemChannel) -> Selectable | None: ...


class FuzzyPickerUI:
    """Full-screen search + list + preview picker built on prompt_toolkit."""

    def __init__(self, *, title: str = "ec2pick") -> None:
        self._title = title
        self._session: PickerSession | None = None
        self._channel: ItemChannel | None = None
        self._console = Console(file=sys.stderr, force_terminal=True)
        self._app: Application[Selectable | None] | None = None

    def run(
        self,
        session: PickerSession,
        channel: ItemChannel,
    ) -> Selectable | None:  # pragma: no cover - requires tty
        # stdout may be captured by the caller; the screen is drawn on stderr.
        if not sys.stdin.isatty() or not sys.stderr.isatty():
            raise RuntimeError("full-screen picker requires a TTY")

        self._session = session
        self._channel = channel
        self._app = self._build_app()
        return self._app.run(pre_run=self._start_pump)

    def _build_app(self) -> Application[Selectable | None]:  # pragma: no cover - requires tty
        self.search = TextArea(height=1, prompt="> ", multiline=False, style="class:search")
        self.search.buffer.on_text_changed += lambda _: self._on_query_changed()

        root_container = HSplit(
            [
                Window(height=1, content=FormattedTextControl(self._header)),
                self.search,
                Window(height=1, char="-", style="class:separator"),
                VSplit(
                    [
                        Window(
                            FormattedTextControl(self._list_fragments),
                            width=Dimension(weight=30),
                        ),
                        Window(width=1, char="|", style="class:separator"),
                        Window(
                            FormattedTextControl(self._preview_ansi),
                            width=Dimension(weight=70),
                            wrap_lines=True,
                        ),
                    ],
                    padding=1,
                ),
            ]
        )

        return Application(
            layout=Layout(root_container, focused_element=self.search),
            output=create_output(stdout=sys.stderr),
            key_bindings=self._bindings(),
            style=Style.from_dict(
                {
                    "header": "bold",
                    "row.selected": "reverse",
                    "separator": "fg:#0000aa",
                    "search": "bold",
                }
            ),
            full_screen=True,
        )

    def _start_pump(self) -> None:  # pragma: no cover - requires tty
        assert self._app is not None
        self._app.create_background_task(self._pump())

    async def _pump(self) -> None:  # pragma: no cover - requires tty
        assert self._app is not None and self._session is not None and self._channel is not None
        while not self._channel.exhausted:
            fresh = self._channel.drain()
            if fresh:
                self._session.extend(fresh)
                self._app.invalidate()
            if self._channel.exhausted:
                break
            await asyncio.sleep(_POLL_INTERVAL)

        if not self._session.total_count() and not self._app.is_done:
            self._app.exit(result=None)
            return
        self._app.invalidate()

    def _on_query_changed(self) -> None:  # pragma: no cover - requires tty
        assert self._session is not None and self._app is not None
        self._session.apply_filter(self.search.text)
        self._session.set_selection(0)
        self._app.invalidate()

    def _header(self) -> list[tuple[str, str]]:  # pragma: no cover - requires tty
        assert self._session is not None and self._channel is not None
        status = "" if self._channel.exhausted else "  (loading...)"
        counts = f"{self._session.filtered_count()}/{self._session.total_count()}"
        return [("class:header", f"  {self._title}  {counts}{status}")]

    def _list_fragments(self) -> list[tuple[str, str]]:  # pragma: no cover - requires tty
        assert self._session is not None and self._app is not None
        session = self._session
        entries = session.filtered()
        rows = max(1, self._app.output.get_size().rows - 3)

        start = 0
        if session.selection_index >= rows:
            start = session.selection_index - rows + 1

        fragments: list[tuple[str, str]] = []
        for offset, item in enumerate(entries[start : start + rows]):
            selected = start + offset == session.selection_index
            style = "class:row.selected" if selected else ""
            marker = ">" if selected else " "
            fragments.append((style, f"{marker} {item.display_text()}\n"))
        return fragments

    def _preview_ansi(self) -> ANSI:  # pragma: no cover - requires tty
        assert self._session is not None
        item = self._session.current()
        if item is None:
            return ANSI("")
        with self._console.capture() as cap:
            self._console.print(_preview_renderable(item.preview_text()))
        return ANSI(cap.get())

    def _bindings(self) -> KeyBindings:  # pragma: no cover - requires tty
        kb = KeyBindings()

        @kb.add("down")
        @kb.add("c-n")
        def _(event: Any) -> None:
            assert self._session is not None
            self._session.move_selection(1)
            event.app.invalidate()

        @kb.add("up")
        @kb.add("c-p")
        def _(event: Any) -> None:
            assert self._session is not None
            self._session.move_selection(-1)
            event.app.invalidate()

        @kb.add("pagedown")
        def _(event: Any) -> None:
            assert self._session is not None
            self._session.move_selection(self._session.page_size)
            event.app.invalidate()

        @kb.add("pageup")
        def _(event: Any) -> None:
            assert self._session is not None
            self._session.move_selection(-self._session.page_size)
            event.app.invalidate()

        @kb.add("enter")
        def _(event: Any) -> None:
            assert self._session is not None
            item = self._session.current()
            if item is None:
                return
            event.app.exit(result=item)

        @kb.add("escape", eager=True)
        @kb.add("c-c")
        @kb.add("c-g")
        def _(event: Any) -> None:
            event.app.exit(result=None)

        return kb


def _preview_renderable(text: str) -> JSON | Text:
    """Highlight JSON previews; anything else is shown verbatim."""

    try:
        json.loads(text)
    except ValueError:
        return Text(text)
    return JSON(text)


class PromptPickerUI:
    """Fallback text-mode UI used when no terminal is available."""

    def __init__(self, prompt: PromptFn, output: OutputFn) -> None:
        self._prompt = prompt
        self._output = output

    def run(self, session: PickerSession, channel: ItemChannel) -> Selectable | None:
        self._wait_for_items(session, channel)
        if not session.total_count():
            return None

        self._render(session, channel)
        while True:
            fresh = channel.drain()
            if fresh:
                session.extend(fresh)
                self._render(session, channel)
            if not session.filtered_count():
                self._output(_MESSAGE_NO_MATCH)
            try:
                selection = self._prompt("Select number, type to filter, or 'q' to quit").strip()
            except (EOFError, KeyboardInterrupt, typer.Abort):
                self._output("")
                return None

            if not selection:
                item = session.current()
                if item is not None:
                    return item
                continue

            lowered = selection.lower()
            if lowered in {"q", "quit", "exit"}:
                return None
            if lowered == "clear":
                session.clear_filter()
                self._render(session, channel)
                continue
            if lowered.isdigit():
                index = int(lowered) - 1
                if session.set_selection(index):
                    item = session.current()
                    if item is not None:
                        return item

                self._output("Invalid selection. Choose a valid number or filter query.")
                continue

            session.apply_filter(selection)
            session.set_selection(0)
            if session.filtered_count():
                self._render(session, channel)
            else:
                self._output(f"No matches for '{selection}'. Type 'clear' to reset the filter.")

    @staticmethod
    def _wait_for_items(session: PickerSession, channel: ItemChannel) -> None:
        """Block until at least one item arrives or the channel is exhausted."""

        while not session.total_count() and not channel.exhausted:
            try:
                item = channel.receive(timeout=_WAIT_TIMEOUT)
            except queue.Empty:
                continue
            if item is not None:
                session.extend([item, *channel.drain()])

    def _render(self, session: PickerSession, channel: ItemChannel) -> None:
        entries = session.filtered()
        total = session.total_count()
        match_label = "match" if len(entries) == 1 else "matches"
        header = f"Instances: {len(entries)} {match_label} of {total} total"
        if session.filter_query:
            header += f" (filter: '{session.filter_query}')"
        if not channel.exhausted:
            header += " (still loading)"
        self._output("")
        self._output(header)
        start, end = session.page_bounds()
        for absolute_index, item in enumerate(entries[start:end], start=start):
            pointer = ">" if absolute_index == session.selection_index else " "
            self._output(f"{pointer} {absolute_index + 1:>3}. {item.display_text()}")
        remaining = len(entries) - end
        if remaining > 0:
            more_label = "result" if remaining == 1 else "results"
            self._output(
                f"     ... {remaining} more {more_label}. "
                "Narrow the filter to see additional instances."
            )
        self._output(
            "Commands: enter = pick highlighted • number = pick by index • text = filter "
            "• 'clear' resets"
        )


class InstancePicker:
    """Run a picker UI over a channel and return exactly one item."""

    def __init__(
        self,
        *,
        output: OutputFn | None = None,
        page_size: int = 15,
        ui: PickerUI | None = None,
        prompt: PromptFn | None = None,
    ) -> None:
        self._output = output if output is not None else _default_output
        self._page_size = max(5, page_size)
        self._ui = ui
        self._prompt = prompt if prompt is not None else _default_prompt

    def run(self, channel: ItemChannel) -> Selectable:
        """Return the picked item, raising :class:`SelectionError` otherwise."""

        session = PickerSession(page_size=self._page_size)
        ui = self._ui or self._build_ui()

        try:
            selection = ui.run(session, channel)
        except RuntimeError as exc:
            self._output(str(exc))
            ui = PromptPickerUI(self._prompt, self._output)
            selection = ui.run(session, channel)

        if selection is not None:
            return selection
        if channel.exhausted and not session.total_count():
            raise SelectionError(_MESSAGE_EMPTY)
        raise SelectionError(_MESSAGE_ABORTED)

    def _build_ui(self) -> PickerUI:
        return FuzzyPickerUI()


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))
