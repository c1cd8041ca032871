"""Info cards describing the node the user is looking at.

A card is computed as a plain :class:`CardView` value by one of two renderers,
picked by node category. Containers additionally get a per-type breakdown table
and a pie chart layout. Drawing the view is left to a surface callback.
"""
from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

from sizereport.state import BYTE_UNITS, ViewState
from sizereport.tree import TreeNode, TypeStats


TAU = 2 * math.pi
SIZE_CHANGE_CUTOFF = 50000
GREW_COLOR = "#ea4335"
SHRUNK_COLOR = "#34a853"
OTHER_SYMBOL_TYPE = "o"


@dataclass(frozen=True, slots=True)
class IconStyle:
    color: str
    description: str


SYMBOL_STYLES: dict[str, IconStyle] = {
    "D": IconStyle("#737373", "Directory"),
    "C": IconStyle("#737373", "Component"),
    "F": IconStyle("#737373", "File"),
    "J": IconStyle("#737373", "Java class"),
    "b": IconStyle("#5f6368", "Uninitialized data (.bss)"),
    "d": IconStyle("#e8710a", "Initialized data (.data)"),
    "r": IconStyle("#f9ab00", "Read-only data (.rodata)"),
    "t": IconStyle("#1a73e8", "Code (.text)"),
    "R": IconStyle("#d01884", "Relocatable read-only data (.data.rel.ro)"),
    "*": IconStyle("#129eaf", "Generated symbols"),
    "x": IconStyle("#9334e6", "Dex non-method entries"),
    "m": IconStyle("#7cb342", "Dex methods"),
    "p": IconStyle("#b31412", "Locale pak entries"),
    "P": IconStyle("#e52592", "Non-locale pak entries"),
    "o": IconStyle("#80868b", "Other entries"),
}


def get_icon_style(symbol_type: str) -> IconStyle:
    return SYMBOL_STYLES.get(symbol_type[:1], SYMBOL_STYLES[OTHER_SYMBOL_TYPE])


@dataclass(frozen=True, slots=True)
class SizeContents:
    description: str
    text: str
    unit: str
    value: int


def get_size_contents(node: TreeNode, state: ViewState) -> SizeContents:
    """Size header text for a node, e.g. ``1,234 bytes`` and ``1.21 KiB``.

    When the ``gzip`` setting is on, the node's compressed size is shown.
    """
    value = node.gzip_size if state.gzip else node.size
    unit = state.byte_unit
    return SizeContents(
        description=f"{value:,} bytes",
        text=f"{value / BYTE_UNITS[unit]:,.2f}",
        unit=unit,
        value=value,
    )


def size_classes(value: int, state: ViewState) -> frozenset[str]:
    if not state.diff_mode or abs(value) <= SIZE_CHANGE_CUTOFF:
        return frozenset()
    return frozenset({"shrunk"}) if value < 0 else frozenset({"grew"})


@dataclass(frozen=True, slots=True)
class BreakdownRow:
    type: str
    size: int
    count: int
    percentage: float


@dataclass(frozen=True, slots=True)
class PieSlice:
    type: str
    angle_start: float
    angle_end: float
    color: str
    border_color: str | None = None


def _stats_values(stats: TypeStats | Mapping[str, int]) -> tuple[int, int]:
    if isinstance(stats, TypeStats):
        return stats.size, stats.count
    return int(stats["size"]), int(stats["count"])


def compute_breakdown(child_stats: Mapping[str, TypeStats | Mapping[str, int]]) -> list[BreakdownRow]:
    """Per-type rows, largest absolute size first, each with its share of the total.

    The share is signed (a shrinking type has a negative share) but measured
    against the sum of absolute sizes. Types with zero size are left out.
    """
    entries = [(symbol_type, *_stats_values(stats)) for symbol_type, stats in child_stats.items()]
    total = sum(abs(size) for _, size, _ in entries)
    if total == 0:
        return []

    rows = [
        BreakdownRow(type=symbol_type, size=size, count=count, percentage=size / total)
        for symbol_type, size, count in entries
        if size != 0
    ]
    rows.sort(key=lambda row: abs(row.size), reverse=True)
    return rows


def layout_slices(rows: list[BreakdownRow], *, diff_mode: bool = False) -> list[PieSlice]:
    slices: list[PieSlice] = []
    angle_start = 0.0
    for row in rows:
        arc_length = abs(row.percentage) * TAU
        if arc_length <= 0:
            continue
        border = None
        if diff_mode:
            border = GREW_COLOR if row.size > 0 else SHRUNK_COLOR
        angle_end = min(angle_start + arc_length, TAU)
        slices.append(
            PieSlice(
                type=row.type,
                angle_start=angle_start,
                angle_end=angle_end,
                color=get_icon_style(row.type).color,
                border_color=border,
            )
        )
        angle_start = angle_end

    # Shares of a normalized breakdown add up to one; absorb float drift.
    if slices and math.isclose(slices[-1].angle_end, TAU, rel_tol=1e-9):
        last = slices[-1]
        slices[-1] = PieSlice(last.type, last.angle_start, TAU, last.color, last.border_color)
    return slices


@dataclass(frozen=True, slots=True)
class CardView:
    kind: str
    size: SizeContents
    size_classes: frozenset[str]
    path_label: str
    path_prefix: str
    path_name: str
    type_description: str
    type_color: str
    icon_background: str | None = None
    breakdown: tuple[BreakdownRow, ...] = ()
    slices: tuple[PieSlice, ...] = ()


class CardRenderer(Protocol):
    kind: str

    def render(self, node: TreeNode, state: ViewState) -> CardView:
        ...


def _common_fields(node: TreeNode, state: ViewState) -> dict[str, Any]:
    size = get_size_contents(node, state)
    style = get_icon_style(node.type)
    if node.src_path:
        path_label, path_prefix, path_name = "Path: ", "", node.src_path
    else:
        path_label = ""
        path_prefix = node.id_path[: node.short_name_index]
        path_name = node.short_name
    return {
        "size": size,
        "size_classes": size_classes(size.value, state),
        "path_label": path_label,
        "path_prefix": path_prefix,
        "path_name": path_name,
        "type_description": style.description,
        "type_color": style.color,
    }


class SymbolCard:
    kind = "symbol"

    def render(self, node: TreeNode, state: ViewState) -> CardView:
        fields = _common_fields(node, state)
        return CardView(kind=self.kind, icon_background=fields["type_color"], **fields)


class ContainerCard:
    kind = "container"

    def render(self, node: TreeNode, state: ViewState) -> CardView:
        rows = compute_breakdown(node.child_stats)
        return CardView(
            kind=self.kind,
            breakdown=tuple(rows),
            slices=tuple(layout_slices(rows, diff_mode=state.diff_mode)),
            **_common_fields(node, state),
        )


SYMBOL_CARD = SymbolCard()
CONTAINER_CARD = ContainerCard()


def select_card(node: TreeNode) -> CardRenderer:
    return CONTAINER_CARD if node.is_container else SYMBOL_CARD


class FrameScheduler(Protocol):
    def request(self, callback: Callable[[], None]) -> Any:
        ...

    def cancel(self, handle: Any) -> None:
        ...


class AsyncioFrameScheduler:
    """Runs callbacks on the event loop at most once per display refresh."""

    def __init__(self, interval: float = 1 / 60, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._interval = interval
        self._loop = loop

    def request(self, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(self._interval, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class ManualFrameScheduler:
    """Holds callbacks until :meth:`run_pending` is called, one call per frame."""

    def __init__(self) -> None:
        self._pending: dict[int, Callable[[], None]] = {}
        self._next_handle = 0

    def request(self, callback: Callable[[], None]) -> int:
        self._next_handle += 1
        self._pending[self._next_handle] = callback
        return self._next_handle

    def cancel(self, handle: int) -> None:
        self._pending.pop(handle, None)

    def run_pending(self) -> int:
        pending, self._pending = self._pending, {}
        for callback in pending.values():
            callback()
        return len(pending)


class Infocard:
    """Shows one card at a time and redraws it at most once per frame.

    Repeated :meth:`update_infocard` calls before the next frame replace each
    other, and a frame that would produce the view already on screen is not
    drawn again.
    """

    def __init__(
        self,
        state: ViewState,
        surface: Callable[[CardView], None],
        scheduler: FrameScheduler,
    ) -> None:
        self._state = state
        self._surface = surface
        self._scheduler = scheduler
        self._pending: Any = None
        self._current: CardView | None = None
        self._node: TreeNode | None = None
        self._unsubscribe = state.subscribe(self._on_state_change)

    @property
    def current(self) -> CardView | None:
        return self._current

    @property
    def visible_kind(self) -> str | None:
        return self._current.kind if self._current is not None else None

    def update_infocard(self, node: TreeNode) -> None:
        self._node = node
        if self._pending is not None:
            self._scheduler.cancel(self._pending)
        self._pending = self._scheduler.request(lambda: self._draw(node))

    def close(self) -> None:
        if self._pending is not None:
            self._scheduler.cancel(self._pending)
            self._pending = None
        self._unsubscribe()

    def _on_state_change(self, state: ViewState, key: str) -> None:
        if self._node is not None:
            self.update_infocard(self._node)

    def _draw(self, node: TreeNode) -> None:
        self._pending = None
        view = select_card(node).render(node, self._state)
        if view == self._current:
            return
        self._current = view
        self._surface(view)
