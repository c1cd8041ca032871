from __future__ import annotations

import math

from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sizereport.infocard import TAU, CardView, get_icon_style


PIE_BAR_WIDTH = 40


def _size_header(view: CardView) -> Text:
    style = ""
    if "grew" in view.size_classes:
        style = "bold red"
    elif "shrunk" in view.size_classes:
        style = "bold green"
    text = Text(f"{view.size.description} (", style=style)
    text.append(f"{view.size.text} ")
    text.append(view.size.unit, style="dim")
    text.append(")")
    return text


def _path_line(view: CardView) -> Text:
    if view.path_label:
        text = Text(view.path_label, style="bold")
        text.append(view.path_name)
        return text
    text = Text(view.path_prefix)
    text.append(view.path_name, style="bold")
    return text


def _pie_bar(view: CardView) -> Text:
    """Unrolls the pie slices into one proportional bar."""
    bar = Text()
    used = 0
    for index, pie_slice in enumerate(view.slices):
        if index == len(view.slices) - 1:
            width = PIE_BAR_WIDTH - used
        else:
            width = round((pie_slice.angle_end - pie_slice.angle_start) / TAU * PIE_BAR_WIDTH)
        width = max(width, 0)
        if pie_slice.border_color:
            # The border shows as a strip above the slice colour.
            bar.append("▆" * width, style=f"{pie_slice.color} on {pie_slice.border_color}")
        else:
            bar.append("█" * width, style=pie_slice.color)
        used += width
    return bar


def _breakdown_table(view: CardView) -> Table:
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Type")
    table.add_column("Count", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Percent", justify="right")
    table.add_column("Arc", justify="right")

    arcs = {pie_slice.type: pie_slice for pie_slice in view.slices}
    for row in view.breakdown:
        style = get_icon_style(row.type)
        pie_slice = arcs.get(row.type)
        arc = ""
        if pie_slice is not None:
            arc = f"{math.degrees(pie_slice.angle_end - pie_slice.angle_start):.1f}°"
        table.add_row(
            Text(style.description, style=style.color),
            f"{row.count:,}",
            f"{row.size:,.2f}",
            f"{row.percentage:.2%}",
            arc,
        )
    return table


def render_card(view: CardView) -> RenderableType:
    title = Text(view.type_description, style=f"bold {view.type_color}")
    parts: list[RenderableType] = [_size_header(view), _path_line(view)]
    if view.kind == "container" and view.breakdown:
        parts.append(_pie_bar(view))
        parts.append(_breakdown_table(view))
    border_style = view.icon_background or "white"
    return Panel(Group(*parts), title=title, border_style=border_style, expand=False)


class ConsoleSurface:
    def __init__(self, console: Console) -> None:
        self._console = console

    def __call__(self, view: CardView) -> None:
        self._console.print(render_card(view))
