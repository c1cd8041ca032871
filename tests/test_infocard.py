from __future__ import annotations

import asyncio
import math

import pytest

from sizereport.infocard import (
    GREW_COLOR,
    SHRUNK_COLOR,
    TAU,
    AsyncioFrameScheduler,
    Infocard,
    ManualFrameScheduler,
    compute_breakdown,
    get_icon_style,
    get_size_contents,
    layout_slices,
    select_card,
    size_classes,
)
from sizereport.state import ViewState
from sizereport.tree import TreeNode, TypeStats


def _container(**stats: tuple[int, int]) -> TreeNode:
    return TreeNode(
        id_path="src/ui",
        short_name_index=4,
        type="D",
        size=sum(size for size, _ in stats.values()),
        gzip_size=123,
        child_stats={key: TypeStats(size, count) for key, (size, count) in stats.items()},
    )


def _symbol() -> TreeNode:
    return TreeNode(id_path="src/a.js:a.js", short_name_index=9, type="t", src_path="src/a.js", size=2048)


def test_breakdown_percentages_and_full_circle() -> None:
    rows = compute_breakdown({"t": {"size": 300, "count": 1}, "r": {"size": 100, "count": 1}})

    assert [(row.type, row.percentage) for row in rows] == [("t", 0.75), ("r", 0.25)]

    slices = layout_slices(rows)
    assert slices[0].angle_start == 0
    assert slices[0].angle_end == slices[1].angle_start
    assert slices[-1].angle_end == TAU
    assert sum(s.angle_end - s.angle_start for s in slices) == pytest.approx(2 * math.pi)


def test_breakdown_hides_zero_rows_and_orders_by_absolute_size() -> None:
    rows = compute_breakdown(
        {
            "t": TypeStats(size=-500, count=-1),
            "r": TypeStats(size=200, count=1),
            "d": TypeStats(size=0, count=3),
            "b": TypeStats(size=300, count=2),
        }
    )

    assert [row.type for row in rows] == ["t", "b", "r"]
    assert rows[0].percentage == -0.5
    assert sum(abs(row.percentage) for row in rows) == pytest.approx(1.0)


def test_breakdown_of_empty_container() -> None:
    assert compute_breakdown({}) == []
    assert compute_breakdown({"t": TypeStats(0, 0)}) == []
    assert layout_slices([]) == []


def test_slices_are_contiguous_and_never_pass_full_circle() -> None:
    rows = compute_breakdown({key: TypeStats(size, 1) for key, size in zip("tdrbx", [7, 3, 11, 13, 17])})

    slices = layout_slices(rows)

    previous_end = 0.0
    for pie_slice in slices:
        assert pie_slice.angle_start == previous_end
        assert pie_slice.angle_end >= pie_slice.angle_start
        previous_end = pie_slice.angle_end
    assert previous_end == TAU


def test_diff_mode_borders_follow_sign() -> None:
    rows = compute_breakdown({"t": TypeStats(300, 1), "r": TypeStats(-100, -1)})

    plain = layout_slices(rows)
    diff = layout_slices(rows, diff_mode=True)

    assert all(s.border_color is None for s in plain)
    assert [s.border_color for s in diff] == [GREW_COLOR, SHRUNK_COLOR]
    assert diff[0].color == get_icon_style("t").color


def test_icon_style_falls_back_to_other() -> None:
    assert get_icon_style("?") == get_icon_style("o")
    assert get_icon_style("Dt") == get_icon_style("D")


def test_size_contents_use_byte_unit_and_gzip_flag() -> None:
    node = TreeNode(id_path="a", short_name_index=0, type="F", size=1234, gzip_size=512)

    contents = get_size_contents(node, ViewState())
    assert (contents.description, contents.text, contents.unit) == ("1,234 bytes", "1.21", "KiB")

    gzipped = get_size_contents(node, ViewState([("gzip", "on"), ("byteunit", "B")]))
    assert (gzipped.description, gzipped.text, gzipped.value) == ("512 bytes", "512.00", 512)


def test_size_classes_only_in_diff_mode_past_cutoff() -> None:
    diff = ViewState([("diff_mode", "on")])

    assert size_classes(60000, ViewState()) == frozenset()
    assert size_classes(60000, diff) == {"grew"}
    assert size_classes(-60000, diff) == {"shrunk"}
    assert size_classes(50000, diff) == frozenset()


def test_card_selected_by_node_category() -> None:
    state = ViewState()

    container_view = select_card(_container(t=(300, 1), r=(100, 1))).render(_container(t=(300, 1), r=(100, 1)), state)
    symbol_view = select_card(_symbol()).render(_symbol(), state)

    assert container_view.kind == "container"
    assert container_view.path_prefix == "src/"
    assert container_view.path_name == "ui"
    assert [row.type for row in container_view.breakdown] == ["t", "r"]
    assert len(container_view.slices) == 2

    assert symbol_view.kind == "symbol"
    assert symbol_view.path_label == "Path: "
    assert symbol_view.path_name == "src/a.js"
    assert symbol_view.icon_background == get_icon_style("t").color
    assert symbol_view.breakdown == ()


def test_update_infocard_coalesces_to_one_draw_per_frame() -> None:
    drawn = []
    scheduler = ManualFrameScheduler()
    card = Infocard(ViewState(), drawn.append, scheduler)

    card.update_infocard(_symbol())
    card.update_infocard(_container(t=(1, 1)))
    card.update_infocard(_container(t=(300, 1), r=(100, 1)))

    assert drawn == []
    assert scheduler.run_pending() == 1
    assert len(drawn) == 1
    assert drawn[0].kind == "container"
    assert card.visible_kind == "container"


def test_update_infocard_is_idempotent() -> None:
    drawn = []
    scheduler = ManualFrameScheduler()
    card = Infocard(ViewState(), drawn.append, scheduler)
    node = _container(t=(300, 1))

    card.update_infocard(node)
    scheduler.run_pending()
    card.update_infocard(node)
    scheduler.run_pending()

    assert len(drawn) == 1


def test_state_change_redraws_current_node() -> None:
    drawn = []
    scheduler = ManualFrameScheduler()
    state = ViewState()
    card = Infocard(state, drawn.append, scheduler)
    card.update_infocard(_container(t=(300, 1), r=(-100, -1)))
    scheduler.run_pending()

    state.set_flag("diff_mode", True)
    scheduler.run_pending()

    assert len(drawn) == 2
    assert drawn[1].slices[0].border_color == GREW_COLOR

    card.close()
    state.set_flag("diff_mode", False)
    assert scheduler.run_pending() == 0


def test_asyncio_scheduler_draws_once_after_burst() -> None:
    drawn = []

    async def run() -> None:
        card = Infocard(ViewState(), drawn.append, AsyncioFrameScheduler(interval=0.001))
        for size in range(1, 20):
            card.update_infocard(_container(t=(size, 1)))
        await asyncio.sleep(0.05)
        card.close()

    asyncio.run(run())

    assert len(drawn) == 1
    assert drawn[0].breakdown[0].size == 19
