from __future__ import annotations

from importlib import metadata
from pathlib import Path

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.path as mpath
import matplotlib.pyplot as plt
from matplotlib.patches import FancyArrowPatch, FancyBboxPatch, Rectangle

from .layout import GanttLayout
from .schedule_models import PositionedTask

DPI = 100
HEADER_HEIGHT_PX = 48.0
FOOTER_HEIGHT_PX = 40.0
BAR_INSET_PX = 8.0  # vertical gap between row edge and bar
BAR_RADIUS_PX = 4.0
LABEL_PAD_PX = 16.0
ROUTE_X_PAD = 6.0  # horizontal gap from bar edges to start/end of connector
ROUTE_CLEARANCE = 2.0
LABEL_FONT = 9
TICK_FONT = 8
FOOTER_FONT = 8
TITLE_FONT = 12

CRITICAL_COLOR = "#ef4444"
STATUS_COLORS = {
    "completed": "#22c55e",
    "in_progress": "#3b82f6",
    "not_started": "#9ca3af",
}
GRID_COLOR = "#e5e7eb"
LABEL_BG = "#f9fafb"
TODAY_COLOR = "#dc2626"
CONNECTOR_COLOR = "#3a3a3a"


def render_gantt(layout: GanttLayout, out_path: str, title: str | None = None) -> None:
    """
    Render a composed layout to an SVG file at `out_path`.

    Bars are drawn at the layout's pixel offsets; edges clipped by the window
    keep square corners so the bar reads as continuing off-screen.
    """

    settings = layout.settings
    label_w = settings.label_column_width_px
    row_h = settings.row_height_px
    width_px = max(layout.viewport_width_px, label_w + 1.0)
    body_h = row_h * max(1, len(layout.rows))
    height_px = HEADER_HEIGHT_PX + body_h + FOOTER_HEIGHT_PX

    fig = plt.figure(figsize=(width_px / DPI, height_px / DPI), dpi=DPI)
    ax = fig.add_axes((0.0, 0.0, 1.0, 1.0))
    ax.set_xlim(0, width_px)
    ax.set_ylim(height_px, 0)
    ax.axis("off")

    ax.add_patch(Rectangle((0, 0), label_w, HEADER_HEIGHT_PX + body_h, facecolor=LABEL_BG, edgecolor=GRID_COLOR))
    heading = title if title is not None else layout.title
    ax.text(LABEL_PAD_PX, HEADER_HEIGHT_PX / 2, heading or "Task Name", va="center", fontsize=TITLE_FONT, fontweight="bold")

    _draw_periods(ax, layout, label_w, body_h)

    bar_rects: dict[str, tuple[float, float, float, float]] = {}
    for idx, row in enumerate(layout.rows):
        y_top = HEADER_HEIGHT_PX + idx * row_h
        ax.plot([0, width_px], [y_top + row_h, y_top + row_h], color=GRID_COLOR, linewidth=0.6, zorder=1)
        _draw_label(ax, row, y_top + row_h / 2, settings.indent_px)
        bar_rects[row.task.id] = _draw_bar(ax, row, label_w, y_top, row_h)

    if layout.today_marker_offset_px is not None:
        x_today = label_w + layout.today_marker_offset_px
        ax.plot([x_today, x_today], [0, HEADER_HEIGHT_PX + body_h], color=TODAY_COLOR, linestyle="--", linewidth=1.0, zorder=4)

    _draw_dependencies(ax, layout, bar_rects)

    window = layout.window
    footer_y = HEADER_HEIGHT_PX + body_h + FOOTER_HEIGHT_PX / 2
    ax.text(
        LABEL_PAD_PX,
        footer_y,
        f"Showing {len(layout.rows)} tasks from {window.start_date.isoformat()} to {window.end_date.isoformat()}",
        va="center",
        fontsize=FOOTER_FONT,
    )
    ax.text(
        width_px - LABEL_PAD_PX,
        footer_y,
        f"Duration: {window.total_days} days · v{_tool_version()}",
        ha="right",
        va="center",
        fontsize=FOOTER_FONT,
    )

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg")
    plt.close(fig)


def bar_color(row: PositionedTask) -> str:
    if row.is_critical:
        return CRITICAL_COLOR
    return STATUS_COLORS.get(row.task.status, STATUS_COLORS["not_started"])


def _draw_periods(ax: plt.Axes, layout: GanttLayout, label_w: float, body_h: float) -> None:
    x = label_w
    for period in layout.window.periods:
        cell_w = period.span_days * layout.pixels_per_day
        ax.plot([x, x], [0, HEADER_HEIGHT_PX + body_h], color=GRID_COLOR, linewidth=0.6, zorder=1)
        ax.text(
            x + cell_w / 2,
            HEADER_HEIGHT_PX / 2,
            period.label,
            ha="center",
            va="center",
            fontsize=TICK_FONT,
            color="#4b5563",
            clip_on=True,
        )
        x += cell_w
    ax.plot([label_w, x], [HEADER_HEIGHT_PX, HEADER_HEIGHT_PX], color=GRID_COLOR, linewidth=0.8, zorder=1)


def _draw_label(ax: plt.Axes, row: PositionedTask, y_mid: float, indent_px: float) -> None:
    text = row.task.name
    if row.task.wbs_code:
        text = f"{row.task.wbs_code}  {text}"
    ax.text(
        row.level * indent_px + LABEL_PAD_PX,
        y_mid,
        text,
        va="center",
        fontsize=LABEL_FONT,
        fontweight="bold" if row.has_children else "normal",
        color="#111827" if row.has_children else "#374151",
    )


def _draw_bar(
    ax: plt.Axes, row: PositionedTask, label_w: float, y_top: float, row_h: float
) -> tuple[float, float, float, float]:
    """Draw one bar and return its rect as (xmin, xmax, ymin, ymax)."""

    x0 = label_w + row.left_offset_px
    width = row.width_px
    y0 = y_top + BAR_INSET_PX
    height = max(1.0, row_h - 2 * BAR_INSET_PX)
    color = bar_color(row)
    radius = min(BAR_RADIUS_PX, width / 2, height / 2)

    bar = FancyBboxPatch(
        (x0, y0),
        width,
        height,
        boxstyle=f"round,pad=0,rounding_size={radius}",
        facecolor=color,
        edgecolor="none",
        zorder=3,
    )
    ax.add_patch(bar)
    # Square off the truncated edge(s).
    if row.clipped_at_start:
        ax.add_patch(Rectangle((x0, y0), min(radius * 2, width), height, facecolor=color, edgecolor="none", zorder=3))
    if row.clipped_at_end:
        cap = min(radius * 2, width)
        ax.add_patch(Rectangle((x0 + width - cap, y0), cap, height, facecolor=color, edgecolor="none", zorder=3))

    label = ax.text(
        x0 + 6,
        y0 + height / 2,
        row.task.name,
        va="center",
        fontsize=TICK_FONT,
        color="white",
        zorder=5,
    )
    label.set_clip_path(bar)
    return (x0, x0 + width, y0, y0 + height)


def _tool_version() -> str:
    try:
        return metadata.version("schedule-engine")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def _polyline_path(points: list[tuple[float, float]]) -> mpath.Path:
    codes = [mpath.Path.MOVETO] + [mpath.Path.LINETO] * (len(points) - 1)
    return mpath.Path(points, codes)


def _simplify_polyline(points: list[tuple[float, float]], eps: float = 1e-9) -> list[tuple[float, float]]:
    """Remove collinear interior points from an orthogonal polyline."""
    if len(points) <= 2:
        return points
    simplified = [points[0]]
    for i in range(1, len(points) - 1):
        x1, y1 = simplified[-1]
        x2, y2 = points[i]
        x3, y3 = points[i + 1]
        dx1, dy1 = x2 - x1, y2 - y1
        dx2, dy2 = x3 - x2, y3 - y2
        # Collinear if cross product is ~0.
        if abs(dx1 * dy2 - dy1 * dx2) < eps:
            continue
        simplified.append(points[i])
    simplified.append(points[-1])
    return simplified


def connector_anchors(
    a_rect: tuple[float, float, float, float],
    b_rect: tuple[float, float, float, float],
    dependency_type: str,
) -> tuple[tuple[float, float], tuple[float, float], bool, bool]:
    """
    Start/end points of a connector for the given dependency type.

    Returns (start, goal, leaves_right, enters_left): FS leaves the
    predecessor's finish and enters the successor's start, SS joins starts,
    FF joins finishes, SF leaves the predecessor's start for the successor's
    finish.
    """

    axmin, axmax, aymin, aymax = a_rect
    bxmin, bxmax, bymin, bymax = b_rect
    leaves_right = dependency_type in ("FS", "FF")
    enters_left = dependency_type in ("FS", "SS")
    start_x = axmax + ROUTE_X_PAD if leaves_right else axmin - ROUTE_X_PAD
    goal_x = bxmin - ROUTE_X_PAD if enters_left else bxmax + ROUTE_X_PAD
    return (start_x, (aymin + aymax) / 2), (goal_x, (bymin + bymax) / 2), leaves_right, enters_left


def route_dependency(
    a_rect: tuple[float, float, float, float],
    b_rect: tuple[float, float, float, float],
    dependency_type: str = "FS",
) -> list[tuple[float, float]]:
    """Orthogonal connector between two bars for the given dependency type."""

    start, goal, leaves_right, enters_left = connector_anchors(a_rect, b_rect, dependency_type)

    if leaves_right == enters_left:
        # FS / SF: the connector crosses from one side of the gap to the other.
        gap = goal[0] - start[0] if leaves_right else start[0] - goal[0]
        if gap >= ROUTE_CLEARANCE:
            x_lane = (start[0] + goal[0]) / 2
            return _simplify_polyline([start, (x_lane, start[1]), (x_lane, goal[1]), goal])
        # Bars overlap in time: detour through the boundary between the two rows.
        y_mid = (start[1] + goal[1]) / 2
        return _simplify_polyline([start, (start[0], y_mid), (goal[0], y_mid), goal])

    # SS / FF: both ends on the same side, share the outermost lane.
    x_lane = max(start[0], goal[0]) if leaves_right else min(start[0], goal[0])
    return _simplify_polyline([start, (x_lane, start[1]), (x_lane, goal[1]), goal])


def _draw_dependencies(
    ax: plt.Axes,
    layout: GanttLayout,
    bar_rects: dict[str, tuple[float, float, float, float]],
) -> None:
    for edge in layout.dependencies:
        a_rect = bar_rects.get(edge.predecessor_task_id)
        b_rect = bar_rects.get(edge.successor_task_id)
        if not a_rect or not b_rect:
            continue
        polyline = route_dependency(a_rect, b_rect, edge.dependency_type)
        arrow = FancyArrowPatch(
            path=_polyline_path(polyline),
            arrowstyle="-|>",
            mutation_scale=8.0,
            lw=0.9,
            color=CONNECTOR_COLOR,
            shrinkA=0.5,
            shrinkB=0.5,
            zorder=6,
        )
        ax.add_patch(arrow)
