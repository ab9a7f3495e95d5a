"""
HTML Surface - paints the heatmap as absolute-positioned DOM markup.

Every cell is a positioned <div> inside one container. Interactivity in the
browser uses event delegation: one listener per registered event type on
the container, resolving the target cell through `data-cell-id`. Server
side, the same handlers are reachable through dispatch().
"""

from __future__ import annotations

from html import escape
from typing import Dict, List, Optional, Tuple

from .surface import (
    EVENT_CLICK,
    EVENT_HOVER,
    EVENT_LEAVE,
    EVENT_RETRY,
    CellKind,
    CellSpec,
    Label,
    LabelRole,
    VisualSurface,
)

TOOLTIP_ID = "heatmap-tooltip"

# One delegated listener per event type; `container` and `tooltip` are in scope.
_JS_LISTENERS: Dict[str, str] = {
    EVENT_CLICK: """
    container.addEventListener("click", function (e) {
        if (e.target.closest(".treemap-retry")) { return; }
        var cell = e.target.closest("[data-href]");
        if (cell && container.contains(cell)) { window.location.href = cell.dataset.href; }
    });""",
    EVENT_HOVER: """
    container.addEventListener("mousemove", function (e) {
        var cell = e.target.closest(".treemap-stock");
        if (!cell || !tooltip) { if (tooltip) { tooltip.style.display = "none"; } return; }
        tooltip.textContent = cell.dataset.tooltip || "";
        tooltip.style.display = "block";
        var x = e.clientX + 12, y = e.clientY + 12;
        if (x + tooltip.offsetWidth > window.innerWidth) { x = e.clientX - tooltip.offsetWidth - 12; }
        if (y + tooltip.offsetHeight > window.innerHeight) { y = e.clientY - tooltip.offsetHeight - 12; }
        tooltip.style.left = x + "px";
        tooltip.style.top = y + "px";
    });""",
    EVENT_LEAVE: """
    container.addEventListener("mouseleave", function () {
        if (tooltip) { tooltip.style.display = "none"; }
    });""",
    EVENT_RETRY: """
    container.addEventListener("click", function (e) {
        if (e.target.closest(".treemap-retry")) { window.location.reload(); }
    });""",
}

_LABEL_CLASSES: Dict[LabelRole, str] = {
    LabelRole.TITLE: "treemap-sector-title",
    LabelRole.NAME: "stock-name",
    LabelRole.TICKER: "stock-ticker",
    LabelRole.CHANGE: "stock-change",
}


def _px(value: float) -> str:
    return f"{value:.2f}px"


class HtmlSurface(VisualSurface):
    """VisualSurface producing static HTML plus a delegated-listener script."""

    def __init__(self, width: float, height: float, container_id: str = "heatmap-container") -> None:
        super().__init__()
        self._width = width
        self._height = height
        self.container_id = container_id
        self._cells: List[CellSpec] = []
        self._labels: Dict[str, List[Label]] = {}
        self._overlay: Optional[str] = None

    @property
    def size(self) -> Tuple[float, float]:
        return self._width, self._height

    @property
    def cell_count(self) -> int:
        return len(self._cells)

    def clear(self) -> None:
        self._cells = []
        self._labels = {}
        self._overlay = None

    def create_rect(self, spec: CellSpec) -> str:
        self._cells.append(spec)
        return spec.cell_id

    def create_label(self, cell_id: str, text: str, role: LabelRole, font_size: int) -> None:
        self._labels.setdefault(cell_id, []).append(Label(role=role, text=text, font_size=font_size))

    def show_placeholder(self, message: str) -> None:
        self._overlay = f'<div class="treemap-placeholder">{escape(message)}</div>'

    def show_retry(self, message: str) -> None:
        self._overlay = (
            '<div class="treemap-error">'
            f"<p>{escape(message)}</p>"
            '<button type="button" class="treemap-retry">Retry</button>'
            "</div>"
        )

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def markup(self) -> str:
        """Container <div> with all cells (or the placeholder/error overlay)."""
        parts = [
            f'<div id="{escape(self.container_id)}" class="treemap-container" '
            f'style="position:relative;width:{_px(self._width)};height:{_px(self._height)};">'
        ]
        parts.extend(self._cell_markup(cell) for cell in self._cells)
        if self._overlay:
            parts.append(self._overlay)
        parts.append("</div>")
        return "\n".join(parts)

    def script(self) -> str:
        """Delegated listeners for the registered event types."""
        listeners = "".join(_JS_LISTENERS[t] for t in self.event_types)
        return (
            "<script>\n(function () {\n"
            f'    var container = document.getElementById("{escape(self.container_id)}");\n'
            f'    var tooltip = document.getElementById("{TOOLTIP_ID}");\n'
            "    if (!container) { return; }"
            f"{listeners}\n"
            "})();\n</script>"
        )

    def to_html(self) -> str:
        """Container, tooltip element and script."""
        return "\n".join(
            [
                self.markup(),
                f'<div id="{TOOLTIP_ID}" class="heatmap-tooltip" style="display:none;"></div>',
                self.script(),
            ]
        )

    def _cell_markup(self, cell: CellSpec) -> str:
        classes = " ".join(cell.css_classes)
        style = (
            f"left:{_px(cell.x)};top:{_px(cell.y)};"
            f"width:{_px(cell.width)};height:{_px(cell.height)};"
            f"background-color:{cell.color};"
        )
        attrs = [f'class="{escape(classes)}"', f'data-cell-id="{escape(cell.cell_id)}"', f'style="{style}"']
        if cell.tooltip:
            attrs.append(f'data-tooltip="{escape(cell.tooltip)}"')
        if cell.href and cell.kind is CellKind.STOCK:
            attrs.append(f'data-href="{escape(cell.href)}"')
        if cell.kind is CellKind.STOCK and "symbol" in cell.data:
            attrs.append(f'data-symbol="{escape(str(cell.data["symbol"]))}"')

        inner = [self._label_markup(cell, label) for label in self._labels.get(cell.cell_id, [])]
        return f"<div {' '.join(attrs)}>{''.join(inner)}</div>"

    def _label_markup(self, cell: CellSpec, label: Label) -> str:
        css_class = _LABEL_CLASSES[label.role]
        text = escape(label.text)
        style = f'style="font-size:{label.font_size}px;"'
        if label.role is LabelRole.TITLE:
            if cell.href:
                return (
                    f'<a class="{css_class}" data-href="{escape(cell.href)}" '
                    f'href="{escape(cell.href)}" {style}>{text}</a>'
                )
            return f'<div class="{css_class}" {style}>{text}</div>'
        return f'<span class="{css_class}" {style}>{text}</span>'
