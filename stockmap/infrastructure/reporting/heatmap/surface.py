"""
Visual Surface - backend interface for the heatmap renderer.

The renderer never touches a concrete UI toolkit. It paints through this
small interface:

    create_rect(spec) -> cell_id        one element per sector / stock
    create_label(cell_id, text, ...)    text inside an element
    on(event, handler)                  ONE delegated handler per event type
    dispatch(event, target/x,y)         backend -> renderer event delivery

Backends:
- InMemorySurface (this module): headless, records everything; tests and
  JSON export
- HtmlSurface: absolute-positioned DOM markup with delegated listeners
- TerminalSurface: character grid for the Textual dashboard
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

# Event types delivered through dispatch()
EVENT_CLICK = "click"
EVENT_HOVER = "hover"
EVENT_LEAVE = "leave"
EVENT_RETRY = "retry"
EVENT_TYPES = (EVENT_CLICK, EVENT_HOVER, EVENT_LEAVE, EVENT_RETRY)


class CellKind(Enum):
    SECTOR = "sector"
    STOCK = "stock"


class LabelRole(Enum):
    TITLE = "title"  # Sector header
    NAME = "name"
    TICKER = "ticker"
    CHANGE = "change"


@dataclass
class CellSpec:
    """Everything a backend needs to draw one rectangle."""

    cell_id: str
    kind: CellKind
    x: float
    y: float
    width: float
    height: float
    color: str
    css_classes: Tuple[str, ...] = ()
    tooltip: Optional[str] = None
    href: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass(frozen=True)
class Label:
    role: LabelRole
    text: str
    font_size: int


@dataclass(frozen=True)
class SurfaceEvent:
    """Event delivered to a delegated handler."""

    type: str
    target_id: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None


EventHandler = Callable[[SurfaceEvent], None]


class VisualSurface(ABC):
    """
    Interface for heatmap paint targets.

    Event handling is delegated: the renderer registers one handler per
    event type on the surface (the container), never one per cell.
    Backends translate their native events into dispatch() calls.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, EventHandler] = {}

    # -------------------------------------------------------------------------
    # Geometry & painting
    # -------------------------------------------------------------------------

    @property
    @abstractmethod
    def size(self) -> Tuple[float, float]:
        """Current (width, height) of the container in pixels."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Discard the previous visual tree (cells, labels, placeholders)."""
        pass

    @abstractmethod
    def create_rect(self, spec: CellSpec) -> str:
        """Create one rectangle element. Returns its cell id."""
        pass

    @abstractmethod
    def create_label(self, cell_id: str, text: str, role: LabelRole, font_size: int) -> None:
        """Add a text label inside an existing cell."""
        pass

    @abstractmethod
    def show_placeholder(self, message: str) -> None:
        """Show the explicit "no data" state."""
        pass

    @abstractmethod
    def show_retry(self, message: str) -> None:
        """Show the failure state with a retry affordance (emits EVENT_RETRY)."""
        pass

    async def yield_to_host(self) -> None:
        """Give the host event loop a turn between paint batches."""
        await asyncio.sleep(0)

    # -------------------------------------------------------------------------
    # Delegated events
    # -------------------------------------------------------------------------

    def on(self, event_type: str, handler: EventHandler) -> None:
        """Register the delegated handler for an event type (replaces any previous)."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type '{event_type}', expected one of {EVENT_TYPES}")
        self._handlers[event_type] = handler

    @property
    def listener_count(self) -> int:
        return len(self._handlers)

    @property
    def event_types(self) -> List[str]:
        return list(self._handlers)

    def dispatch(
        self,
        event_type: str,
        target_id: Optional[str] = None,
        x: Optional[float] = None,
        y: Optional[float] = None,
    ) -> bool:
        """
        Deliver an event to the delegated handler.

        Returns:
            True if a handler was registered for the event type
        """
        handler = self._handlers.get(event_type)
        if handler is None:
            return False
        handler(SurfaceEvent(type=event_type, target_id=target_id, x=x, y=y))
        return True


class InMemorySurface(VisualSurface):
    """
    Headless surface that records cells and labels.

    Used by tests (no browser or terminal required) and for exporting the
    painted heatmap as JSON.
    """

    def __init__(self, width: float = 1200.0, height: float = 800.0) -> None:
        super().__init__()
        self._width = width
        self._height = height
        self.cells: Dict[str, CellSpec] = {}
        self.labels: Dict[str, List[Label]] = {}
        self.placeholder: Optional[str] = None
        self.retry_message: Optional[str] = None
        self.clear_count = 0
        self.yield_count = 0

    @property
    def size(self) -> Tuple[float, float]:
        return self._width, self._height

    def set_size(self, width: float, height: float) -> None:
        self._width = width
        self._height = height

    def clear(self) -> None:
        self.cells.clear()
        self.labels.clear()
        self.placeholder = None
        self.retry_message = None
        self.clear_count += 1

    def create_rect(self, spec: CellSpec) -> str:
        self.cells[spec.cell_id] = spec
        return spec.cell_id

    def create_label(self, cell_id: str, text: str, role: LabelRole, font_size: int) -> None:
        if cell_id not in self.cells:
            raise KeyError(f"Unknown cell: {cell_id}")
        self.labels.setdefault(cell_id, []).append(Label(role=role, text=text, font_size=font_size))

    def show_placeholder(self, message: str) -> None:
        self.placeholder = message

    def show_retry(self, message: str) -> None:
        self.retry_message = message

    async def yield_to_host(self) -> None:
        self.yield_count += 1
        await asyncio.sleep(0)

    @property
    def stock_cells(self) -> List[CellSpec]:
        return [c for c in self.cells.values() if c.kind is CellKind.STOCK]

    @property
    def sector_cells(self) -> List[CellSpec]:
        return [c for c in self.cells.values() if c.kind is CellKind.SECTOR]

    def labels_for(self, cell_id: str) -> List[Label]:
        return list(self.labels.get(cell_id, []))

    def find_stock(self, symbol: str) -> Optional[CellSpec]:
        for cell in self.stock_cells:
            if cell.data.get("symbol") == symbol:
                return cell
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the painted surface for JSON export."""
        return {
            "width": self._width,
            "height": self._height,
            "placeholder": self.placeholder,
            "retry_message": self.retry_message,
            "cells": [
                {
                    "id": c.cell_id,
                    "kind": c.kind.value,
                    "x": c.x,
                    "y": c.y,
                    "width": c.width,
                    "height": c.height,
                    "color": c.color,
                    "classes": list(c.css_classes),
                    "labels": [
                        {"role": lbl.role.value, "text": lbl.text, "font_size": lbl.font_size}
                        for lbl in self.labels.get(c.cell_id, [])
                    ],
                    "data": c.data,
                }
                for c in self.cells.values()
            ],
        }
