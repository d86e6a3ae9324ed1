from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Iterable, Literal

from sketchroom.protocol.constants import OP_DRAW, OP_ERASE, TOOL_ERASER, TOOL_PEN
from sketchroom.protocol.messages import DrawingOperation, Point
from sketchroom.state import Store

Tool = Literal["pen", "eraser"]


@dataclass(frozen=True)
class ToolState:
    selected_tool: Tool = TOOL_PEN
    selected_color: str = "#000000"
    brush_size: float = 3.0
    is_drawing: bool = False


class DrawingTools:
    """Local pen/eraser settings; stamps them onto new operations."""

    def __init__(self) -> None:
        self.store: Store[ToolState] = Store(ToolState())

    @property
    def state(self) -> ToolState:
        return self.store.get()

    def set_tool(self, tool: Tool) -> None:
        if tool not in (TOOL_PEN, TOOL_ERASER):
            raise ValueError(f"unknown tool: {tool!r}")
        self.store.set(selected_tool=tool)

    def set_color(self, color: str) -> None:
        self.store.set(selected_color=color)

    def set_brush_size(self, size: float) -> None:
        if size <= 0:
            raise ValueError("brush size must be positive")
        self.store.set(brush_size=float(size))

    def set_drawing(self, drawing: bool) -> None:
        self.store.set(is_drawing=drawing)

    def build_operation(self, user_id: str, points: Iterable[Point | tuple | list]) -> DrawingOperation:
        st = self.state
        pts: list[Point] = []
        for p in points:
            if isinstance(p, Point):
                pts.append(p)
            else:
                # [x, y] or [x, y, pressure]
                pts.append(Point(x=p[0], y=p[1], pressure=p[2] if len(p) >= 3 else None))
        return DrawingOperation(
            id=uuid.uuid4().hex,
            kind=OP_ERASE if st.selected_tool == TOOL_ERASER else OP_DRAW,
            points=tuple(pts),
            color=st.selected_color,
            brush_size=st.brush_size,
            user_id=user_id,
            timestamp=int(time.time() * 1000),
        )
