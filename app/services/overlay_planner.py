"""
Overlay Planner - logo scale and placement.

Offsets are resolved numerically from the probed video and logo dimensions, so
ffmpeg only ever receives plain integers for scale and overlay position.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Union

from app.exceptions import InvalidPosition, InvalidSize


class OverlayPosition(str, Enum):
    """Corner of the video frame the logo is anchored to."""

    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"

    @classmethod
    def parse(cls, value: Union[str, "OverlayPosition"]) -> "OverlayPosition":
        """
        Parse a position string such as "bottom-right".

        Underscores and case are tolerated ("BOTTOM_RIGHT"). Anything else
        raises InvalidPosition; there is no fallback corner.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower().replace("_", "-")
            for position in cls:
                if position.value == normalized:
                    return position
        raise InvalidPosition(value, [p.value for p in cls])

    @property
    def is_left(self) -> bool:
        return self in (OverlayPosition.TOP_LEFT, OverlayPosition.BOTTOM_LEFT)

    @property
    def is_top(self) -> bool:
        return self in (OverlayPosition.TOP_LEFT, OverlayPosition.TOP_RIGHT)


def parse_size_percent(value: Union[str, int, float]) -> float:
    """Parse and range-check a logo size percentage. Must be in (0, 100]."""
    if isinstance(value, bool):
        raise InvalidSize()
    try:
        size = float(value)
    except (TypeError, ValueError):
        raise InvalidSize()
    if not math.isfinite(size) or size <= 0 or size > 100:
        raise InvalidSize()
    return size


@dataclass(frozen=True)
class OverlayPlan:
    """Resolved composition geometry for one job."""

    position: OverlayPosition
    size_percent: float
    logo_width: float  # exact, before rounding
    logo_height: float
    rendered_width: int  # what ffmpeg scales the logo to
    rendered_height: int
    x: int  # offset from the top-left of the video frame
    y: int

    @property
    def scale_filter(self) -> str:
        return f"scale={self.rendered_width}:{self.rendered_height}"

    @property
    def overlay_filter(self) -> str:
        return f"overlay={self.x}:{self.y}"


class OverlayPlanner:
    """Computes logo size and corner offset with a fixed edge margin."""

    def __init__(self, margin: int = 10):
        self.margin = margin

    def plan(
        self,
        video_width: int,
        video_height: int,
        logo_width: int,
        logo_height: int,
        position: Union[str, OverlayPosition],
        size_percent: Union[str, int, float],
    ) -> OverlayPlan:
        """
        Compute the composition plan.

        The logo is scaled uniformly so its width is size_percent of the video
        width. Offsets follow the corner with `margin` pixels to the nearest
        edges, clamped at 0 when the logo is too large to honour the margin.

        Raises:
            InvalidPosition: Unknown corner
            InvalidSize: size_percent outside (0, 100] or non-positive dimensions
        """
        corner = OverlayPosition.parse(position)
        percent = parse_size_percent(size_percent)
        if min(video_width, video_height, logo_width, logo_height) <= 0:
            raise InvalidSize("Video and logo dimensions must be positive")

        scaled_width = video_width * percent / 100
        scaled_height = scaled_width * logo_height / logo_width
        rendered_width = max(1, round(scaled_width))
        rendered_height = max(1, round(scaled_height))

        if corner.is_left:
            x = self.margin
        else:
            x = video_width - rendered_width - self.margin
        if corner.is_top:
            y = self.margin
        else:
            y = video_height - rendered_height - self.margin

        return OverlayPlan(
            position=corner,
            size_percent=percent,
            logo_width=scaled_width,
            logo_height=scaled_height,
            rendered_width=rendered_width,
            rendered_height=rendered_height,
            x=max(0, x),
            y=max(0, y),
        )
