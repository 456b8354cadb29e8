"""Off-screen map surface drawn with matplotlib.

Coordinates come in as (lat, lng) and are plotted with longitude on the x axis.
Zoom levels follow web map conventions: one 256 px tile spans the whole world
at zoom 0 and every level halves the visible span.
"""

from collections.abc import Sequence
import math
from typing import Protocol

import contextily as ctx
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.lines import Line2D
import numpy as np

from flyover.logging import get_logger

Coordinate = tuple[float, float]
Bounds = tuple[float, float, float, float]

TILE_SIZE_PX = 256
MARKER_COLOR = "#d62728"
BACKGROUND_COLOR = "#f2efe9"


class RenderSurface(Protocol):
    """Drawing and camera commands the animation issues to a map."""

    def draw_polyline(self, coordinates: Sequence[Coordinate], color: str, width: float) -> int: ...

    def set_polyline_coords(self, handle: int, coordinates: Sequence[Coordinate]) -> None: ...

    def set_polyline_style(self, handle: int, color: str | None = None, width: float | None = None) -> None: ...

    def fit_bounds(self, bounds: Bounds) -> None: ...

    def set_view(self, center: Coordinate, zoom: float) -> None: ...

    def place_marker(self, coordinate: Coordinate) -> None: ...

    def move_marker(self, coordinate: Coordinate) -> None: ...

    def clear(self) -> None: ...

    def snapshot(self) -> np.ndarray: ...


def _split(coordinates: Sequence[Coordinate]) -> tuple[list[float], list[float]]:
    lngs = [lng for _, lng in coordinates]
    lats = [lat for lat, _ in coordinates]
    return lngs, lats


class MatplotlibSurface:
    """Map surface rendered on an Agg canvas, no display needed."""

    def __init__(
        self,
        width: int = 1280,
        height: int = 720,
        dpi: int = 100,
        basemap: bool = False,
        background: str = BACKGROUND_COLOR,
    ):
        self.width = width
        self.height = height
        self.basemap = basemap
        self.logger = get_logger(f"{__name__}.MatplotlibSurface")

        self.figure = Figure(figsize=(width / dpi, height / dpi), dpi=dpi, facecolor=background)
        self.canvas = FigureCanvasAgg(self.figure)
        self.ax = self.figure.add_axes((0.0, 0.0, 1.0, 1.0))
        self.ax.set_facecolor(background)
        self.ax.set_axis_off()

        self._lines: dict[int, Line2D] = {}
        self._next_handle = 1
        self._marker: Line2D | None = None
        self._basemap_drawn = False

    def draw_polyline(self, coordinates: Sequence[Coordinate], color: str, width: float) -> int:
        lngs, lats = _split(coordinates)
        (line,) = self.ax.plot(
            lngs, lats, color=color, linewidth=width, solid_capstyle="round", solid_joinstyle="round", zorder=3
        )
        handle = self._next_handle
        self._next_handle += 1
        self._lines[handle] = line
        return handle

    def set_polyline_coords(self, handle: int, coordinates: Sequence[Coordinate]) -> None:
        lngs, lats = _split(coordinates)
        self._lines[handle].set_data(lngs, lats)

    def set_polyline_style(self, handle: int, color: str | None = None, width: float | None = None) -> None:
        line = self._lines[handle]
        if color is not None:
            line.set_color(color)
        if width is not None:
            line.set_linewidth(width)

    def fit_bounds(self, bounds: Bounds, padding: float = 0.1) -> None:
        """Show the (min_lat, min_lng, max_lat, max_lng) box with some margin, keeping the aspect ratio."""
        min_lat, min_lng, max_lat, max_lng = bounds
        center_lat = (min_lat + max_lat) / 2
        center_lng = (min_lng + max_lng) / 2
        lat_scale = math.cos(math.radians(center_lat)) or 1e-6

        lng_span = max(max_lng - min_lng, 1e-4) * (1 + 2 * padding)
        lat_span = max(max_lat - min_lat, 1e-4) * (1 + 2 * padding)
        # Grow whichever side is short so the box matches the figure shape
        aspect = self.height / self.width
        lng_span = max(lng_span, lat_span / (aspect * lat_scale))
        lat_span = lng_span * aspect * lat_scale

        self._set_limits(center_lat, center_lng, lat_span, lng_span)
        if self.basemap and not self._basemap_drawn:
            self._add_basemap()

    def set_view(self, center: Coordinate, zoom: float) -> None:
        lat, lng = center
        lng_span = 360.0 * self.width / (TILE_SIZE_PX * 2**zoom)
        lat_span = lng_span * (self.height / self.width) * math.cos(math.radians(lat))
        self._set_limits(lat, lng, lat_span, lng_span)

    def _set_limits(self, center_lat: float, center_lng: float, lat_span: float, lng_span: float) -> None:
        self.ax.set_xlim(center_lng - lng_span / 2, center_lng + lng_span / 2)
        self.ax.set_ylim(center_lat - lat_span / 2, center_lat + lat_span / 2)

    def _add_basemap(self) -> None:
        try:
            ctx.add_basemap(self.ax, crs="EPSG:4326", source=ctx.providers.CartoDB.Positron, alpha=0.8, zorder=0)
        except (OSError, ValueError) as e:
            # Tiles are decoration; the route still renders on the plain background
            self.logger.warning("Basemap unavailable", error=str(e), error_type=type(e).__name__)
            return
        self._basemap_drawn = True

    def place_marker(self, coordinate: Coordinate) -> None:
        if self._marker is not None:
            self._marker.remove()
        lat, lng = coordinate
        (self._marker,) = self.ax.plot(
            [lng],
            [lat],
            marker="o",
            markersize=11,
            color=MARKER_COLOR,
            markeredgecolor="white",
            markeredgewidth=2,
            linestyle="none",
            zorder=10,
        )

    def move_marker(self, coordinate: Coordinate) -> None:
        if self._marker is None:
            self.place_marker(coordinate)
            return
        lat, lng = coordinate
        self._marker.set_data([lng], [lat])

    def clear(self) -> None:
        """Remove every polyline, the marker and the basemap tiles."""
        for line in self._lines.values():
            line.remove()
        self._lines.clear()
        if self._marker is not None:
            self._marker.remove()
            self._marker = None
        if self._basemap_drawn:
            for image in list(self.ax.images):
                image.remove()
            self._basemap_drawn = False

    def snapshot(self) -> np.ndarray:
        """Render the current view and return it as an (height, width, 3) uint8 RGB array."""
        self.canvas.draw()
        rgba = np.asarray(self.canvas.buffer_rgba())
        return rgba[..., :3].copy()
