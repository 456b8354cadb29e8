"""Tests for the off-screen matplotlib map surface."""

from unittest.mock import patch

import numpy as np
import pytest

from flyover.map.surface import MatplotlibSurface


@pytest.fixture()
def surface() -> MatplotlibSurface:
    return MatplotlibSurface(width=320, height=240, dpi=80)


class TestSnapshot:
    """Test reading pixels back from the canvas."""

    def test_returns_rgb_frame_at_surface_size(self, surface):
        """Should return a (height, width, 3) uint8 array."""
        surface.draw_polyline([(48.1, 11.5), (48.2, 11.6)], "#ff0000", 3.0)
        surface.fit_bounds((48.1, 11.5, 48.2, 11.6))

        frame = surface.snapshot()

        assert frame.shape == (240, 320, 3)
        assert frame.dtype == np.uint8
        # Pure red pixels from the route line
        red = (frame[..., 0] > 200) & (frame[..., 1] < 60) & (frame[..., 2] < 60)
        assert red.any()


class TestCamera:
    """Test the view commands."""

    def test_set_view_centres_with_zoom_span(self, surface):
        """Should show 360 * width / (256 * 2**zoom) degrees of longitude."""
        surface.set_view((0.0, 10.0), 10.0)

        x_min, x_max = surface.ax.get_xlim()
        y_min, y_max = surface.ax.get_ylim()
        lng_span = 360.0 * 320 / (256 * 2**10)
        assert (x_min + x_max) / 2 == pytest.approx(10.0)
        assert x_max - x_min == pytest.approx(lng_span)
        assert y_max - y_min == pytest.approx(lng_span * 240 / 320)

    def test_higher_zoom_shows_less(self, surface):
        """Should narrow the view as zoom increases."""
        surface.set_view((48.1, 11.5), 10.0)
        wide = np.subtract(*reversed(surface.ax.get_xlim()))
        surface.set_view((48.1, 11.5), 16.0)
        narrow = np.subtract(*reversed(surface.ax.get_xlim()))

        assert narrow == pytest.approx(wide / 64)

    def test_fit_bounds_contains_the_box(self, surface):
        """Should keep the whole bounding box in view."""
        surface.fit_bounds((48.0, 11.0, 48.5, 11.9))

        x_min, x_max = surface.ax.get_xlim()
        y_min, y_max = surface.ax.get_ylim()
        assert x_min < 11.0 and x_max > 11.9
        assert y_min < 48.0 and y_max > 48.5

    @patch("flyover.map.surface.ctx.add_basemap", side_effect=OSError("offline"))
    def test_basemap_failure_is_not_fatal(self, mock_add_basemap):
        """Should keep rendering on the plain background when tiles cannot be fetched."""
        surface = MatplotlibSurface(width=160, height=120, dpi=80, basemap=True)

        surface.fit_bounds((48.0, 11.0, 48.5, 11.9))

        mock_add_basemap.assert_called_once()
        assert surface.snapshot().shape == (120, 160, 3)


class TestDrawing:
    """Test polyline and marker management."""

    def test_polylines_get_distinct_handles(self, surface):
        """Should return a new handle per polyline and update by handle."""
        route = surface.draw_polyline([(48.1, 11.5), (48.2, 11.6)], "#3388ff", 3.0)
        trail = surface.draw_polyline([], "#e4572e", 5.0)

        surface.set_polyline_coords(trail, [(48.1, 11.5), (48.15, 11.55)])
        surface.set_polyline_style(route, color="#000000", width=2.0)

        assert route != trail
        assert list(surface._lines[trail].get_xdata()) == [11.5, 11.55]
        assert surface._lines[route].get_linewidth() == 2.0

    def test_marker_moves_without_duplicating(self, surface):
        """Should keep a single marker artist."""
        surface.place_marker((48.1, 11.5))
        surface.move_marker((48.2, 11.6))
        surface.place_marker((48.3, 11.7))

        assert len(surface.ax.lines) == 1
        assert list(surface.ax.lines[0].get_xdata()) == [11.7]

    def test_clear_removes_everything(self, surface):
        """Should leave an empty axes behind."""
        surface.draw_polyline([(48.1, 11.5), (48.2, 11.6)], "#3388ff", 3.0)
        surface.place_marker((48.1, 11.5))

        surface.clear()

        assert len(surface.ax.lines) == 0
        surface.move_marker((48.2, 11.6))
        assert len(surface.ax.lines) == 1
