"""Behaviour tests for the speed-dependent camera follow."""

from unittest.mock import Mock

import pytest

from flyover.animation.camera import CameraFollowController, zoom_for_speed
from flyover.config import AnimationSettings


@pytest.fixture()
def settings() -> AnimationSettings:
    return AnimationSettings(min_speed_kmh=10.0, max_speed_kmh=300.0, min_zoom=10.0, max_zoom=16.0)


class TestZoomForSpeed:
    """Test the linear speed-to-zoom map."""

    def test_slowest_speed_gets_closest_view(self, settings):
        """Should use the maximum zoom at the minimum speed."""
        assert zoom_for_speed(10.0, settings) == 16.0

    def test_fastest_speed_gets_widest_view(self, settings):
        """Should use the minimum zoom at the maximum speed."""
        assert zoom_for_speed(300.0, settings) == 10.0

    def test_interpolates_linearly(self, settings):
        """Should sit halfway between the zoom bounds at the middle speed."""
        assert zoom_for_speed(155.0, settings) == pytest.approx(13.0)

    def test_stays_within_bounds_for_every_speed(self, settings):
        """Should never leave [min_zoom, max_zoom], even outside the speed range."""
        for speed in [-50.0, 0.0, *range(10, 301, 7), 300.0, 1000.0]:
            zoom = zoom_for_speed(float(speed), settings)
            assert settings.min_zoom <= zoom <= settings.max_zoom


class TestCameraFollowController:
    """Test camera requests issued to the rendering surface."""

    def test_centres_on_marker_with_speed_zoom(self, settings):
        """Should request a centre-and-zoom view on every call."""
        surface = Mock()
        camera = CameraFollowController(surface, settings)

        zoom = camera.follow((48.1, 11.5), 10.0)

        assert zoom == 16.0
        assert camera.zoom == 16.0
        surface.set_view.assert_called_once_with((48.1, 11.5), 16.0)

    def test_fit_frames_the_whole_path(self, settings):
        """Should fit the surface to the path's bounding box."""
        surface = Mock()
        camera = CameraFollowController(surface, settings)

        camera.fit([(48.0, 11.0), (48.5, 11.2), (48.2, 11.9)])

        surface.fit_bounds.assert_called_once_with((48.0, 11.0, 48.5, 11.9))

    def test_fit_ignores_empty_path(self, settings):
        """Should leave the view alone when there is nothing to frame."""
        surface = Mock()
        camera = CameraFollowController(surface, settings)

        camera.fit([])

        surface.fit_bounds.assert_not_called()
