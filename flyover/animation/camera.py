"""Keep the map view centred on the marker, zoomed out as speed goes up."""

from flyover.animation.geometry import Coordinate, Path, path_bounds
from flyover.config import AnimationSettings
from flyover.logging import get_logger
from flyover.map.surface import RenderSurface


def zoom_for_speed(speed_kmh: float, settings: AnimationSettings) -> float:
    """Linear map from speed to zoom: slowest speed is the closest view, fastest the widest."""
    speed_span = settings.max_speed_kmh - settings.min_speed_kmh
    ratio = (speed_kmh - settings.min_speed_kmh) / speed_span
    zoom = settings.max_zoom - ratio * (settings.max_zoom - settings.min_zoom)
    return min(max(zoom, settings.min_zoom), settings.max_zoom)


class CameraFollowController:
    """Issues centre-and-zoom requests on every animation frame; owns no timer."""

    def __init__(self, surface: RenderSurface, settings: AnimationSettings | None = None):
        self.surface = surface
        self.settings = settings or AnimationSettings()
        self.logger = get_logger(f"{__name__}.CameraFollowController")
        self.zoom: float | None = None

    def follow(self, coordinate: Coordinate, speed_kmh: float) -> float:
        zoom = zoom_for_speed(speed_kmh, self.settings)
        if zoom != self.zoom:
            self.logger.debug("Camera zoom changed", zoom=zoom, speed_kmh=speed_kmh)
        self.zoom = zoom
        self.surface.set_view(coordinate, zoom)
        return zoom

    def fit(self, path: Path) -> None:
        """Frame the whole path, used when a route is selected."""
        bounds = path_bounds(path)
        if bounds is None:
            return
        self.zoom = None
        self.surface.fit_bounds(bounds)
