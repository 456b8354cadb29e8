"""Load animatable routes from a GeoJSON feature collection."""

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

import geopandas as gpd
import httpx
import pandas as pd  # pyright: ignore[reportMissingTypeStubs]
from shapely.geometry import LineString, MultiLineString
from shapely.geometry.base import BaseGeometry

from flyover.animation.geometry import Coordinate
from flyover.config import DEFAULT_ROUTE_COLOR
from flyover.errors import RouteLoadError
from flyover.logging import get_logger

LINE_GEOMETRY_TYPES = ("LineString", "MultiLineString")
NAME_FIELDS = ("name", "title", "route_name")
COLOR_FIELDS = ("stroke", "color", "colour")


@dataclass(frozen=True)
class Route:
    """A named path, in (lat, lng) order, with the stroke colour it is drawn in."""

    name: str
    color: str
    path: tuple[Coordinate, ...]

    @property
    def can_animate(self) -> bool:
        return len(self.path) >= 2


def fetch_geojson_data(url: str, timeout: float = 30.0) -> str:
    """Fetch GeoJSON data from a URL.

    Args:
        url: URL to fetch GeoJSON from
        timeout: Request timeout in seconds

    Returns:
        GeoJSON data as string

    Raises:
        httpx.RequestError: For network errors
        httpx.HTTPStatusError: For HTTP errors
    """
    headers = {"User-Agent": "flyover/0.1.0"}
    with httpx.Client() as client:
        response = client.get(url, timeout=timeout, headers=headers, follow_redirects=True)
        response.raise_for_status()
        return response.text


def separate_lines(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Keep only line features; points and polygons cannot be animated along."""
    lines_gdf: gpd.GeoDataFrame = gdf[gdf.geometry.geom_type.isin(LINE_GEOMETRY_TYPES)].copy()  # pyright: ignore[reportAssignmentType]
    return lines_gdf


def _first_present(row: pd.Series, fields: tuple[str, ...]) -> str | None:
    for field in fields:
        if field in row:
            value: Any = row[field]
            if pd.notna(value) and str(value).strip():
                return str(value).strip()
    return None


def extract_path(geometry: BaseGeometry | None) -> tuple[Coordinate, ...]:
    """(lat, lng) coordinates of a LineString, or of a MultiLineString's parts joined in order."""
    if geometry is None or geometry.is_empty:
        return ()
    if isinstance(geometry, MultiLineString):
        parts: list[LineString] = list(geometry.geoms)
    elif isinstance(geometry, LineString):
        parts = [geometry]
    else:
        raise ValueError(f"Cannot follow a {geometry.geom_type} geometry")
    path: list[Coordinate] = []
    for part in parts:
        for coord in part.coords:
            point = (float(coord[1]), float(coord[0]))
            # Parts usually share their joining vertex
            if not path or path[-1] != point:
                path.append(point)
    return tuple(path)


def route_from_row(row: pd.Series, position: int) -> Route:
    return Route(
        name=_first_present(row, NAME_FIELDS) or f"Route {position + 1}",
        color=_first_present(row, COLOR_FIELDS) or DEFAULT_ROUTE_COLOR,
        path=extract_path(row.geometry),
    )


def _read_source(source: str | Path) -> gpd.GeoDataFrame:
    source_str = str(source)
    if source_str.startswith(("http://", "https://")):
        data: Any = json.loads(fetch_geojson_data(source_str))
        features = data.get("features", [])
        if not features:
            return gpd.GeoDataFrame()
        return gpd.GeoDataFrame.from_features(features, crs="EPSG:4326")
    return gpd.read_file(source_str)  # pyright: ignore[reportUnknownMemberType]


def load_routes(source: str | Path) -> list[Route]:
    """Read routes from a GeoJSON file path or URL.

    Raises:
        RouteLoadError: If the source cannot be fetched or parsed
    """
    logger = get_logger(__name__)
    logger.info("Loading routes", source=str(source))

    try:
        gdf = _read_source(source)
    except httpx.HTTPStatusError as e:
        raise RouteLoadError(f"HTTP {e.response.status_code} fetching {source}") from e
    except httpx.RequestError as e:
        raise RouteLoadError(f"Network error fetching {source}: {e}") from e
    except (OSError, ValueError, RuntimeError, AttributeError) as e:
        raise RouteLoadError(f"Could not read routes from {source}: {e}") from e

    if len(gdf) == 0 or "geometry" not in gdf.columns:
        logger.warning("No features found", source=str(source))
        return []

    if gdf.crs is not None and gdf.crs != "EPSG:4326":
        gdf = gdf.to_crs("EPSG:4326")
        logger.info("Converted CRS to WGS84", source=str(source))

    lines_gdf = separate_lines(gdf)
    routes = [route_from_row(row, position) for position, (_idx, row) in enumerate(lines_gdf.iterrows())]

    logger.info(
        "Loaded routes",
        features_count=len(gdf),
        routes_count=len(routes),
        skipped_features=len(gdf) - len(lines_gdf),
    )
    for route in routes:
        if not route.can_animate:
            logger.warning("Route too short to animate", name=route.name, points=len(route.path))
    return routes
