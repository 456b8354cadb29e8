"""Play a route from a GeoJSON file on an off-screen map and save the recording.

Usage:
    flyover routes.geojson --route 0 --speed 120 --output output
"""

import argparse
import asyncio
from dataclasses import replace
import math
from pathlib import Path

from rich.console import Console
from rich.table import Table

from flyover.animation.frames import AsyncioFrameSource, AsyncioIntervalTimer
from flyover.app import RouteAnimator
from flyover.config import AnimationSettings, CaptureSettings
from flyover.errors import RouteLoadError
from flyover.logging import configure_logging, get_logger
from flyover.map.routes import Route, load_routes
from flyover.map.surface import MatplotlibSurface


def parse_size(value: str) -> tuple[int, int]:
    try:
        width, height = (int(part) for part in value.lower().split("x"))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got {value!r}") from e
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError(f"Size must be positive, got {value!r}")
    return width, height


def positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected a number, got {value!r}") from e
    if not (math.isfinite(number) and number > 0):
        raise argparse.ArgumentTypeError(f"Must be positive, got {value!r}")
    return number


def build_parser() -> argparse.ArgumentParser:
    defaults = AnimationSettings()
    capture_defaults = CaptureSettings()
    parser = argparse.ArgumentParser(prog="flyover", description=__doc__.splitlines()[0])
    parser.add_argument("source", help="GeoJSON file path or URL with LineString features")
    parser.add_argument("--route", type=int, default=0, help="Index of the route to play (default: 0)")
    parser.add_argument(
        "--speed",
        type=float,
        default=defaults.default_speed_kmh,
        help=f"Speed in km/h, {defaults.min_speed_kmh:g}-{defaults.max_speed_kmh:g} (default: %(default)s)",
    )
    parser.add_argument("--output", type=Path, default=Path("output"), help="Directory for the recording")
    parser.add_argument("--fps", type=positive_float, default=capture_defaults.fps, help="Recording frame rate")
    parser.add_argument(
        "--size",
        type=parse_size,
        default=(capture_defaults.width, capture_defaults.height),
        help="Recording size as WIDTHxHEIGHT (default: %(default)s)",
    )
    parser.add_argument("--pacing", type=positive_float, default=defaults.pacing_multiplier, help="Pacing multiplier")
    parser.add_argument("--basemap", action="store_true", help="Draw CartoDB basemap tiles under the route")
    parser.add_argument("--list", action="store_true", help="List the routes in SOURCE and exit")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON")
    return parser


def print_routes(routes: list[Route]) -> None:
    table = Table(title="Routes")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Color")
    table.add_column("Points", justify="right")
    for index, route in enumerate(routes):
        table.add_row(str(index), route.name, route.color, str(len(route.path)))
    Console().print(table)


async def run(args: argparse.Namespace, routes: list[Route]) -> int:
    logger = get_logger(__name__)
    width, height = args.size
    animation_settings = replace(AnimationSettings(), pacing_multiplier=args.pacing)
    capture_settings = replace(CaptureSettings(), fps=args.fps, width=width, height=height)

    surface = MatplotlibSurface(width=width, height=height, basemap=args.basemap)
    animator = RouteAnimator(
        routes,
        surface,
        frames=AsyncioFrameSource(refresh_rate_hz=animation_settings.refresh_rate_hz),
        timers=AsyncioIntervalTimer(),
        animation_settings=animation_settings,
        capture_settings=capture_settings,
    )
    if not animator.select_path(args.route):
        logger.error("Cannot play route", error=animator.error_message)
        return 2
    speed = animator.set_speed(args.speed)
    logger.info(
        "Playing route",
        name=animator.selected_route.name,  # pyright: ignore[reportOptionalMemberAccess]
        speed_kmh=speed,
        estimated_duration_s=round(animator.scheduler.estimated_duration_ms() / 1000, 1),
    )

    artifact = await animator.play()
    if animator.error_message:
        logger.error("Animation did not run", error=animator.error_message)
        return 2
    if artifact is None:
        logger.warning("No recording produced", capture_status=animator.capture_status.value)
        return 0

    output_file = artifact.save(args.output)
    logger.info("Saved recording", path=str(output_file), size_bytes=artifact.size_bytes, frames=artifact.frame_count)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, format_json=args.json_logs)
    logger = get_logger(__name__)

    try:
        routes = load_routes(args.source)
    except RouteLoadError:
        logger.exception("Failed to load routes", source=args.source)
        return 1

    if args.list:
        print_routes(routes)
        return 0
    if not routes:
        logger.error("No routes to play", source=args.source)
        return 1

    return asyncio.run(run(args, routes))


if __name__ == "__main__":
    raise SystemExit(main())
