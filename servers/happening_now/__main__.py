"""
Entry point for the happening-now service.

The server object exposes tools for:
- Fetching ranked, deduplicated events around a point (cached or live)
- Deduplicating or ranking a caller-supplied list of events
- Reporting provider health

Run with: python -m servers.happening_now --lat 25.78 --lng -80.19 --filter tonight
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional, Sequence

import structlog

from .cache import CachedAggregator
from .config.settings import Settings, describe_settings, load_settings, validate_settings
from .dedup import deduplicate as dedup_func, format_audit_summary
from .factory import build_cached_aggregator
from .models import HappeningNowRequest, NormalizedEvent
from .ranking import rank_events


class HappeningNowServer:
    """Tool-style facade over the cached aggregator."""

    def __init__(self, service: CachedAggregator, use_cache: bool = True):
        self.service = service
        self.use_cache = use_cache
        self.tools = {
            "happening_now": self.happening_now,
            "deduplicate": self.deduplicate,
            "rank": self.rank,
            "health": self.health,
        }

    async def happening_now(
        self,
        lat: float,
        lng: float,
        radius_miles: float = 50,
        time_filter: str = "all",
        category: Optional[str] = None,
        limit: int = 50,
    ) -> dict:
        """
        Fetch ranked events around a point.

        Args:
            lat: Latitude of the query point
            lng: Longitude of the query point
            radius_miles: Search radius
            time_filter: tonight, weekend, week or all
            category: Canonical category to keep, or None / "all"
            limit: Maximum number of events returned
        """
        request = HappeningNowRequest(
            lat=lat,
            lng=lng,
            radius_miles=radius_miles,
            time_filter=time_filter,
            category=category,
            limit=limit,
        )

        if self.use_cache:
            events = await self.service.get_cached_or_fetch(request)
            return {"events": [e.model_dump(mode="json") for e in events], "total": len(events)}

        result = await self.service.aggregator.aggregate(request)
        return result.model_dump(mode="json")

    async def deduplicate(self, events: list[dict]) -> dict:
        """Deduplicate a list of normalized events."""
        event_objects = [NormalizedEvent(**e) for e in events]
        result = dedup_func(event_objects)
        return {**result.model_dump(mode="json"), "summary": format_audit_summary(result)}

    async def rank(
        self,
        events: list[dict],
        lat: Optional[float] = None,
        lng: Optional[float] = None,
    ) -> dict:
        """Rank a list of normalized events around an optional query point."""
        event_objects = [NormalizedEvent(**e) for e in events]
        ranked = rank_events(event_objects, lat, lng, now=self.service.clock())
        return {"events": [e.model_dump(mode="json") for e in ranked]}

    async def health(self) -> dict:
        """Provider health and circuit state."""
        status = self.service.aggregator.health.get_status()
        status["unhealthy_sources"] = self.service.aggregator.health.get_unhealthy_sources()
        status["circuits"] = [
            adapter.breaker.get_status() for adapter in self.service.aggregator.adapters
        ]
        return status


def configure_logging(verbose: bool = False) -> None:
    """Route structlog output to stderr so stdout stays machine-readable."""
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m servers.happening_now",
        description="Fetch ranked, deduplicated events happening around a point.",
    )
    parser.add_argument("--lat", type=float, help="Latitude of the query point")
    parser.add_argument("--lng", type=float, help="Longitude of the query point")
    parser.add_argument("--radius", type=float, default=None, help="Search radius in miles")
    parser.add_argument(
        "--filter",
        dest="time_filter",
        choices=["tonight", "weekend", "week", "all"],
        default="all",
    )
    parser.add_argument("--category", default=None, help="concerts, sports, arts, festivals, other")
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument("--no-cache", action="store_true", help="Bypass the result cache")
    parser.add_argument("--show-config", action="store_true", help="Print settings and exit")
    parser.add_argument("--verbose", action="store_true")
    return parser


async def run(args: argparse.Namespace, settings: Settings) -> int:
    if args.show_config:
        print(json.dumps(describe_settings(settings), indent=2))
        for problem in validate_settings(settings):
            print(f"warning: {problem}", file=sys.stderr)
        return 0

    if args.lat is None or args.lng is None:
        print("error: --lat and --lng are required", file=sys.stderr)
        return 2

    for problem in validate_settings(settings):
        print(f"warning: {problem}", file=sys.stderr)

    server = HappeningNowServer(
        build_cached_aggregator(settings),
        use_cache=settings.cache.enabled and not args.no_cache,
    )
    result = await server.happening_now(
        lat=args.lat,
        lng=args.lng,
        radius_miles=args.radius or settings.default_radius_miles,
        time_filter=args.time_filter,
        category=args.category,
        limit=args.limit if args.limit is not None else settings.default_limit,
    )
    print(json.dumps(result, indent=2))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    return asyncio.run(run(args, load_settings()))


if __name__ == "__main__":
    sys.exit(main())
