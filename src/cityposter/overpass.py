"""Overpass API client for roads, water and parks.

Requests are spread over several public Overpass instances. All backend
etiquette lives on a ``FetchContext``: the round-robin server pointer, the
time of the last request (used to keep at least a second between requests)
and the dataset cache. Clients sharing a context share that etiquette.

The context takes no locks. Callers that fire several fetches concurrently
race on the server pointer and pacing clock; serialize fetches if that
matters.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import requests

from .cache import DatasetCache, dataset_cache_key
from .classify import classify_elements
from .config import FetchSettings
from .geo import GeoError
from .models import BoundingBox, ClassifiedDataset, RawElement


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


class DataUnavailable(GeoError):
    """Raised when map data could not be fetched after all retries."""


class RateLimited(DataUnavailable):
    """Raised when servers answer 429 Too Many Requests."""


class ServerError(DataUnavailable):
    """Raised on gateway, timeout or other non-success HTTP responses."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(DataUnavailable):
    """Raised when a server answers with something other than Overpass JSON."""


class TransportFailure(DataUnavailable):
    """Raised when the request fails below HTTP (DNS, connection, timeout)."""


__all__ = [
    "DataUnavailable",
    "FetchContext",
    "MalformedResponse",
    "OverpassClient",
    "RateLimited",
    "ServerError",
    "TransportFailure",
    "build_query",
    "default_context",
    "fetch_osm_data",
]

logger = logging.getLogger(__name__)

HIGHWAY_PATTERN = "motorway|trunk|primary|secondary|tertiary|residential|service|unclassified"
WATERWAY_PATTERN = "river|stream|canal"
LANDUSE_PATTERN = "grass|forest|recreation_ground"
OVERLOADED_MESSAGE = (
    "All Overpass servers are currently reporting high load. "
    "Please wait a moment and try again."
)

_default_context: FetchContext | None = None


def build_query(lat: float, lon: float, radius_m: float, timeout: int = 60) -> str:
    """Build one Overpass QL query covering every feature class.

    Args:
        lat: Center latitude.
        lon: Center longitude.
        radius_m: Search radius in meters.
        timeout: Server-side query timeout in seconds.

    Returns:
        The query text, asking for full geometry on each way and relation.
    """
    around = f"(around:{radius_m:.1f},{lat},{lon})"
    return f"""
[out:json][timeout:{timeout}];
(
    way["highway"~"{HIGHWAY_PATTERN}"]{around};
    way["natural"="water"]{around};
    way["waterway"~"{WATERWAY_PATTERN}"]{around};
    relation["natural"="water"]{around};
    way["leisure"="park"]{around};
    way["landuse"~"{LANDUSE_PATTERN}"]{around};
);
out geom;
"""


class FetchContext:
    """Shared backend etiquette: server rotation, request pacing and cache."""

    def __init__(
        self,
        settings: FetchSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or FetchSettings()
        self.clock = clock
        self.sleep = sleep
        self.server_index = 0
        self.last_request_time: float | None = None
        self.cache = DatasetCache(self.settings.cache_ttl_seconds, clock=clock)

    @property
    def current_server(self) -> str:
        return self.settings.servers[self.server_index]

    def rotate_server(self) -> str:
        """Advance the round-robin pointer and return the new server."""
        self.server_index = (self.server_index + 1) % len(self.settings.servers)
        return self.current_server

    async def wait_for_slot(self) -> None:
        """Wait until the minimum spacing since the previous request has passed."""
        spacing = self.settings.request_spacing_seconds
        if self.last_request_time is not None:
            elapsed = self.clock() - self.last_request_time
            if elapsed < spacing:
                await self.sleep(spacing - elapsed)
        self.last_request_time = self.clock()


def default_context() -> FetchContext:
    """Return the process-wide context, creating it from the environment."""
    global _default_context  # noqa: PLW0603
    if _default_context is None:
        _default_context = FetchContext(FetchSettings.from_env())
    return _default_context


def _parse_response(server: str, response: requests.Response) -> list[dict[str, Any]]:
    """Turn an HTTP response into the Overpass element list or raise."""
    status = response.status_code
    if status == 429:
        raise RateLimited(f"429 Too Many Requests on {server}")
    if status in (502, 504):
        raise ServerError(f"{status} Server Error on {server}", status_code=status)
    if not response.ok:
        message = f"Overpass API error: {status} {response.reason}"
        text = response.text or ""
        if "<?xml" in text or "<html" in text:
            message = (
                "Server is currently overloaded or returned an invalid response "
                f"(Status {status})."
            )
        raise ServerError(message, status_code=status)

    content_type = response.headers.get("content-type", "")
    if "application/json" not in content_type:
        snippet = (response.text or "")[:100]
        logger.warning("Received non-JSON response from %s: %s", server, snippet)
        raise MalformedResponse(
            "Overpass API returned an invalid response format. The server might be busy."
        )

    try:
        data = response.json()
    except ValueError as e:
        raise MalformedResponse(f"Overpass API returned undecodable JSON from {server}.") from e
    if not isinstance(data, dict):
        raise MalformedResponse(f"Overpass API returned an unexpected document from {server}.")

    if remark := data.get("remark"):
        logger.warning("Overpass remark from %s: %s", server, remark)
    return list(data.get("elements") or [])


class OverpassClient:
    """Fetches and classifies OSM features around a point."""

    def __init__(
        self,
        context: FetchContext | None = None,
        settings: FetchSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Create a client.

        Args:
            context: Etiquette state to share. Defaults to a private context
                when ``settings`` is given, else the process-wide one.
            settings: Settings for a private context; ignored with ``context``.
            session: HTTP session to post with. A session created here is
                closed by ``close``; an injected one is left to the caller.
        """
        if context is None:
            context = FetchContext(settings) if settings is not None else default_context()
        self.context = context
        self.settings = self.context.settings
        self._owns_session = session is None
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = self.settings.user_agent
        self.session = session

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> OverpassClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    async def fetch(self, lat: float, lon: float, radius_m: float) -> ClassifiedDataset:
        """Fetch roads, water and parks around a point.

        Results are cached per quantized request. On a miss, a single
        combined query is sent with the radius widened so the poster frame
        is still covered after aspect correction.

        Args:
            lat: Center latitude in degrees.
            lon: Center longitude in degrees.
            radius_m: Poster radius in meters.

        Returns:
            The classified dataset framed on the requested center and radius.

        Raises:
            RateLimited: If every attempt was rate limited.
            DataUnavailable: If the data could not be fetched after retries.
        """
        cache_key = dataset_cache_key(lat, lon, radius_m)
        cached = self.context.cache.get(cache_key)
        if cached is not None:
            logger.info("Using cached combined data for %s", cache_key)
            return cached

        logger.info(
            "Fetching combined OSM data for (%s, %s) with radius %sm",
            lat,
            lon,
            radius_m,
        )
        fetch_radius = radius_m * self.settings.radius_expansion
        query = build_query(lat, lon, fetch_radius, timeout=self.settings.query_timeout)
        payload = await self.query(query)

        elements = [RawElement.from_json(item) for item in payload if isinstance(item, dict)]
        roads, water, parks, stats = classify_elements(elements)
        dataset = ClassifiedDataset(
            roads=roads,
            water=water,
            parks=parks,
            bounds=BoundingBox.around(lat, lon, radius_m),
            stats=stats,
        )
        logger.info(
            "Processed %d roads, %d water features, %d parks",
            len(roads),
            len(water),
            len(parks),
        )

        self.context.cache.set(cache_key, dataset)
        return dataset

    async def query(self, query: str) -> list[dict[str, Any]]:
        """Run a query with pacing, server rotation and exponential backoff.

        Every failed attempt moves to the next server. After the retry budget
        is spent, rate limiting surfaces as ``RateLimited`` and anything else
        re-raises the last error.
        """
        retries = self.settings.max_retries
        backoff = self.settings.initial_backoff_seconds

        while True:
            await self.context.wait_for_slot()
            server = self.context.current_server
            try:
                return await self._post(server, query)
            except DataUnavailable as e:
                self.context.rotate_server()
                if retries <= 0:
                    if isinstance(e, RateLimited):
                        logger.error("Rate limited by every Overpass server")
                        raise RateLimited(OVERLOADED_MESSAGE) from e
                    logger.error("Overpass request failed after retries: %s", e)
                    raise
                logger.warning(
                    "%s; rotating to %s and retrying in %.1fs...",
                    e,
                    self.context.current_server,
                    backoff,
                )
                await self.context.sleep(backoff)
                retries -= 1
                backoff *= self.settings.backoff_multiplier

    async def _post(self, server: str, query: str) -> list[dict[str, Any]]:
        logger.info("Requesting from server: %s", server)
        try:
            response = await asyncio.to_thread(
                self.session.post,
                server,
                data={"data": query},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.settings.request_timeout,
            )
        except requests.RequestException as e:
            raise TransportFailure(f"Connection error with {server}: {e}") from e
        return _parse_response(server, response)


def fetch_osm_data(
    lat: float,
    lon: float,
    radius_m: float,
    client: OverpassClient | None = None,
) -> ClassifiedDataset:
    """Blocking wrapper around ``OverpassClient.fetch`` for synchronous callers.

    Without ``client``, a client on the shared context is created for this
    call and closed afterwards.
    """
    if client is not None:
        return asyncio.run(client.fetch(lat, lon, radius_m))
    with OverpassClient() as owned:
        return asyncio.run(owned.fetch(lat, lon, radius_m))
