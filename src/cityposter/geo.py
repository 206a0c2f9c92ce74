"""Geocoding and the geographic error hierarchy."""

from __future__ import annotations

import logging
import time

from geopy.exc import GeocoderTimedOut, GeocoderUnavailable, GeopyError
from geopy.geocoders import Nominatim

from .cache import cache_get, cache_set


class GeoError(Exception):
    """Base exception for geocoding and map data errors."""


class GeocodingError(GeoError):
    """Raised when a place name cannot be turned into coordinates."""


__all__ = [
    "GeoError",
    "GeocodingError",
    "get_coordinates",
]

logger = logging.getLogger(__name__)

NOMINATIM_USER_AGENT = "cityposter"
NOMINATIM_TIMEOUT = 10
# Nominatim usage policy allows one request per second
NOMINATIM_MIN_DELAY = 1.0


def _coordinates_key(city: str, country: str) -> str:
    return f"coords_{city.strip().lower()}_{country.strip().lower()}"


def get_coordinates(city: str, country: str) -> tuple[float, float]:
    """Resolve a city and country to a (latitude, longitude) pair.

    Answers are kept in the on-disk cache, so each place is looked up at
    most once. A live lookup is followed by a pause to stay within the
    Nominatim rate limit.

    Raises:
        GeocodingError: If the place is unknown or the service cannot be reached.
    """
    key = _coordinates_key(city, country)
    cached = cache_get(key)
    if cached is not None:
        logger.info("Using cached coordinates for %s, %s", city, country)
        lat, lon = cached
        return float(lat), float(lon)

    query = f"{city}, {country}" if country else city
    logger.info("Looking up coordinates for %s...", query)
    geolocator = Nominatim(user_agent=NOMINATIM_USER_AGENT, timeout=NOMINATIM_TIMEOUT)

    try:
        location = geolocator.geocode(query)
    except (GeocoderTimedOut, GeocoderUnavailable) as e:
        logger.error("Geocoding service unreachable: %s", e)
        raise GeocodingError(f"Network error during geocoding for {query}.") from e
    except GeopyError as e:
        logger.error("Geocoding failed: %s", e)
        raise GeocodingError(f"Geocoding failed for {query}.") from e
    finally:
        time.sleep(NOMINATIM_MIN_DELAY)

    if location is None:
        raise GeocodingError(f"Could not find coordinates for {query}")

    coords = (float(location.latitude), float(location.longitude))
    if address := getattr(location, "address", None):
        logger.info("Found: %s", address)
    logger.info("Coordinates: %s, %s", *coords)

    if not cache_set(key, coords):
        logger.warning("Failed to cache coordinates for %s", key)
    return coords
