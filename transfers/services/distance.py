"""
Driving-distance lookup for route segments.

The resolver is an outside collaborator: it may be slow, down or unable to
find an address. ``resolve_distance_km`` turns every such failure into
``None`` so segment creation never depends on it.
"""

import logging
from decimal import Decimal
from typing import Optional

import requests
from django.conf import settings
from geopy.distance import distance as geodesic_distance
from geopy.exc import GeopyError
from geopy.geocoders import Nominatim

logger = logging.getLogger(__name__)

MAPBOX_GEOCODE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places/{query}.json"
MAPBOX_DIRECTIONS_URL = (
    "https://api.mapbox.com/directions/v5/mapbox/driving/{origin};{destination}"
)


class DistanceResolutionError(Exception):
    pass


class DistanceResolver:
    """resolve(address_a, address_b) -> kilometres, or raise DistanceResolutionError."""

    def resolve(self, origin: str, destination: str) -> Decimal:
        raise NotImplementedError


class NullDistanceResolver(DistanceResolver):
    def resolve(self, origin, destination):
        raise DistanceResolutionError("No distance backend configured.")


class MapboxDistanceResolver(DistanceResolver):
    """Geocodes both addresses, then asks the directions API for the driving route."""

    def __init__(self, access_token: str, timeout: float = 5.0, session=None):
        self.access_token = access_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, url, **params):
        params["access_token"] = self.access_token
        resp = self.session.get(url, params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def _coordinates(self, address):
        data = self._get(
            MAPBOX_GEOCODE_URL.format(query=requests.utils.quote(address)), limit=1
        )
        features = data.get("features") or []
        if not features:
            raise DistanceResolutionError(f"Address not found: {address!r}")
        center = features[0].get("center")
        if not isinstance(center, (list, tuple)) or len(center) != 2:
            raise DistanceResolutionError(f"No coordinates for {address!r}")
        lng, lat = center
        return f"{lng},{lat}"

    def resolve(self, origin, destination):
        if not self.access_token:
            raise DistanceResolutionError("MAPBOX_ACCESS_TOKEN is not set.")
        data = self._get(
            MAPBOX_DIRECTIONS_URL.format(
                origin=self._coordinates(origin),
                destination=self._coordinates(destination),
            ),
            overview="false",
        )
        routes = data.get("routes") or []
        if not routes:
            raise DistanceResolutionError("No driving route between the addresses.")
        metres = routes[0].get("distance")
        if not isinstance(metres, (int, float)) or isinstance(metres, bool):
            raise DistanceResolutionError(f"Route without distance: {metres!r}")
        return Decimal(str(metres)) / Decimal("1000")


class GeodesicDistanceResolver(DistanceResolver):
    """Nominatim geocoding plus great-circle distance. No API key needed."""

    def __init__(self, user_agent: str, timeout: float = 5.0, geolocator=None):
        self.geolocator = geolocator or Nominatim(user_agent=user_agent, timeout=timeout)

    def _point(self, address):
        location = self.geolocator.geocode(address)
        if location is None:
            raise DistanceResolutionError(f"Address not found: {address!r}")
        return (location.latitude, location.longitude)

    def resolve(self, origin, destination):
        km = geodesic_distance(self._point(origin), self._point(destination)).km
        return Decimal(str(km))


def get_distance_resolver() -> DistanceResolver:
    backend = getattr(settings, "DISTANCE_BACKEND", "")
    timeout = getattr(settings, "DISTANCE_TIMEOUT_SECONDS", 5.0)
    if backend == "mapbox":
        return MapboxDistanceResolver(settings.MAPBOX_ACCESS_TOKEN, timeout=timeout)
    if backend == "geodesic":
        return GeodesicDistanceResolver(settings.GEOCODER_USER_AGENT, timeout=timeout)
    return NullDistanceResolver()


def resolve_distance_km(
    origin: str, destination: str, resolver: Optional[DistanceResolver] = None
) -> Optional[Decimal]:
    if not origin or not destination:
        return None
    resolver = resolver or get_distance_resolver()
    try:
        return resolver.resolve(origin, destination).quantize(Decimal("0.1"))
    except (DistanceResolutionError, requests.RequestException, GeopyError) as exc:
        logger.warning(
            "Distance lookup failed for %r -> %r: %s", origin, destination, exc
        )
        return None
    except Exception:
        # A broken provider response must never block the leg.
        logger.warning(
            "Distance lookup crashed for %r -> %r", origin, destination, exc_info=True
        )
        return None
