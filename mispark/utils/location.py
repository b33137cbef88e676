import asyncio
import logging
from typing import Optional

import requests
from pydantic import BaseModel, Field

from mispark.config import GEOCODER_TIMEOUT_SECONDS, GEOCODER_URL, GEOCODER_USER_AGENT

logger = logging.getLogger(__name__)


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class LocationError(Exception):
    user_message = "We need access to your location"


class PermissionDenied(LocationError):
    pass


class LocationUnavailable(LocationError):
    user_message = "Could not determine your location"


class ReportedLocationProvider:
    """Location as reported by the device shell together with the photo.

    The shell performs the OS permission prompt itself and forwards the
    outcome; a missing or out of range fix means no fix was obtained.
    """

    def __init__(self, permission: str, latitude: Optional[float], longitude: Optional[float]):
        self.permission = permission
        self.latitude = latitude
        self.longitude = longitude

    async def request_permission(self) -> bool:
        return self.permission == "granted"

    async def current_position(self) -> Coordinates:
        if self.latitude is None or self.longitude is None:
            raise LocationUnavailable("device reported no fix")

        try:
            return Coordinates(latitude=self.latitude, longitude=self.longitude)
        except ValueError as e:
            raise LocationUnavailable(f"invalid fix: {e}") from e


class GeoLocationGate:
    def __init__(self, provider):
        self.provider = provider

    async def acquire_location(self) -> Coordinates:
        # one permission request per acquisition, never skipped
        if not await self.provider.request_permission():
            raise PermissionDenied("location permission not granted")

        try:
            return await self.provider.current_position()
        except LocationError:
            raise
        except Exception as e:
            raise LocationUnavailable(str(e)) from e


def format_coordinates(latitude: float, longitude: float) -> str:
    return f"{latitude:.4f}, {longitude:.4f}"


def reverse_geocode_nominatim(latitude: float, longitude: float) -> Optional[str]:
    params = {
        "lat": latitude,
        "lon": longitude,
        "format": "jsonv2",
        "addressdetails": 1,
    }
    headers = {"User-Agent": GEOCODER_USER_AGENT}
    resp = requests.get(
        GEOCODER_URL,
        params=params,
        headers=headers,
        timeout=GEOCODER_TIMEOUT_SECONDS,
    )
    if resp.status_code != 200:
        return None

    data = resp.json() or {}
    addr = data.get("address") or {}
    parts = [
        data.get("name"),
        addr.get("road"),
        addr.get("city") or addr.get("town") or addr.get("village") or addr.get("county"),
        addr.get("state"),
        addr.get("country"),
    ]
    parts = [str(p) for p in parts if p]
    if not parts:
        return None

    return ", ".join(parts)


async def describe_location(latitude: float, longitude: float, geocoder=reverse_geocode_nominatim) -> str:
    """Human readable address; falls back to the raw coordinates on any failure."""
    try:
        address = await asyncio.to_thread(geocoder, latitude, longitude)
    except Exception as e:
        logger.warning("Reverse geocoding failed for %s, %s: %s", latitude, longitude, e)
        address = None

    return address or format_coordinates(latitude, longitude)
