"""Travel time between job sites using the Google Distance Matrix API.

Every failure path returns a status-tagged fallback estimate (30 minutes)
instead of raising, so conflict checks always apply a travel buffer.

Also wraps the Google Geocoding API for jobs that only have a street address.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

import httpx

from ...config import GOOGLE_MAPS_API_KEY, TRAVEL_TIME_TIMEOUT_SECONDS
from .schemas import Location, TravelEstimate, TravelStatus

logger = logging.getLogger(__name__)

DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

_ELEMENT_STATUSES = {
    "NOT_FOUND": TravelStatus.NOT_FOUND,
    "ZERO_RESULTS": TravelStatus.ZERO_RESULTS,
}


def _epoch_seconds(moment: datetime) -> int:
    """Naive datetimes are treated as UTC"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


class GoogleMapsTravelTimeProvider:
    """Drive-time and geocoding lookups. No retries; callers own retry policy."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = TRAVEL_TIME_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    async def _get_json(self, url: str, params: dict) -> dict:
        if self._client is not None:
            response = await self._client.get(url, params=params, timeout=self.timeout)
            return response.json()

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(url, params=params)
            return response.json()

    async def travel_time(
        self,
        origin: Location,
        destination: Location,
        departure_time: Optional[datetime] = None,
    ) -> TravelEstimate:
        """
        Get driving time between two coordinates.

        Args:
            origin: Start coordinates
            destination: End coordinates
            departure_time: Optional departure (naive UTC) for traffic-aware estimates

        Returns:
            TravelEstimate; status != ok means the 30 minute fallback was applied
        """
        if not self.api_key:
            logger.warning("⚠️ GOOGLE_MAPS_API_KEY not set. Returning default travel time.")
            return TravelEstimate.fallback(TravelStatus.ERROR, "Google Maps API key not configured")

        params = {
            "origins": origin.as_param(),
            "destinations": destination.as_param(),
            "key": self.api_key,
            "units": "imperial",
            "mode": "driving",
        }
        if departure_time is not None:
            params["departure_time"] = str(_epoch_seconds(departure_time))
            params["traffic_model"] = "best_guess"

        try:
            data = await self._get_json(DISTANCE_MATRIX_URL, params)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Error calling Google Distance Matrix API: {e}")
            return TravelEstimate.fallback(
                TravelStatus.ERROR, str(e) or "Failed to calculate travel time"
            )

        status = data.get("status")
        if status != "OK":
            logger.error(f"❌ Distance Matrix API error: {status} {data.get('error_message')}")
            return TravelEstimate.fallback(
                TravelStatus.ERROR,
                data.get("error_message") or f"API returned status: {status}",
            )

        rows = data.get("rows") or []
        elements = (rows[0].get("elements") or []) if rows else []
        if not elements:
            return TravelEstimate.fallback(
                TravelStatus.ZERO_RESULTS, "No route found between locations"
            )

        element = elements[0]
        element_status = element.get("status")
        if element_status != "OK":
            return TravelEstimate.fallback(
                _ELEMENT_STATUSES.get(element_status, TravelStatus.ERROR),
                f"Route status: {element_status}",
            )

        # Traffic-aware duration wins when present; round up, never down
        duration = element.get("duration_in_traffic") or element.get("duration") or {}
        seconds = duration.get("value")
        if seconds is None:
            return TravelEstimate.fallback(TravelStatus.ERROR, "Route is missing a duration")

        distance_meters = (element.get("distance") or {}).get("value", 0)

        return TravelEstimate(
            duration_minutes=math.ceil(seconds / 60),
            distance_meters=int(distance_meters),
            status=TravelStatus.OK,
        )

    async def geocode(self, address: Optional[str]) -> Optional[Location]:
        """Resolve a free-text address to coordinates, or None when it can't be resolved"""
        if not self.api_key:
            logger.warning("⚠️ GOOGLE_MAPS_API_KEY not set. Skipping geocode.")
            return None

        address = (address or "").strip()
        if not address:
            return None

        try:
            data = await self._get_json(GEOCODE_URL, {"address": address, "key": self.api_key})
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Error geocoding address: {e}")
            return None

        results = data.get("results") or []
        if data.get("status") != "OK" or not results:
            logger.warning(f"⚠️ Failed to geocode address '{address}': {data.get('status')}")
            return None

        location = results[0]["geometry"]["location"]
        return Location(latitude=location["lat"], longitude=location["lng"])


def get_travel_time_provider() -> GoogleMapsTravelTimeProvider:
    """FastAPI dependency returning a provider configured from the environment"""
    return GoogleMapsTravelTimeProvider(api_key=GOOGLE_MAPS_API_KEY)
