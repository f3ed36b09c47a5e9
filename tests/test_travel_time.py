import asyncio
from datetime import datetime

import httpx

from quotd.domain.scheduling.schemas import Location, TravelStatus
from quotd.domain.scheduling.travel_time import GoogleMapsTravelTimeProvider

ORIGIN = Location(latitude=40.0, longitude=-74.0)
DESTINATION = Location(latitude=40.1, longitude=-74.1)


def provider_for(handler, api_key="test-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleMapsTravelTimeProvider(api_key=api_key, client=client)


def matrix(element, status="OK"):
    return {"status": status, "rows": [{"elements": [element]}]}


def test_traffic_duration_preferred_and_rounded_up():
    def handler(request):
        return httpx.Response(
            200,
            json=matrix(
                {
                    "status": "OK",
                    "duration": {"value": 600},
                    "duration_in_traffic": {"value": 1201},
                    "distance": {"value": 8000},
                }
            ),
        )

    estimate = asyncio.run(provider_for(handler).travel_time(ORIGIN, DESTINATION))

    assert estimate.status == TravelStatus.OK
    assert estimate.duration_minutes == 21
    assert estimate.distance_meters == 8000
    assert not estimate.is_fallback


def test_departure_time_requests_traffic_model():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json=matrix({"status": "OK", "duration": {"value": 300}}))

    departure = datetime(2025, 1, 1, 0, 0)
    estimate = asyncio.run(provider_for(handler).travel_time(ORIGIN, DESTINATION, departure))

    assert estimate.duration_minutes == 5
    assert seen["origins"] == "40.0,-74.0"
    assert seen["departure_time"] == "1735689600"
    assert seen["traffic_model"] == "best_guess"
    assert seen["mode"] == "driving"


def test_missing_api_key_returns_fallback_without_request():
    def handler(request):
        raise AssertionError("no request expected")

    estimate = asyncio.run(provider_for(handler, api_key=None).travel_time(ORIGIN, DESTINATION))

    assert estimate.status == TravelStatus.ERROR
    assert estimate.duration_minutes == 30
    assert estimate.error == "Google Maps API key not configured"


def test_non_ok_status_returns_fallback():
    def handler(request):
        return httpx.Response(
            200, json={"status": "REQUEST_DENIED", "error_message": "API key invalid"}
        )

    estimate = asyncio.run(provider_for(handler).travel_time(ORIGIN, DESTINATION))

    assert estimate.status == TravelStatus.ERROR
    assert estimate.duration_minutes == 30
    assert estimate.error == "API key invalid"


def test_element_statuses_are_tagged():
    for element_status, expected in (
        ("ZERO_RESULTS", TravelStatus.ZERO_RESULTS),
        ("NOT_FOUND", TravelStatus.NOT_FOUND),
        ("MAX_ROUTE_LENGTH_EXCEEDED", TravelStatus.ERROR),
    ):

        def handler(request, element_status=element_status):
            return httpx.Response(200, json=matrix({"status": element_status}))

        estimate = asyncio.run(provider_for(handler).travel_time(ORIGIN, DESTINATION))

        assert estimate.status == expected
        assert estimate.duration_minutes == 30


def test_empty_rows_is_zero_results():
    def handler(request):
        return httpx.Response(200, json={"status": "OK", "rows": []})

    estimate = asyncio.run(provider_for(handler).travel_time(ORIGIN, DESTINATION))

    assert estimate.status == TravelStatus.ZERO_RESULTS
    assert estimate.error == "No route found between locations"


def test_transport_error_returns_fallback():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    estimate = asyncio.run(provider_for(handler).travel_time(ORIGIN, DESTINATION))

    assert estimate.status == TravelStatus.ERROR
    assert estimate.duration_minutes == 30


def test_geocode_resolves_first_result():
    def handler(request):
        assert request.url.params["address"] == "1 Main St"
        return httpx.Response(
            200,
            json={
                "status": "OK",
                "results": [{"geometry": {"location": {"lat": 40.5, "lng": -73.5}}}],
            },
        )

    location = asyncio.run(provider_for(handler).geocode(" 1 Main St "))

    assert location == Location(latitude=40.5, longitude=-73.5)


def test_geocode_no_results_returns_none():
    def handler(request):
        return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

    assert asyncio.run(provider_for(handler).geocode("nowhere")) is None
