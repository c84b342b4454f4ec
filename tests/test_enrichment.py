import json

import httpx
import pytest

from app.ingestors.adsb import ADSBClient
from app.ingestors.airlines import AirlineDirectory, parse_three_letter_csv, parse_two_letter_json
from app.models.aircraft import Aircraft, AirportInfo
from app.services.enrichment import Enricher, merge_callsign, merge_route, thumbnail_for
from app.services.rate_limiter import TokenBucket
from app.services.ttl_cache import TTLCache

ROUTE_BAW = {
    "callsign": "BAW123",
    "airline_code": "BAW",
    "_airports": [
        {"location": "London", "name": "Heathrow", "iata": "LHR", "countryiso2": "GB"},
        {"location": "Madrid", "name": "Barajas", "icao": "LEMD", "countryiso2": "ES"},
    ],
}


def test_merge_callsign_only_fills_gaps():
    aircraft = Aircraft(hex="400a1b", flight="BAW123", reg="G-EUUU", airline="Known Air")

    merge_callsign(
        aircraft,
        {"r": "G-XXXX", "operator": "Other", "o": "EGLL", "destination": "LEMD"},
    )

    assert aircraft.reg == "G-EUUU"
    assert aircraft.airline == "Known Air"
    assert aircraft.origin == "EGLL"
    assert aircraft.destination == "LEMD"


def test_merge_route_resolves_airline_and_airports():
    airlines = AirlineDirectory(three_letter={"BAW": "British Airways"})
    aircraft = Aircraft(flight="BAW123")

    merge_route(aircraft, ROUTE_BAW, airlines)

    assert aircraft.airline == "British Airways (BAW)"
    assert aircraft.from_obj == AirportInfo(city="London", name="Heathrow", iata="LHR", countryiso="GB")
    assert aircraft.to_obj is not None
    assert aircraft.to_obj.iata == "LEMD"


def test_merge_route_keeps_known_fields():
    airlines = AirlineDirectory()
    known_origin = AirportInfo(city="Paris", name="CDG", iata="CDG", countryiso="FR")
    aircraft = Aircraft(flight="BAW123", airline="Speedbird", from_obj=known_origin)

    merge_route(aircraft, ROUTE_BAW, airlines)

    assert aircraft.airline == "Speedbird"
    assert aircraft.from_obj == known_origin
    assert aircraft.to_obj is not None and aircraft.to_obj.city == "Madrid"


def test_airline_directory_falls_back_to_code():
    airlines = AirlineDirectory(two_letter={"BA": "British Airways"})

    assert airlines.describe("ba") == "British Airways (BA)"
    assert airlines.describe("XYZ") == "XYZ (XYZ)"


def test_parse_reference_maps():
    csv_text = 'Company,Country,IATA,ICAO\n"Jet2.com, Ltd",UK,LS,exs\nshort,row\n'

    assert parse_three_letter_csv(csv_text) == {"ICAO": "Company", "EXS": "Jet2.com, Ltd"}
    assert parse_two_letter_json({"ba": "British Airways", "": "x"}) == {"BA": "British Airways"}
    assert parse_two_letter_json(["not", "a", "map"]) == {}


def test_thumbnail_for_normalizes_type_codes():
    assert thumbnail_for(" a320 ") == "/api/docimg/A320.jpg"
    assert thumbnail_for("B77W/x") == "/api/docimg/B77WX.jpg"
    assert thumbnail_for("!!") is None
    assert thumbnail_for(None) is None


def make_enricher(handler) -> tuple[Enricher, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = ADSBClient(
        http_client=http_client,
        limiter=TokenBucket(100),
        base_url="https://adsb.test",
        log_outbound=False,
    )
    enricher = Enricher(
        client,
        callsign_cache=TTLCache("callsign"),
        routeset_cache=TTLCache("routeset"),
        airlines=AirlineDirectory(three_letter={"BAW": "British Airways", "EZY": "easyJet"}),
        callsign_ttl=60,
        routeset_ttl=120,
        concurrency=2,
    )
    return enricher, http_client


@pytest.mark.anyio
async def test_enrich_nearest_uses_caches_on_repeat():
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path.startswith("/v2/callsign/"):
            return httpx.Response(200, json={"ac": [{"r": "G-EUUU"}]})
        return httpx.Response(200, json=[ROUTE_BAW])

    enricher, http_client = make_enricher(handler)
    async with http_client:
        first = Aircraft(flight="BAW123", type="a20n")
        await enricher.enrich_nearest(first, 51.6, -0.27)
        second = Aircraft(flight="BAW123")
        await enricher.enrich_nearest(second, 51.6, -0.27)

    assert calls == ["/v2/callsign/BAW123", "/api/0/routeset"]
    assert first.reg == "G-EUUU"
    assert first.airline == "British Airways (BAW)"
    assert first.thumb == "/api/docimg/A20N.jpg"
    assert second.from_obj is not None and second.from_obj.iata == "LHR"


@pytest.mark.anyio
async def test_enrichment_failures_leave_fields_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    enricher, http_client = make_enricher(handler)
    aircraft = Aircraft(hex="abc", flight="EZY45", type="A319")
    async with http_client:
        await enricher.enrich_nearest(aircraft, 51.6, -0.27)

    assert aircraft.airline is None
    assert aircraft.from_obj is None
    assert aircraft.thumb == "/api/docimg/A319.jpg"
    assert len(enricher.callsign_cache) == 0


@pytest.mark.anyio
async def test_enrich_batch_batches_route_lookups():
    routeset_bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v2/callsign/EZY45":
            return httpx.Response(200, json={"ac": [{"r": "G-EZAA"}]})
        if request.url.path.startswith("/v2/callsign/"):
            return httpx.Response(404, text="not found")
        routeset_bodies.append(json.loads(request.content.decode()))
        return httpx.Response(
            200,
            json=[
                {"callsign": "EZY45", "airline_code": "EZY", "_airports": []},
                {"callsign": "BAW123", "airline_code": "BAW", "_airports": ROUTE_BAW["_airports"]},
            ],
        )

    enricher, http_client = make_enricher(handler)
    aircraft = [
        Aircraft(flight="EZY45", lat=51.7, lon=-0.3),
        Aircraft(flight="BAW123"),
        Aircraft(flight=""),
    ]
    async with http_client:
        await enricher.enrich_batch(aircraft, 51.6, -0.27)

    assert len(routeset_bodies) == 1
    planes = routeset_bodies[0]["planes"]
    assert planes == [
        {"callsign": "EZY45", "lat": 51.7, "lng": -0.3},
        {"callsign": "BAW123", "lat": 51.6, "lng": -0.27},
    ]
    assert aircraft[0].reg == "G-EZAA"
    assert aircraft[0].airline == "easyJet (EZY)"
    assert aircraft[1].to_obj is not None and aircraft[1].to_obj.city == "Madrid"
    assert aircraft[2].airline is None
    assert "BAW123" in enricher.routeset_cache


def test_explicit_zero_settings_are_kept():
    enricher = Enricher(
        ADSBClient(http_client=httpx.AsyncClient(), limiter=TokenBucket(1)),
        callsign_cache=TTLCache("callsign"),
        routeset_cache=TTLCache("routeset"),
        airlines=AirlineDirectory(),
        callsign_ttl=0,
        routeset_ttl=0,
        concurrency=0,
    )

    assert enricher.callsign_ttl == 0
    assert enricher.routeset_ttl == 0
    assert enricher.concurrency == 0
