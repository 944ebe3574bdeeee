from http import HTTPStatus
from typing import Any

import httpx
import pytest

from devicegeo.clients.ip_api_com_client import IpApiCom
from devicegeo.models.common import LocationRecord
from devicegeo.models.outcome import OutcomeKind
from tests.common import BadJsonResponse, FailingAsyncClient, MockResponse, make_fake_async_client


def test_transform_maps_native_fields_onto_canonical_names() -> None:
    raw = {
        "query": "1.2.3.4",
        "city": "X",
        "regionName": "Y",
        "region": "YY",
        "country": "Z",
        "countryCode": "ZZ",
        "lat": 1.5,
        "lon": -2.5,
        "isp": "ACME",
        "zip": "00000",
    }

    record = IpApiCom().transform(raw)

    assert record == LocationRecord(
        ip="1.2.3.4",
        city="X",
        region="Y",
        region_code="YY",
        country="Z",
        country_name="Z",
        country_code="ZZ",
        latitude=1.5,
        longitude=-2.5,
        organization="ACME",
        postal_code="00000",
    )
    assert record.to_payload() == {
        "ip": "1.2.3.4",
        "city": "X",
        "region": "Y",
        "regionCode": "YY",
        "country": "Z",
        "countryName": "Z",
        "countryCode": "ZZ",
        "latitude": 1.5,
        "longitude": -2.5,
        "organization": "ACME",
        "postalCode": "00000",
    }


def test_transform_prefers_org_over_isp_and_drops_blank_fields() -> None:
    record = IpApiCom().transform({"query": "1.2.3.4", "org": "Org Inc", "isp": "ISP Inc", "zip": ""})

    assert record.organization == "Org Inc"
    assert record.postal_code is None
    assert "postalCode" not in record.to_payload()


@pytest.mark.asyncio
async def test_lookup_ip_success(monkeypatch: pytest.MonkeyPatch) -> None:
    """Happy path: successful lookup with normalized fields."""
    payload = {
        "status": "success",
        "query": "8.8.8.8",
        "countryCode": "US",
        "country": "United States",
        "region": "CA",
        "regionName": "California",
        "city": "Mountain View",
        "zip": "94043",
        "lat": 37.386,
        "lon": -122.0838,
        "timezone": "America/Los_Angeles",
        "isp": "Google LLC",
    }
    calls: list[dict[str, Any]] = []
    response = MockResponse(status_code=HTTPStatus.OK, payload=payload)

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response, calls))

    outcome = await IpApiCom().lookup("8.8.8.8")

    assert calls[0]["url"] == "http://ip-api.com/json/8.8.8.8"
    assert outcome.kind is OutcomeKind.success
    result = outcome.record
    assert result.ip == "8.8.8.8"
    assert result.country_code == "US"
    assert result.country_name == "United States"
    assert result.region == "California"
    assert result.region_code == "CA"
    assert result.postal_code == "94043"
    assert result.latitude == pytest.approx(37.386)
    assert result.longitude == pytest.approx(-122.0838)
    assert result.organization == "Google LLC"


@pytest.mark.asyncio
async def test_lookup_without_ip_uses_auto_detect_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    payload = {"status": "success", "query": "198.51.100.42", "countryCode": "DE", "country": "Germany"}
    calls: list[dict[str, Any]] = []
    response = MockResponse(status_code=HTTPStatus.OK, payload=payload)

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response, calls))

    outcome = await IpApiCom().lookup(None)

    assert calls[0]["url"] == "http://ip-api.com/json/"
    assert outcome.record.ip == "198.51.100.42"


@pytest.mark.asyncio
@pytest.mark.parametrize("message", ["invalid query", "private range", "reserved range", "not found", "weird"])
async def test_lookup_fail_status_fails(monkeypatch: pytest.MonkeyPatch, message: str) -> None:
    payload = {"status": "fail", "message": message, "query": "192.168.0.1"}
    response = MockResponse(status_code=HTTPStatus.OK, payload=payload)

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    outcome = await IpApiCom().lookup("192.168.0.1")

    assert outcome.kind is OutcomeKind.failed
    assert message in outcome.reason


@pytest.mark.asyncio
async def test_lookup_quota_message_is_rate_limited(monkeypatch: pytest.MonkeyPatch) -> None:
    payload = {"status": "fail", "message": "quota exceeded for this key"}
    response = MockResponse(status_code=HTTPStatus.OK, payload=payload)

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    outcome = await IpApiCom().lookup("8.8.8.8")

    assert outcome.kind is OutcomeKind.rate_limited


@pytest.mark.asyncio
async def test_lookup_http_429_is_rate_limited(monkeypatch: pytest.MonkeyPatch) -> None:
    response = MockResponse(status_code=HTTPStatus.TOO_MANY_REQUESTS, payload={}, text="Too Many Requests")

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    outcome = await IpApiCom().lookup("8.8.8.8")

    assert outcome.kind is OutcomeKind.rate_limited


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code",
    [
        HTTPStatus.BAD_REQUEST,
        HTTPStatus.FORBIDDEN,
        HTTPStatus.NOT_FOUND,
        HTTPStatus.INTERNAL_SERVER_ERROR,
        HTTPStatus.SERVICE_UNAVAILABLE,
    ],
)
async def test_lookup_http_error_statuses_fail(
    monkeypatch: pytest.MonkeyPatch,
    status_code: HTTPStatus,
) -> None:
    response = MockResponse(status_code=status_code, payload={}, text="Some error")

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    outcome = await IpApiCom().lookup("8.8.8.8")

    assert outcome.kind is OutcomeKind.failed


@pytest.mark.asyncio
async def test_lookup_network_failure_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        lambda *args, **kwargs: FailingAsyncClient("http://ip-api.com", *args, **kwargs),
    )

    outcome = await IpApiCom().lookup("8.8.8.8")

    assert outcome.kind is OutcomeKind.failed


@pytest.mark.asyncio
async def test_lookup_invalid_json_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    """Non-JSON responses are failures via JSON decode failure."""
    response = BadJsonResponse(status_code=HTTPStatus.OK)

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    outcome = await IpApiCom().lookup("8.8.8.8")

    assert outcome.kind is OutcomeKind.failed
    assert "JSON" in outcome.reason
