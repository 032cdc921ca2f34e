import aiohttp
import pytest

from core.exceptions import RoutingLookupError
from core.http import osrm as osrm_module
from core.http.osrm import OSRMClient
from tests.http_fakes import FakeResponse, FakeSession, osrm_route_payload

OK_PAYLOAD = osrm_route_payload([(106.8, -6.2), (106.805, -6.201), (106.81, -6.21)])


def _install_session(monkeypatch: pytest.MonkeyPatch, session: FakeSession) -> None:
    async def fake_get_session() -> FakeSession:
        return session

    monkeypatch.setattr(osrm_module, "get_session", fake_get_session)


@pytest.mark.asyncio
async def test_route_returns_lon_lat_pairs(monkeypatch: pytest.MonkeyPatch) -> None:
    session = FakeSession(get_responses=[FakeResponse(json_data=OK_PAYLOAD)])
    _install_session(monkeypatch, session)
    client = OSRMClient("http://osrm.test/", retry_delay=0)

    coords = await client.route(-6.2, 106.8, -6.21, 106.81, "foot")

    assert coords == [(106.8, -6.2), (106.805, -6.201), (106.81, -6.21)]
    method, url, kwargs = session.requests[0]
    assert method == "GET"
    assert url == "http://osrm.test/route/v1/foot/106.8,-6.2;106.81,-6.21"
    assert kwargs["params"] == {"overview": "full", "geometries": "geojson"}


def test_client_reads_base_url_from_environment() -> None:
    client = OSRMClient()

    url = client.route_url(-6.2, 106.8, -6.21, 106.81, "driving")

    assert url == "http://osrm.test/route/v1/driving/106.8,-6.2;106.81,-6.21"


@pytest.mark.asyncio
async def test_non_ok_code_raises_lookup_error(monkeypatch: pytest.MonkeyPatch) -> None:
    payload = {"code": "NoRoute", "message": "Impossible route"}
    _install_session(monkeypatch, FakeSession(get_responses=[FakeResponse(json_data=payload)]))
    client = OSRMClient(retry_delay=0)

    with pytest.raises(RoutingLookupError) as raised:
        await client.route(-6.2, 106.8, -6.21, 106.81, "driving")

    assert "NoRoute" in raised.value.message


@pytest.mark.asyncio
async def test_http_error_status_raises_lookup_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    response = FakeResponse(status=400, text_data='{"code":"InvalidQuery"}')
    session = FakeSession(get_responses=[response])
    _install_session(monkeypatch, session)
    client = OSRMClient(retry_delay=0)

    with pytest.raises(RoutingLookupError) as raised:
        await client.route(-6.2, 106.8, -6.21, 106.81, "driving")

    assert raised.value.details["status"] == 400
    assert len(session.requests) == 1


@pytest.mark.asyncio
async def test_transport_error_is_retried(monkeypatch: pytest.MonkeyPatch) -> None:
    session = FakeSession(
        get_responses=[
            aiohttp.ClientConnectionError("reset"),
            FakeResponse(json_data=OK_PAYLOAD),
        ],
    )
    _install_session(monkeypatch, session)
    client = OSRMClient(max_retries=1, retry_delay=0)

    coords = await client.route(-6.2, 106.8, -6.21, 106.81, "bicycle")

    assert len(coords) == 3
    assert len(session.requests) == 2


@pytest.mark.asyncio
async def test_exhausted_retries_raise_lookup_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    session = FakeSession(
        get_responses=[
            aiohttp.ClientConnectionError("reset"),
            aiohttp.ClientConnectionError("reset"),
        ],
    )
    _install_session(monkeypatch, session)
    client = OSRMClient(max_retries=1, retry_delay=0)

    with pytest.raises(RoutingLookupError):
        await client.route(-6.2, 106.8, -6.21, 106.81, "driving")

    assert len(session.requests) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"code": "Ok"},
        {"code": "Ok", "routes": []},
        {"code": "Ok", "routes": [{"geometry": "encoded-polyline"}]},
        {"code": "Ok", "routes": [{"geometry": {"coordinates": [["x", "y"]]}}]},
    ],
)
async def test_malformed_payload_raises_lookup_error(
    monkeypatch: pytest.MonkeyPatch,
    payload: object,
) -> None:
    _install_session(monkeypatch, FakeSession(get_responses=[FakeResponse(json_data=payload)]))
    client = OSRMClient(retry_delay=0)

    with pytest.raises(RoutingLookupError):
        await client.route(-6.2, 106.8, -6.21, 106.81, "driving")


@pytest.mark.asyncio
async def test_unknown_profile_is_rejected_without_request(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    session = FakeSession()
    _install_session(monkeypatch, session)

    with pytest.raises(RoutingLookupError, match="Unsupported OSRM profile"):
        await OSRMClient(retry_delay=0).route(-6.2, 106.8, -6.21, 106.81, "train")

    assert session.requests == []


@pytest.mark.asyncio
async def test_invalid_json_raises_lookup_error(monkeypatch: pytest.MonkeyPatch) -> None:
    response = FakeResponse(json_data=ValueError("Expecting value"))
    _install_session(monkeypatch, FakeSession(get_responses=[response]))

    with pytest.raises(RoutingLookupError, match="invalid JSON"):
        await OSRMClient(retry_delay=0).route(-6.2, 106.8, -6.21, 106.81, "foot")


@pytest.mark.asyncio
async def test_rate_limit_reports_retry_after(monkeypatch: pytest.MonkeyPatch) -> None:
    response = FakeResponse(status=429, headers={"Retry-After": "7"})
    _install_session(monkeypatch, FakeSession(get_responses=[response]))

    with pytest.raises(RoutingLookupError) as raised:
        await OSRMClient(retry_delay=0).route(-6.2, 106.8, -6.21, 106.81, "driving")

    assert raised.value.details["retry_after"] == 7
