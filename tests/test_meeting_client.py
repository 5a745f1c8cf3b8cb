import json
from datetime import date

import httpx
import pytest

from core_portal.core.config import Settings
from core_portal.core.exceptions import MeetingProviderError
from core_portal.services.meeting_service import (
    NOT_CONFIGURED_KEY,
    TokenCache,
    ZohoMeetingClient,
    format_start_time,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _zoho_settings(**overrides) -> Settings:
    values = {
        "ZOHO_CLIENT_ID": "client-id",
        "ZOHO_CLIENT_SECRET": "client-secret",
        "ZOHO_REFRESH_TOKEN": "refresh-token",
        "ZOHO_DOMAIN": "in",
    }
    values.update(overrides)
    return Settings(**values)


class ZohoStub:
    """Records requests and answers like the Zoho token and session endpoints."""

    def __init__(self, session_status: int = 200):
        self.requests: list[httpx.Request] = []
        self.session_status = session_status

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "accounts.zoho.in":
            return httpx.Response(200, json={"access_token": f"token-{len(self.token_requests)}", "expires_in": 3600})
        if request.method == "DELETE":
            return httpx.Response(self.session_status, json={})
        if self.session_status != 200:
            return httpx.Response(self.session_status, text="upstream failure")
        return httpx.Response(200, json={"session": {
            "meetingKey": "1234567890",
            "joinUrl": "https://meeting.zoho.in/join?key=1234567890",
            "startUrl": "https://meeting.zoho.in/start?key=1234567890",
            "meetingNumber": 987654,
        }})

    @property
    def token_requests(self):
        return [r for r in self.requests if r.url.host == "accounts.zoho.in"]

    @property
    def session_requests(self):
        return [r for r in self.requests if r.url.host == "meeting.zoho.in"]


# ------------------------------------------------------------------
# token cache
# ------------------------------------------------------------------
def test_token_cache_expires_before_ttl():
    clock = FakeClock(1000)
    cache = TokenCache(clock, buffer_seconds=120)
    assert cache.get() is None

    cache.set("tok", 3600)
    clock.now = 4479
    assert cache.get() == "tok"
    clock.now = 4480
    assert cache.get() is None


def test_token_cache_clear():
    cache = TokenCache(FakeClock(), buffer_seconds=0)
    cache.set("tok", 60)
    cache.clear()
    assert cache.get() is None


def test_start_time_format():
    assert format_start_time(date(2026, 3, 7), "14:30") == "Mar 07, 2026 02:30 PM"
    assert format_start_time(date(2026, 12, 25), "09:05") == "Dec 25, 2026 09:05 AM"


# ------------------------------------------------------------------
# client
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_unconfigured_client_returns_placeholder():
    stub = ZohoStub()
    client = ZohoMeetingClient(Settings(ZOHO_CLIENT_ID=None), TokenCache(FakeClock()), transport=httpx.MockTransport(stub))

    details = await client.create_meeting("Sync", date(2026, 3, 7), "10:00", 30)

    assert details.meeting_key == NOT_CONFIGURED_KEY
    assert details.is_placeholder
    assert stub.requests == []


@pytest.mark.asyncio
async def test_create_meeting_posts_session_and_reuses_token():
    stub = ZohoStub()
    clock = FakeClock()
    client = ZohoMeetingClient(_zoho_settings(), TokenCache(clock, buffer_seconds=120), transport=httpx.MockTransport(stub))

    details = await client.create_meeting(
        "Follow-up with Ravi", date(2026, 3, 7), "14:30", 45,
        participant_emails=["counselor@example.com", "ravi@example.com", ""],
    )

    assert details.meeting_key == "1234567890"
    assert details.meeting_url.startswith("https://meeting.zoho.in/join")
    assert details.meeting_number == "987654"
    assert not details.is_placeholder

    token_request = stub.token_requests[0]
    assert token_request.url.params["grant_type"] == "refresh_token"
    assert token_request.url.params["refresh_token"] == "refresh-token"

    session_request = stub.session_requests[0]
    assert str(session_request.url) == "https://meeting.zoho.in/api/v2/session.json"
    assert session_request.headers["Authorization"] == "Zoho-oauthtoken token-1"
    body = json.loads(session_request.content)["session"]
    assert body["startTime"] == "Mar 07, 2026 02:30 PM"
    assert body["duration"] == 45
    assert body["participants"] == [{"email": "counselor@example.com"}, {"email": "ravi@example.com"}]

    await client.create_meeting("Second", date(2026, 3, 8), "10:00", 30)
    assert len(stub.token_requests) == 1

    # past the buffer the token is refreshed
    clock.now += 3600
    await client.create_meeting("Third", date(2026, 3, 9), "10:00", 30)
    assert len(stub.token_requests) == 2


@pytest.mark.asyncio
async def test_provider_failure_raises():
    client = ZohoMeetingClient(
        _zoho_settings(), TokenCache(FakeClock()), transport=httpx.MockTransport(ZohoStub(session_status=500))
    )
    with pytest.raises(MeetingProviderError):
        await client.create_meeting("Sync", date(2026, 3, 7), "10:00", 30)


@pytest.mark.asyncio
async def test_delete_meeting_is_best_effort():
    ok = ZohoMeetingClient(_zoho_settings(), TokenCache(FakeClock()), transport=httpx.MockTransport(ZohoStub()))
    assert await ok.delete_meeting("1234567890") is True
    assert await ok.delete_meeting(None) is False
    assert await ok.delete_meeting(NOT_CONFIGURED_KEY) is False

    failing = ZohoMeetingClient(
        _zoho_settings(), TokenCache(FakeClock()), transport=httpx.MockTransport(ZohoStub(session_status=404))
    )
    assert await failing.delete_meeting("1234567890") is False


def _html_error(request: httpx.Request) -> httpx.Response:
    return httpx.Response(502, text="<html><body>Bad Gateway</body></html>", headers={"content-type": "text/html"})


@pytest.mark.asyncio
async def test_non_json_token_response_raises_provider_error():
    client = ZohoMeetingClient(_zoho_settings(), TokenCache(FakeClock()), transport=httpx.MockTransport(_html_error))
    with pytest.raises(MeetingProviderError):
        await client.create_meeting("Sync", date(2026, 3, 7), "10:00", 30)


@pytest.mark.asyncio
async def test_non_json_session_response_raises_provider_error():
    stub = ZohoStub()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "meeting.zoho.in":
            stub.requests.append(request)
            return httpx.Response(200, text="maintenance page", headers={"content-type": "text/html"})
        return stub(request)

    client = ZohoMeetingClient(_zoho_settings(), TokenCache(FakeClock()), transport=httpx.MockTransport(handler))
    with pytest.raises(MeetingProviderError):
        await client.create_meeting("Sync", date(2026, 3, 7), "10:00", 30)
    assert len(stub.session_requests) == 1
