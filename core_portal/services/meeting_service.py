"""
Zoho Meeting client.

Access tokens come from a refresh-token grant and are cached by
`TokenCache` until `buffer_seconds` before they expire. The clock is
injected so expiry can be tested without sleeping.
"""

import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, Optional

import httpx
from loguru import logger

from core_portal.core.config import Settings, settings as default_settings
from core_portal.core.exceptions import MeetingProviderError

NOT_CONFIGURED_KEY = "not-configured"


# ----------------------------------------------------------------
# TOKEN CACHE
# ----------------------------------------------------------------
class TokenCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic, buffer_seconds: int = 120):
        self._clock = clock
        self._buffer = buffer_seconds
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    def get(self) -> Optional[str]:
        if self._token and self._clock() < self._expires_at - self._buffer:
            return self._token
        return None

    def set(self, token: str, ttl_seconds: float) -> None:
        self._token = token
        self._expires_at = self._clock() + ttl_seconds

    def clear(self) -> None:
        self._token = None
        self._expires_at = 0.0


@dataclass
class MeetingDetails:
    meeting_key: str
    meeting_url: str
    start_url: Optional[str] = None
    meeting_number: Optional[str] = None

    @property
    def is_placeholder(self) -> bool:
        return self.meeting_key == NOT_CONFIGURED_KEY


def _first(payload: dict, *keys):
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def _json_body(response: httpx.Response, action: str) -> dict:
    if not response.content:
        return {}
    try:
        payload = response.json()
    except ValueError as e:
        raise MeetingProviderError(f"Zoho {action} returned a non-JSON body ({response.status_code})") from e
    if isinstance(payload, list):
        return {"data": payload}
    if not isinstance(payload, dict):
        raise MeetingProviderError(f"Zoho {action} returned an unexpected body ({response.status_code})")
    return payload


def format_start_time(meeting_date: date, meeting_time: str) -> str:
    """date(2025, 3, 7) + '14:30' -> 'Mar 07, 2025 02:30 PM'"""
    start = datetime.combine(meeting_date, datetime.strptime(meeting_time, "%H:%M").time())
    return start.strftime("%b %d, %Y %I:%M %p")


# ----------------------------------------------------------------
# CLIENT
# ----------------------------------------------------------------
class ZohoMeetingClient:
    def __init__(
        self,
        config: Settings = default_settings,
        token_cache: Optional[TokenCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.config = config
        self.token_cache = token_cache or TokenCache(buffer_seconds=config.ZOHO_TOKEN_BUFFER_SECONDS)
        self._transport = transport
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return self.config.zoho_configured

    @property
    def accounts_url(self) -> str:
        return f"https://accounts.zoho.{self.config.ZOHO_DOMAIN}/oauth/v2/token"

    @property
    def sessions_url(self) -> str:
        return f"https://meeting.zoho.{self.config.ZOHO_DOMAIN}/api/v2/session"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    async def get_access_token(self) -> str:
        cached = self.token_cache.get()
        if cached:
            return cached

        async with self._client() as client:
            response = await client.post(
                self.accounts_url,
                params={
                    "refresh_token": self.config.ZOHO_REFRESH_TOKEN,
                    "client_id": self.config.ZOHO_CLIENT_ID,
                    "client_secret": self.config.ZOHO_CLIENT_SECRET,
                    "grant_type": "refresh_token",
                },
            )

        payload = _json_body(response, "token refresh")
        token = payload.get("access_token")
        if response.status_code >= 400 or not token:
            raise MeetingProviderError(
                f"Zoho token refresh failed ({response.status_code}): {payload.get('error', 'no access_token')}"
            )

        self.token_cache.set(token, float(payload.get("expires_in", 3600)))
        logger.info("Zoho access token refreshed")
        return token

    async def create_meeting(
        self,
        topic: str,
        meeting_date: date,
        meeting_time: str,
        duration_minutes: int,
        participant_emails: Iterable[str] = (),
        agenda: str = "",
    ) -> MeetingDetails:
        if not self.is_configured:
            logger.warning("Zoho Meeting is not configured. Returning placeholder meeting.")
            return MeetingDetails(meeting_key=NOT_CONFIGURED_KEY, meeting_url="")

        token = await self.get_access_token()
        body = {
            "session": {
                "topic": topic,
                "agenda": agenda or topic,
                "startTime": format_start_time(meeting_date, meeting_time),
                "duration": duration_minutes,
                "timezone": self.config.ZOHO_TIMEZONE,
                "type": 2,
                "participants": [{"email": e} for e in participant_emails if e],
            }
        }

        async with self._client() as client:
            response = await client.post(
                f"{self.sessions_url}.json",
                json=body,
                headers={"Authorization": f"Zoho-oauthtoken {token}"},
            )

        if response.status_code >= 400:
            raise MeetingProviderError(f"Zoho meeting creation failed ({response.status_code}): {response.text}")

        payload = _json_body(response, "meeting creation")
        session_data = payload.get("session") or payload.get("data") or payload
        if isinstance(session_data, list):
            session_data = session_data[0] if session_data else {}

        meeting_key = _first(session_data, "meetingKey", "sessionKey")
        join_url = _first(session_data, "joinUrl", "meetingURL", "joinLink")
        if not meeting_key or not join_url:
            raise MeetingProviderError("Zoho response did not include a meeting key and join URL")

        number = _first(session_data, "meetingNumber", "sessionId")
        return MeetingDetails(
            meeting_key=str(meeting_key),
            meeting_url=join_url,
            start_url=_first(session_data, "startUrl", "hostUrl"),
            meeting_number=str(number) if number is not None else None,
        )

    async def delete_meeting(self, meeting_key: Optional[str]) -> bool:
        """Best effort. Failures are logged and reported as False."""
        if not meeting_key or meeting_key == NOT_CONFIGURED_KEY or not self.is_configured:
            return False

        try:
            token = await self.get_access_token()
            async with self._client() as client:
                response = await client.delete(
                    f"{self.sessions_url}/{meeting_key}.json",
                    headers={"Authorization": f"Zoho-oauthtoken {token}"},
                )
            if response.status_code >= 400:
                logger.warning(f"Zoho meeting delete returned {response.status_code} for {meeting_key}")
                return False
            return True
        except Exception as e:
            logger.warning(f"Zoho meeting delete failed for {meeting_key}: {e}")
            return False


meeting_client = ZohoMeetingClient()


def get_meeting_client() -> ZohoMeetingClient:
    return meeting_client
