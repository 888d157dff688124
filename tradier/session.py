"""
Tradier streaming session authenticator.
Exchanges an API bearer token for a short-lived stream session id.
"""

from __future__ import annotations
import asyncio
import json
from typing import Dict, Optional
import aiohttp
import logging

from tradier.errors import MalformedResponseError, RequestFailedError

logger = logging.getLogger(__name__)


def extract_session_id(body: str) -> str:
    """Pull `stream.sessionid` out of a session response body."""
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Session response is not valid JSON: {e}", body) from e

    stream = data.get("stream") if isinstance(data, dict) else None
    if not isinstance(stream, dict):
        raise MalformedResponseError("Session response has no 'stream' object", body)

    session_id = stream.get("sessionid")
    if not isinstance(session_id, str) or not session_id:
        raise MalformedResponseError("Session response has no 'stream.sessionid'", body)
    return session_id


class SessionAuthenticator:
    """Async wrapper around the session-issuing endpoint. No retries."""

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "SessionAuthenticator":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            if self._timeout is not None:
                self._session = aiohttp.ClientSession(timeout=self._timeout)
            else:
                self._session = aiohttp.ClientSession()
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    @staticmethod
    def _headers(bearer_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {bearer_token}",
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
        }

    async def request_session(self, endpoint_url: str, bearer_token: str) -> str:
        """
        POST to the session endpoint and return the stream session id.
        Raises RequestFailedError on non-2xx or transport failure and
        MalformedResponseError when the body lacks stream.sessionid.
        """
        session = await self._get_session()

        try:
            async with session.post(
                endpoint_url, headers=self._headers(bearer_token), data=b""
            ) as resp:
                body = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[SESSION] POST {endpoint_url} Exception: {e!r}")
            raise RequestFailedError(str(e) or type(e).__name__) from e

        if not 200 <= status < 300:
            logger.error(f"[SESSION] POST {endpoint_url} Error: status={status}, body={body[:200]}")
            raise RequestFailedError(body, status)

        session_id = extract_session_id(body)
        logger.info("[SESSION] Stream session created")
        return session_id
