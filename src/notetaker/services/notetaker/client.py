from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import BaseModel

from src.notetaker.config import settings

logger = logging.getLogger("notetaker.client")


class NotetakerError(Exception):
    """Base class for failures talking to the notetaker vendor."""


class NotetakerTimeoutError(NotetakerError):
    pass


class NotetakerUnavailableError(NotetakerError):
    """Gateway errors (502/503/504) and connection failures."""


class NotetakerNotFoundError(NotetakerError):
    pass


class NotetakerAPIError(NotetakerError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotetakerInfo(BaseModel):
    """Subset of the vendor's notetaker object that the service relies on."""

    id: str
    grant_id: Optional[str] = None
    state: Optional[str] = None
    status: Optional[str] = None
    meeting_state: Optional[str] = None
    media: Optional[Dict[str, Any]] = None


class DispatchClient(Protocol):
    """Operations the session service and event reducer need from the vendor."""

    async def deploy_notetaker(self, grant_id: str, meeting_url: str) -> NotetakerInfo:  # pragma: no cover - interface
        ...

    async def get_notetaker(self, grant_id: str, notetaker_id: str) -> NotetakerInfo:  # pragma: no cover - interface
        ...

    async def get_transcript(self, grant_id: str, notetaker_id: str) -> Dict[str, Any]:  # pragma: no cover - interface
        ...

    async def get_recording(self, grant_id: str, notetaker_id: str) -> Dict[str, Any]:  # pragma: no cover - interface
        ...

    async def fetch_media_document(self, url: str) -> Dict[str, Any]:  # pragma: no cover - interface
        ...

    async def download_media_bytes(self, url: str) -> bytes:  # pragma: no cover - interface
        ...


def _unwrap(body: Any) -> Any:
    # v3 responses wrap the resource as {"request_id": ..., "data": {...}}.
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        return body["data"]
    return body


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    return response.text or response.reason_phrase


class NotetakerClient:
    """Async client for the Nylas v3 Notetaker API.

    Every call is bounded by ``timeout`` (vendor API) or ``media_timeout``
    (signed media downloads) and raises a :class:`NotetakerError` subclass
    describing the failure class. Callers decide whether a failure is fatal.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        media_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or settings.nylas_api_url).rstrip("/")
        api_key = api_key if api_key is not None else settings.nylas_api_key
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        else:
            logger.warning("NYLAS_API_KEY is not set; notetaker API calls will be rejected")

        self._api = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout if timeout is not None else settings.notetaker_timeout_seconds,
            transport=transport,
        )
        # Media URLs are pre-signed; they must not receive the API key.
        self._media = httpx.AsyncClient(
            timeout=media_timeout if media_timeout is not None else settings.media_timeout_seconds,
            follow_redirects=True,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._api.aclose()
        await self._media.aclose()

    async def _request(self, client: httpx.AsyncClient, method: str, url: str, *, action: str, **kwargs: Any) -> Any:
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Timeout while trying to %s", action)
            raise NotetakerTimeoutError(f"Request timeout while trying to {action}") from exc
        except httpx.RequestError as exc:
            logger.warning("Network error while trying to %s: %s", action, exc)
            raise NotetakerUnavailableError(f"Notetaker API unreachable while trying to {action}: {exc}") from exc

        if response.status_code in (502, 503, 504):
            logger.warning("Gateway error %s while trying to %s", response.status_code, action)
            raise NotetakerUnavailableError(
                f"Gateway error {response.status_code} - notetaker API is temporarily unavailable"
            )
        if response.status_code == 404:
            raise NotetakerNotFoundError(f"Failed to {action}: not found")
        if response.is_error:
            message = _error_message(response)
            logger.error("Failed to %s (HTTP %s): %s", action, response.status_code, message)
            raise NotetakerAPIError(f"Failed to {action}: {message}", status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise NotetakerAPIError(f"Failed to {action}: response was not JSON", response.status_code) from exc

    async def deploy_notetaker(self, grant_id: str, meeting_url: str) -> NotetakerInfo:
        """Ask the vendor to send a notetaker bot into ``meeting_url``."""

        body = await self._request(
            self._api,
            "POST",
            f"/v3/grants/{grant_id}/notetakers",
            action="deploy notetaker",
            json={"meeting_link": meeting_url},
        )
        data = _unwrap(body)
        if not isinstance(data, dict) or not data.get("id"):
            raise NotetakerAPIError("Failed to deploy notetaker: response did not include a notetaker id")
        logger.info("Notetaker %s deployed for grant %s", data["id"], grant_id)
        return NotetakerInfo.model_validate(data)

    async def get_notetaker(self, grant_id: str, notetaker_id: str) -> NotetakerInfo:
        body = await self._request(
            self._api,
            "GET",
            f"/v3/grants/{grant_id}/notetakers/{notetaker_id}",
            action="get notetaker status",
        )
        data = _unwrap(body)
        if not isinstance(data, dict):
            raise NotetakerAPIError("Failed to get notetaker status: unexpected response shape")
        data.setdefault("id", notetaker_id)
        return NotetakerInfo.model_validate(data)

    async def get_transcript(self, grant_id: str, notetaker_id: str) -> Dict[str, Any]:
        body = await self._request(
            self._api,
            "GET",
            f"/v3/grants/{grant_id}/notetakers/{notetaker_id}/transcript",
            action="get transcript",
        )
        data = _unwrap(body)
        if not isinstance(data, dict):
            raise NotetakerAPIError("Failed to get transcript: unexpected response shape")
        return data

    async def get_recording(self, grant_id: str, notetaker_id: str) -> Dict[str, Any]:
        """Return the recording metadata (signed ``url``, size, expiry)."""

        body = await self._request(
            self._api,
            "GET",
            f"/v3/grants/{grant_id}/notetakers/{notetaker_id}/recording",
            action="get recording",
        )
        data = _unwrap(body)
        if not isinstance(data, dict):
            raise NotetakerAPIError("Failed to get recording: unexpected response shape")
        return data

    async def fetch_media_document(self, url: str) -> Dict[str, Any]:
        """Download a JSON media artifact (e.g. a transcript) by signed URL."""

        body = await self._request(self._media, "GET", url, action="download media")
        data = _unwrap(body)
        if not isinstance(data, dict):
            raise NotetakerAPIError("Failed to download media: document is not a JSON object")
        return data

    async def download_media_bytes(self, url: str) -> bytes:
        """Download a binary media artifact (e.g. a recording) by signed URL."""

        try:
            response = await self._media.get(url)
        except httpx.TimeoutException as exc:
            raise NotetakerTimeoutError("Request timeout while downloading media") from exc
        except httpx.RequestError as exc:
            raise NotetakerUnavailableError(f"Media download failed: {exc}") from exc
        if response.is_error:
            raise NotetakerAPIError(f"Media download failed with HTTP {response.status_code}", response.status_code)
        return response.content
