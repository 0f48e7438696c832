# jobmon/adapters/aiohttp_job_service_adapter.py
import asyncio
import aiohttp
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from jobmon.core.interfaces.remote_job_service import RemoteJobServicePort
from jobmon.core.exceptions import (
    MalformedResponseError,
    RemoteRequestError,
    RemoteServiceError,
    TransientIOError,
)
from jobmon.core.models.job import RemoteJob
from jobmon.core.models.message import ProgressMessage
from jobmon.core.models.metrics import MetricUpdate
from jobmon.core.settings import logger

# Statuses worth retrying besides 5xx
_TRANSIENT_STATUSES = {408, 429}


class AioHttpJobServiceAdapter(RemoteJobServicePort):
    """REST adapter for a Dataflow-style job service.

    Resources live under ``{base_url}/{api_version}/projects/{project}/jobs/{job}``.
    Authentication is the caller's concern: pass ready-made headers (e.g. a
    bearer token) at construction.
    """

    def __init__(
        self,
        base_url: str,
        api_version: str = "v1b3",
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        page_size: Optional[int] = None,
    ):
        self._base_url = str(base_url).rstrip("/")
        self._api_version = api_version
        self._headers = dict(headers or {})
        self._page_size = page_size
        self._session: Optional[aiohttp.ClientSession] = None
        self._default_client_timeout = aiohttp.ClientTimeout(total=timeout)

    @classmethod
    def from_app_settings(cls, settings, headers: Optional[Dict[str, str]] = None) -> "AioHttpJobServiceAdapter":
        return cls(
            base_url=str(settings.JOBMON_API_BASE_URL),
            api_version=settings.JOBMON_API_VERSION,
            timeout=settings.JOBMON_REQUEST_TIMEOUT,
            headers=headers,
        )

    async def __aenter__(self):
        """Async context manager entry"""
        self._session = aiohttp.ClientSession(headers=self._headers)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    async def close(self) -> None:
        """Close the session"""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def _job_url(self, project_id: str, job_id: str) -> str:
        return f"{self._base_url}/{self._api_version}/projects/{project_id}/jobs/{job_id}"

    # ---------------- Port operations -----------------
    async def get_job(self, project_id: str, job_id: str) -> RemoteJob:
        body = await self._request("GET", self._job_url(project_id, job_id), job_id=job_id)
        return self._parse(RemoteJob, body, job_id)

    async def request_state_change(self, project_id: str, job_id: str, requested_state: str) -> None:
        payload = {"id": job_id, "projectId": project_id, "requestedState": requested_state}
        logger.debug(f"[service:update] job_id={job_id} requested_state={requested_state}")
        # a 2xx alone means the update was accepted
        await self._request(
            "PUT", self._job_url(project_id, job_id), json=payload, job_id=job_id, expect_body=False
        )

    async def list_messages_since(
        self,
        project_id: str,
        job_id: str,
        since: Optional[datetime],
    ) -> List[ProgressMessage]:
        """Collect all message pages, keeping only messages strictly after `since`."""
        url = self._job_url(project_id, job_id) + "/messages"
        params: Dict[str, str] = {}
        if since is not None:
            params["startTime"] = since.isoformat().replace("+00:00", "Z")
        if self._page_size:
            params["pageSize"] = str(self._page_size)

        messages: List[ProgressMessage] = []
        while True:
            body = await self._request("GET", url, params=params, job_id=job_id)
            for raw in body.get("jobMessages") or []:
                message = self._parse(ProgressMessage, raw, job_id)
                if since is None or message.timestamp > since:
                    messages.append(message)
            token = body.get("nextPageToken")
            if not token:
                break
            params = {**params, "pageToken": token}

        logger.debug(f"[service:messages] job_id={job_id} since={since} count={len(messages)}")
        return messages

    async def get_metrics(self, project_id: str, job_id: str) -> List[MetricUpdate]:
        body = await self._request("GET", self._job_url(project_id, job_id) + "/metrics", job_id=job_id)
        return [self._parse(MetricUpdate, raw, job_id) for raw in body.get("metrics") or []]

    # ---------------- Transport helpers -----------------
    def _parse(self, model, raw: Any, job_id: str):
        try:
            return model.model_validate(raw)
        except ValidationError as exc:
            logger.error(f"[service:parse] invalid {model.__name__} job_id={job_id} error={exc}")
            raise MalformedResponseError(
                f"Remote service returned an invalid {model.__name__}",
                diagnostic=str(exc),
                job_id=job_id,
            ) from exc

    async def _request(
        self,
        method: str,
        url: str,
        job_id: str,
        expect_body: bool = True,
        **kwargs,
    ) -> Dict[str, Any]:
        """Send a request and return the JSON body.

        With `expect_body=False` a successful response is not parsed and an
        empty dict is returned.

        Translates HTTP/network errors into domain-specific exceptions:
        timeouts, connection errors, 408/429 and 5xx become TransientIOError,
        other 4xx become RemoteRequestError, non-JSON bodies
        MalformedResponseError.
        """
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")

        try:
            async with self._session.request(
                method, url, timeout=self._default_client_timeout, **kwargs
            ) as response:
                if response.status >= 400:
                    raise await self._error_for_response(response, url, job_id)
                if not expect_body:
                    return {}
                try:
                    body = await response.json()
                except aiohttp.ContentTypeError:
                    response_text = await response.text()
                    logger.error(
                        "Invalid JSON response from remote service. URL: %s, Content: %s",
                        url,
                        response_text[:500],
                    )
                    raise MalformedResponseError(
                        "The response from the remote service was not valid JSON",
                        diagnostic=response_text[:100],
                        job_id=job_id,
                    )
                return body if isinstance(body, dict) else {}

        except asyncio.TimeoutError as exc:
            logger.error("Timeout when requesting remote service. URL: %s", url)
            raise TransientIOError(
                "The request to the remote service timed out.",
                status=504,
                job_id=job_id,
            ) from exc

        except aiohttp.ClientError as client_error:
            logger.error(
                "Connection error when requesting remote service. URL: %s, Error: %s",
                url,
                str(client_error),
            )
            raise TransientIOError(
                "There was a connection error with the remote service.",
                diagnostic=str(client_error),
                job_id=job_id,
            ) from client_error

    async def _error_for_response(
        self, response: aiohttp.ClientResponse, url: str, job_id: str
    ) -> RemoteServiceError:
        """Build the domain error for an HTTP error response.

        Google-style error bodies ({"error": {"message", "status"}}) supply the
        message and the structured reason.
        """
        message = f"The remote service returned an HTTP error: {response.status}"
        reason = None
        try:
            body = await response.json(content_type=None)
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            message = body["error"].get("message") or message
            reason = body["error"].get("status")

        if response.status >= 500 or response.status in _TRANSIENT_STATUSES:
            logger.warning(
                "Transient HTTP error from remote service. URL: %s, Status: %s, Error: %s",
                url,
                response.status,
                message,
            )
            return TransientIOError(message, status=response.status, reason=reason, job_id=job_id)

        logger.warning(
            "HTTP error from remote service. URL: %s, Status: %s, Error: %s",
            url,
            response.status,
            message,
        )
        return RemoteRequestError(message, status=response.status, reason=reason, job_id=job_id)
