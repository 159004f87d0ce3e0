"""
HTTP client for the report endpoint.

Posts a report request and returns the finished ReportResult for either
tier: free users get one JSON body, premium users an NDJSON stream that is
decoded as it arrives.
"""

import logging
from typing import Any, Callable, Dict, Optional

import httpx

from reports.models import ReportRequest, ReportResult
from reports.stream import NDJSON_MEDIA_TYPE, ReportPhase, decode_report_stream

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(300.0, connect=10.0)


class ReportRequestError(Exception):
    """The server refused or failed the report request."""

    def __init__(self, status_code: int, body: Dict[str, Any]):
        self.status_code = status_code
        self.body = body
        super().__init__(body.get("error") or f"Report request failed with status {status_code}")

    @property
    def upgrade_required(self) -> bool:
        return bool(self.body.get("upgradeRequired"))


class ReportClient:

    def __init__(
        self,
        base_url: str,
        token: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            base_url: Root of the report service
            token: Bearer token of the user
            client: Optional preconfigured client (transport, proxies). A client
                without a base URL is pointed at `base_url`; one with a
                different base URL is rejected. `timeout` applies only to
                the client built here.

        Raises:
            ValueError: `client` already targets another base URL.
        """
        self.token = token
        self.base_url = base_url
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(base_url=base_url, timeout=timeout)
        elif not str(client.base_url):
            client.base_url = base_url
        elif str(client.base_url).rstrip("/") != base_url.rstrip("/"):
            raise ValueError(
                f"client targets {client.base_url}, not {base_url}; pass a client without a base_url"
            )
        self._client = client

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    @staticmethod
    def _error_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {"error": response.text or None}
        return body if isinstance(body, dict) else {"error": str(body)}

    async def generate(
        self,
        request: Optional[ReportRequest] = None,
        on_phase: Optional[Callable[[ReportPhase], None]] = None,
    ) -> ReportResult:
        """
        Request a report.

        Raises:
            ReportRequestError: non-200 response.
            ReportStreamError: the premium stream failed or ended early.
        """
        payload = (request or ReportRequest()).model_dump(mode="json", by_alias=True, exclude_none=True)

        async with self._client.stream("POST", "/reports", json=payload, headers=self._headers) as response:
            if response.status_code != 200:
                await response.aread()
                body = self._error_body(response)
                logger.warning(
                    "Report request rejected",
                    extra={'extra_data': {'status': response.status_code, 'error': body.get("error")}}
                )
                raise ReportRequestError(response.status_code, body)

            content_type = response.headers.get("content-type", "")
            if content_type.startswith(NDJSON_MEDIA_TYPE):
                return await decode_report_stream(response.aiter_bytes(), on_phase=on_phase)

            await response.aread()
            return ReportResult.model_validate(response.json())

    async def eligibility(self) -> Dict[str, Any]:
        response = await self._client.get("/reports/eligibility", headers=self._headers)
        if response.status_code != 200:
            raise ReportRequestError(response.status_code, self._error_body(response))
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ReportClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
