"""CRM transport: the single "create records" operation of the Salesforce API.

Provides an abstract CRMTransport and SalesforceTransport, an httpx based
implementation that PUTs the payload to the composite data endpoint.

The transport never retries. A failure surfaces either as a structured
CRMErrorList (the CRM understood the request and rejected records) or as
an exception (network, auth, malformed response); redelivery is the
queue's job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from src.donation_sync.config import Settings
from src.donation_sync.export.records import CRMError, ExportPayload

logger = structlog.get_logger(__name__)


class CRMAcknowledgement(BaseModel):
    """Raw acknowledgement body returned by the CRM on success."""

    data: dict[str, Any] = Field(default_factory=dict)


class CRMErrorList(BaseModel):
    """Structured per-record/per-field errors returned by the CRM."""

    errors: list[CRMError] = Field(default_factory=list)


class MalformedResponseError(ValueError):
    """The CRM answered with something that is not a JSON object."""


class CRMTransport(ABC):
    """Abstract interface to the CRM's record-creation endpoint."""

    @abstractmethod
    async def create_records(self, payload: ExportPayload) -> CRMAcknowledgement | CRMErrorList:
        """Submit the payload as one unit."""
        ...


def parse_response_body(body: Any) -> CRMAcknowledgement | CRMErrorList:
    """Classify a decoded CRM response body."""
    if not isinstance(body, dict):
        msg = f"Expected a JSON object from Salesforce, got {type(body).__name__}"
        raise MalformedResponseError(msg)
    errors = body.get("errors")
    if errors:
        return CRMErrorList(errors=[
            CRMError.model_validate(e) if isinstance(e, dict) else CRMError(message=str(e))
            for e in errors
        ])
    return CRMAcknowledgement(data=body)


class SalesforceTransport(CRMTransport):
    """Salesforce REST transport over httpx.

    Authenticates with the OAuth client-credentials flow (token cached for
    the lifetime of the transport) unless a static access token is given.

    Args:
        instance_url: Salesforce instance base URL.
        data_path: Path of the composite "create records" Apex endpoint.
        client_id: Connected app consumer key.
        client_secret: Connected app consumer secret.
        access_token: Static bearer token; skips the OAuth exchange.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    TOKEN_PATH = "/services/oauth2/token"

    def __init__(
        self,
        instance_url: str,
        *,
        data_path: str = "/services/apexrest/gcis/v1/data",
        client_id: str = "",
        client_secret: str = "",
        access_token: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._instance_url = instance_url.rstrip("/")
        self._data_path = data_path
        self._client_id = client_id
        self._client_secret = client_secret
        self._static_token = access_token
        self._access_token: str | None = None
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> SalesforceTransport:
        return cls(
            settings.SALESFORCE_INSTANCE_URL,
            data_path=settings.SALESFORCE_DATA_PATH,
            client_id=settings.SALESFORCE_CLIENT_ID,
            client_secret=settings.SALESFORCE_CLIENT_SECRET,
            access_token=settings.SALESFORCE_ACCESS_TOKEN,
            timeout=settings.SALESFORCE_TIMEOUT,
        )

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client bound to the instance URL."""
        return httpx.AsyncClient(
            base_url=self._instance_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _token(self, client: httpx.AsyncClient) -> str:
        if self._static_token:
            return self._static_token
        if self._access_token:
            return self._access_token
        response = await client.post(
            self.TOKEN_PATH,
            data={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            },
        )
        response.raise_for_status()
        token = response.json().get("access_token")
        if not token:
            raise MalformedResponseError("Salesforce token response had no access_token")
        self._access_token = token
        logger.info("salesforce.token_acquired")
        return token

    async def create_records(self, payload: ExportPayload) -> CRMAcknowledgement | CRMErrorList:
        async with self._client() as client:
            token = await self._token(client)
            response = await client.put(
                self._data_path,
                json=payload.to_request_body(),
                headers={"Authorization": f"Bearer {token}"},
            )
            if response.status_code == httpx.codes.UNAUTHORIZED:
                # Expired token: forget it so the next delivery re-authenticates.
                self._access_token = None
            response.raise_for_status()
            result = parse_response_body(response.json())

        logger.debug(
            "salesforce.create_records",
            records=len(payload.records),
            status_code=response.status_code,
            rejected=isinstance(result, CRMErrorList),
        )
        return result
