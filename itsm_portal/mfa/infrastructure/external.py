"""
MFA External Integrations
=========================

Delivery of one-time codes through the transactional email function.
"""

from typing import Optional

import httpx

from itsm_portal.config import settings
from itsm_portal.core import ExternalServiceException
from itsm_portal.mfa.application.services import ICodeDispatcher
from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SERVICE_NAME = "email-function"


class EmailFunctionDispatcher(ICodeDispatcher):
    """
    Posts the code to the email function endpoint.

    One attempt per code; a failure surfaces to the caller, who can ask
    for a new code.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._url = url or settings.email_function_url
        self._api_key = api_key or settings.email_function_api_key
        self._timeout = timeout or settings.email_timeout_seconds
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def send_code(self, email: str, code: str, ttl_minutes: int) -> None:
        if not self._url:
            raise ExternalServiceException(SERVICE_NAME, "endpoint not configured")

        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        payload = {
            "to": email,
            "template": "mfa_code",
            "data": {"code": code, "expires_in_minutes": ttl_minutes},
        }

        try:
            client = await self._get_client()
            response = await client.post(self._url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Email function request failed", extra={"error": str(e)})
            raise ExternalServiceException(SERVICE_NAME, "request failed") from e

        if response.status_code >= 400:
            logger.error(
                "Email function returned an error",
                extra={"status_code": response.status_code}
            )
            raise ExternalServiceException(
                SERVICE_NAME,
                f"returned HTTP {response.status_code}",
                {"status_code": response.status_code}
            )

        logger.info("MFA email dispatched")

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
