import logging
from typing import Optional, Dict, Any

import httpx

from config import settings
from license_types import TransportFailure, TransportOutcome, TransportResponse

log = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class HttpTransport:
    """
    Issues JSON POSTs to the license server.

    Every httpx error is folded into a TransportFailure so callers never see
    an exception for a connectivity problem. There is no retry here.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    async def post(
        self,
        url: str,
        json_body: Dict[str, Any],
        timeout: float = settings.LICENSE_API_TIMEOUT,
    ) -> TransportOutcome:
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(url, json=json_body, headers=DEFAULT_HEADERS)
                return TransportResponse(status_code=response.status_code, body=response.text)

        except httpx.HTTPError as e:
            log.warning("License server request to %s failed: %s", url, e)
            return TransportFailure(message=str(e) or e.__class__.__name__)
