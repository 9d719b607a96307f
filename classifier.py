"""
Response classification for license server calls.

Turns a raw transport outcome into Success, DefinitiveError or NetworkError.
The endpoint is only carried along for logging; the rules are the same for
every endpoint.
"""

import json
import logging
from typing import Any, Dict

from license_types import (
    ApiOutcome,
    DefinitiveError,
    NetworkError,
    Success,
    TransportFailure,
    TransportOutcome,
)

log = logging.getLogger(__name__)

OPERATION_SUCCESSFUL = "Operation successful."
UNKNOWN_ERROR = "Unknown error occurred."


def _parse_body(body: str) -> Any:
    if not body:
        return {}
    try:
        return json.loads(body)
    except ValueError:
        return {}


def classify(endpoint: str, outcome: TransportOutcome) -> ApiOutcome:
    if isinstance(outcome, TransportFailure):
        log.debug("%s: no response (%s)", endpoint, outcome.message)
        return NetworkError(message=outcome.message)

    code = outcome.status_code

    if code == 204:
        return Success(http_code=code, message=OPERATION_SUCCESSFUL)

    parsed = _parse_body(outcome.body)

    if 200 <= code < 300:
        if isinstance(parsed, dict) and "data" in parsed:
            data = parsed["data"]
        else:
            data = parsed
        return Success(http_code=code, data=data)

    payload: Dict[str, Any] = parsed if isinstance(parsed, dict) else {}
    message = payload.get("message") or UNKNOWN_ERROR
    errors = payload.get("errors") or {}
    log.debug("%s: HTTP %s %s", endpoint, code, message)
    return DefinitiveError(
        http_code=code,
        message=str(message),
        errors=errors if isinstance(errors, dict) else {"detail": errors},
    )
