"""
Types shared by the license reconciler.

LicenseStatus mirrors the status strings the license server returns plus the
two client-only statuses (invalid, domain_limit). The outcome classes are the
three shapes a server call can resolve to; LicenseResult is what every
operation hands back to callers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, Union


class LicenseStatus(str, Enum):
    NONE = ""
    ACTIVE = "active"
    EXPIRED = "expired"
    PAUSED = "paused"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    # Client-only statuses
    INVALID = "invalid"            # 401, key doesn't exist
    DOMAIN_LIMIT = "domain_limit"  # 403, activation limit reached


NON_ACTIVE_STATUSES = frozenset({
    LicenseStatus.INVALID,
    LicenseStatus.EXPIRED,
    LicenseStatus.PAUSED,
    LicenseStatus.SUSPENDED,
    LicenseStatus.CANCELLED,
    LicenseStatus.DOMAIN_LIMIT,
})

REACTIVATABLE_STATUSES = frozenset({
    LicenseStatus.PAUSED,
    LicenseStatus.SUSPENDED,
    LicenseStatus.DOMAIN_LIMIT,
    LicenseStatus.INVALID,
})

RENEWAL_STATUSES = frozenset({
    LicenseStatus.EXPIRED,
    LicenseStatus.CANCELLED,
})


def _to_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass
class Activations:
    limit: int = 0
    used: int = 0


@dataclass
class LicenseData:
    """Structured license metadata as reported by the license server."""

    expires_at: Optional[str] = None  # None means lifetime
    activations: Activations = field(default_factory=Activations)
    product: str = ""
    package: str = ""
    status: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: Optional[Dict[str, Any]]) -> "LicenseData":
        if not isinstance(data, dict):
            data = {}
        expires_at = data.get("expires_at")
        activations = data.get("activations")
        if not isinstance(activations, dict):
            activations = {}
        return cls(
            expires_at=expires_at if isinstance(expires_at, str) and expires_at else None,
            activations=Activations(
                limit=_to_int(activations.get("limit")),
                used=_to_int(activations.get("used")),
            ),
            product=str(data.get("product") or ""),
            package=str(data.get("package") or ""),
            status=data.get("status"),
        )


@dataclass
class LicenseRecord:
    """Snapshot of everything the State Store believes about the license."""

    key: str = ""
    status: LicenseStatus = LicenseStatus.NONE
    data: Optional[Dict[str, Any]] = None
    last_checked_at: Optional[datetime] = None
    grace_started_at: Optional[datetime] = None

    @property
    def license_data(self) -> LicenseData:
        return LicenseData.from_api_response(self.data)


# Transport outcomes

@dataclass
class TransportResponse:
    status_code: int
    body: str = ""


@dataclass
class TransportFailure:
    message: str


TransportOutcome = Union[TransportResponse, TransportFailure]


# Classifier outcomes

@dataclass
class Success:
    http_code: int
    data: Optional[Dict[str, Any]] = None
    message: Optional[str] = None


@dataclass
class DefinitiveError:
    http_code: int
    message: str
    errors: Dict[str, Any] = field(default_factory=dict)


@dataclass
class NetworkError:
    message: str
    http_code: int = 0


ApiOutcome = Union[Success, DefinitiveError, NetworkError]


@dataclass
class LicenseResult:
    """Outcome of an Activate / Check / Deactivate / Validate operation."""

    success: bool
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    http_code: int = 0
    is_network_error: bool = False
    in_grace_period: bool = False
    activated: Optional[bool] = None
    errors: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_outcome(cls, outcome: ApiOutcome) -> "LicenseResult":
        if isinstance(outcome, Success):
            activated = None
            if isinstance(outcome.data, dict) and "activated" in outcome.data:
                activated = bool(outcome.data["activated"])
            return cls(
                success=True,
                message=outcome.message,
                data=outcome.data,
                http_code=outcome.http_code,
                activated=activated,
            )
        if isinstance(outcome, DefinitiveError):
            return cls(
                success=False,
                message=outcome.message,
                http_code=outcome.http_code,
                errors=dict(outcome.errors),
            )
        return cls(
            success=False,
            message=outcome.message,
            http_code=0,
            is_network_error=True,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "httpCode": self.http_code,
            "isNetworkError": self.is_network_error,
            "inGracePeriod": self.in_grace_period,
            "activated": self.activated,
            "errors": self.errors,
        }
