"""
Read-only questions asked about a LicenseRecord.

Everything here is a pure function of the record and the current time so the
settings UI, the scheduler and the API can share one set of rules.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict

import httpx

from license_types import (
    Activations,
    LicenseRecord,
    LicenseStatus,
    REACTIVATABLE_STATUSES,
    RENEWAL_STATUSES,
)

GRACE_PERIOD_DAYS = 7
DAY = timedelta(days=1)
MASK_CHAR = "•"

STATUS_LABELS = {
    LicenseStatus.ACTIVE: "Active",
    LicenseStatus.EXPIRED: "Expired",
    LicenseStatus.PAUSED: "Paused",
    LicenseStatus.SUSPENDED: "Suspended",
    LicenseStatus.CANCELLED: "Cancelled",
    LicenseStatus.INVALID: "Invalid Key",
    LicenseStatus.DOMAIN_LIMIT: "Domain Limit Reached",
}
NOT_ACTIVATED_LABEL = "Not Activated"


def is_valid(record: LicenseRecord) -> bool:
    return bool(record.key) and record.status == LicenseStatus.ACTIVE


def status_label(status: LicenseStatus) -> str:
    return STATUS_LABELS.get(status, NOT_ACTIVATED_LABEL)


def can_reactivate(record: LicenseRecord) -> bool:
    return record.status in REACTIVATABLE_STATUSES


def needs_renewal(record: LicenseRecord) -> bool:
    return record.status in RENEWAL_STATUSES


def masked_key(key: str) -> str:
    """
    Mask a license key for display.

    Keys longer than 8 characters keep their first and last 4 characters,
    keys of 5 to 8 characters keep the first 2, shorter keys are fully masked.
    """
    length = len(key)

    if length > 8:
        return key[:4] + MASK_CHAR * (length - 8) + key[-4:]
    elif length > 4:
        return key[:2] + MASK_CHAR * (length - 2)

    return MASK_CHAR * length


def _parse_timestamp(value) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    # fromisoformat() before 3.11 rejects a trailing "Z"
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def expiry(record: LicenseRecord) -> Optional[datetime]:
    """
    Expiry moment, or None for a lifetime license. An expiry the server
    sent in a format we can't read is treated as lifetime.
    """
    expires_at = record.license_data.expires_at
    if not expires_at:
        return None
    return _parse_timestamp(expires_at)


def is_expired(record: LicenseRecord, now: datetime) -> bool:
    expires_at = expiry(record)
    if expires_at is None:
        return False
    return expires_at < now


def remaining_days(record: LicenseRecord, now: datetime) -> Optional[int]:
    expires_at = expiry(record)
    if expires_at is None:
        return None
    return max(0, math.floor((expires_at - now) / DAY))


def activations(record: LicenseRecord) -> Activations:
    return record.license_data.activations


def grace_end(grace_started_at: datetime) -> datetime:
    return grace_started_at + timedelta(days=GRACE_PERIOD_DAYS)


def is_in_grace_period(record: LicenseRecord, now: datetime) -> bool:
    if record.grace_started_at is None:
        return False
    return now <= grace_end(record.grace_started_at)


def grace_days_remaining(record: LicenseRecord, now: datetime) -> Optional[int]:
    if record.grace_started_at is None:
        return None
    remaining = grace_end(record.grace_started_at) - now
    return max(0, math.ceil(remaining / DAY))


def renewal_url(record: LicenseRecord, base_url: str) -> str:
    if record.key:
        return str(httpx.URL(base_url).copy_add_param("renew", record.key))
    return base_url


@dataclass
class StatusPresentation:
    tone: str
    message: str
    action: str

    def to_dict(self) -> Dict[str, str]:
        return {"tone": self.tone, "message": self.message, "action": self.action}


PRESENTATIONS = {
    LicenseStatus.ACTIVE: StatusPresentation(
        "active", "Your license is active.", "none"),
    LicenseStatus.EXPIRED: StatusPresentation(
        "expired", "Your license has expired. Renew to continue using sync features.", "renew"),
    LicenseStatus.CANCELLED: StatusPresentation(
        "expired", "Your subscription has been cancelled. Purchase a new license to continue.", "renew"),
    LicenseStatus.PAUSED: StatusPresentation(
        "warning", "Your subscription is paused. Resume your subscription to restore access.", "manage_account"),
    LicenseStatus.SUSPENDED: StatusPresentation(
        "warning", "Your license is suspended due to a payment issue. Please update your payment method.", "manage_account"),
    LicenseStatus.DOMAIN_LIMIT: StatusPresentation(
        "warning", "You have reached the maximum number of domain activations. "
        "Deactivate another domain or upgrade your license.", "free_domain"),
    LicenseStatus.INVALID: StatusPresentation(
        "invalid", "This license key was not found. Please check your key or enter a new one.", "enter_key"),
}
NOT_ACTIVATED = StatusPresentation(
    "inactive", "Enter your license key to activate sync features.", "activate")


def presentation(status: LicenseStatus) -> StatusPresentation:
    return PRESENTATIONS.get(status, NOT_ACTIVATED)
