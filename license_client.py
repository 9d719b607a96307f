import logging
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

import license_queries as queries
from classifier import classify
from clock import SystemClock
from config import settings
from database import (
    ActivityLog,
    OptionStore,
    LICENSE_DATA,
    LICENSE_GRACE_START,
    LICENSE_KEY,
    LICENSE_LAST_CHECK,
    LICENSE_OPTIONS,
    LICENSE_STATUS,
    SYNC_ENABLED,
)
from domain_resolver import get_domain
from license_queries import GRACE_PERIOD_DAYS
from license_types import (
    ApiOutcome,
    DefinitiveError,
    LicenseRecord,
    LicenseResult,
    LicenseStatus,
    NetworkError,
    NON_ACTIVE_STATUSES,
    Success,
)
from transport import HttpTransport

log = logging.getLogger(__name__)

VALIDATE_ENDPOINT = "/licenses/validate"
ACTIVATE_ENDPOINT = "/licenses/activate"
DEACTIVATE_ENDPOINT = "/licenses/deactivate"
CHECK_ENDPOINT = "/licenses/check"


class InvalidLicenseKeyError(ValueError):
    """Raised when an operation is asked to work with an empty license key."""


def parse_status_from_message(message: str) -> LicenseStatus:
    """
    Infer a status from a lowercase 403 message when the server
    would not tell us the status directly.
    """
    if "expired" in message:
        return LicenseStatus.EXPIRED
    elif "suspended" in message:
        return LicenseStatus.SUSPENDED
    elif "cancelled" in message or "canceled" in message:
        return LicenseStatus.CANCELLED
    elif "paused" in message:
        return LicenseStatus.PAUSED
    return LicenseStatus.SUSPENDED  # Default for unknown 403


def coerce_status(value: Any) -> LicenseStatus:
    if not value:
        return LicenseStatus.NONE
    try:
        return LicenseStatus(value)
    except ValueError:
        return parse_status_from_message(str(value).lower())


class LicenseClient:
    def __init__(self, db: Session, transport=None, clock=None, domain: Optional[str] = None):
        self.db = db
        self.store = OptionStore(db)
        self.activity = ActivityLog(db)
        self.transport = transport or HttpTransport()
        self.clock = clock or SystemClock()
        self.domain = domain if domain is not None else get_domain()
        self.api_url = settings.LICENSE_API_URL.rstrip("/")
        self.product_slug = settings.PRODUCT_SLUG

    async def _api_request(self, endpoint: str, body: Dict[str, Any]) -> ApiOutcome:
        outcome = await self.transport.post(
            f"{self.api_url}{endpoint}",
            body,
            settings.LICENSE_API_TIMEOUT,
        )
        return classify(endpoint, outcome)

    def _request_body(self, license_key: str, with_domain: bool = True) -> Dict[str, Any]:
        body = {
            "license_key": license_key,
            "product_slug": self.product_slug,
        }
        if with_domain:
            body["domain"] = self.domain
        return body

    def _set_status(self, status: LicenseStatus):
        self.store.set(LICENSE_STATUS, status.value)

    async def _validate(self, license_key: str) -> ApiOutcome:
        return await self._api_request(
            VALIDATE_ENDPOINT, self._request_body(license_key, with_domain=False)
        )

    async def validate(self, license_key: Optional[str] = None) -> LicenseResult:
        """
        Validate license key without activating it. Nothing is persisted.
        """
        license_key = (license_key or "").strip() or self.get_key()
        if not license_key:
            return LicenseResult(success=False, message="No license key found.")

        return LicenseResult.from_outcome(await self._validate(license_key))

    async def activate(self, license_key: str) -> LicenseResult:
        """
        Activate license for this domain.
        """
        license_key = (license_key or "").strip()
        if not license_key:
            raise InvalidLicenseKeyError("License key is required.")

        outcome = await self._api_request(ACTIVATE_ENDPOINT, self._request_body(license_key))
        result = LicenseResult.from_outcome(outcome)

        if isinstance(outcome, Success):
            data = outcome.data if isinstance(outcome.data, dict) else {}
            status = coerce_status(data.get("status") or LicenseStatus.ACTIVE)

            self.store.set(LICENSE_KEY, license_key)
            self._set_status(status)
            self.store.set(LICENSE_DATA, data)
            self.store.set_datetime(LICENSE_LAST_CHECK, self.clock.now())
            self.store.delete(LICENSE_GRACE_START)

            self._log("success", f"License activated for {self.domain}. Status: {queries.status_label(status)}.")
            return result

        if isinstance(outcome, NetworkError):
            # Leave stored status alone so the user can retry
            self._log("offline", f"License activation could not reach the server: {outcome.message}")
            return result

        # The rejected key replaces the previous record entirely
        self.store.set(LICENSE_KEY, license_key)
        self._set_status(LicenseStatus.NONE)
        self.store.delete(LICENSE_DATA)
        self.store.delete(LICENSE_LAST_CHECK)
        self.store.delete(LICENSE_GRACE_START)

        if outcome.http_code == 401:
            self._set_status(LicenseStatus.INVALID)
        elif outcome.http_code == 403:
            await self._resolve_forbidden(license_key, outcome)

        self._log("error", f"License activation failed (HTTP {outcome.http_code}): {outcome.message}")
        return result

    async def _resolve_forbidden(self, license_key: str, outcome: DefinitiveError):
        message = (outcome.message or "").lower()

        if "domain limit" in message:
            self._set_status(LicenseStatus.DOMAIN_LIMIT)
            return

        # License exists but is not active, ask for the real status
        validation = await self._validate(license_key)
        if (
            isinstance(validation, Success)
            and isinstance(validation.data, dict)
            and validation.data.get("status")
        ):
            self._set_status(coerce_status(validation.data["status"]))
            self.store.set(LICENSE_DATA, validation.data)
        else:
            self._set_status(parse_status_from_message(message))

    async def check(self, license_key: Optional[str] = None) -> LicenseResult:
        """
        Check license status with server.

        Updates the stored status from the server response and applies the
        grace period when the server can't be reached.
        """
        license_key = (license_key or "").strip() or self.get_key()
        if not license_key:
            return LicenseResult(success=False, activated=False, message="No license key found.")

        outcome = await self._api_request(CHECK_ENDPOINT, self._request_body(license_key))
        checked_at = self.clock.now()
        self.store.set_datetime(LICENSE_LAST_CHECK, checked_at)
        result = LicenseResult.from_outcome(outcome)

        if isinstance(outcome, Success) and result.activated is not None:
            self.store.delete(LICENSE_GRACE_START)

            if result.activated:
                license_data = outcome.data.get("license")
                if not isinstance(license_data, dict):
                    license_data = {}
                status = coerce_status(license_data.get("status") or LicenseStatus.ACTIVE)
                self._set_status(status)
                self.store.set(LICENSE_DATA, license_data)
                return result

            # activated=false: either this domain isn't activated or the
            # license itself is not active. The previous status tells which.
            current_status = self.get_status()
            if current_status == LicenseStatus.NONE or current_status in NON_ACTIVE_STATUSES:
                activate_result = await self.activate(license_key)
                # A rejected activation resets the record, the check still happened
                self.store.set_datetime(LICENSE_LAST_CHECK, checked_at)
                return activate_result

            validation = await self._validate(license_key)
            if (
                isinstance(validation, Success)
                and isinstance(validation.data, dict)
                and validation.data.get("status")
            ):
                self._set_status(coerce_status(validation.data["status"]))
                self.store.set(LICENSE_DATA, validation.data)
            else:
                self._set_status(LicenseStatus.SUSPENDED)

            self._log("error", f"License is no longer activated. Status: {self.get_status_label()}.")
            return result

        if isinstance(outcome, NetworkError):
            return self._handle_network_error(result)

        if isinstance(outcome, DefinitiveError) and outcome.http_code == 401:
            self._set_status(LicenseStatus.INVALID)
            self._log("error", f"License check rejected the key: {outcome.message}")
        # The check endpoint doesn't return 403

        return result

    def _handle_network_error(self, result: LicenseResult) -> LicenseResult:
        """
        Keep an active license active for GRACE_PERIOD_DAYS after the first
        network error, then demote it to suspended.
        """
        if self.get_status() != LicenseStatus.ACTIVE:
            return result

        now = self.clock.now()
        grace_start = self.store.get_datetime(LICENSE_GRACE_START)

        if grace_start is None:
            self.store.set_datetime(LICENSE_GRACE_START, now)
            result.message = f"Network error. License will remain active for {GRACE_PERIOD_DAYS} days."
            self._log("offline", result.message)
            return result

        grace_end = queries.grace_end(grace_start)

        if now > grace_end:
            self._set_status(LicenseStatus.SUSPENDED)
            self.store.delete(LICENSE_GRACE_START)
            result.message = "License verification failed. Grace period expired."
            self._log("error", result.message)
        else:
            days_left = queries.grace_days_remaining(self.get_record(), now)
            result.message = f"Network error. License active for {days_left} more days."
            result.in_grace_period = True
            self._log("offline", result.message)

        return result

    async def deactivate(self, license_key: Optional[str] = None) -> LicenseResult:
        """
        Deactivate license for this domain.

        The server call frees up the activation slot when it works; local
        license state is cleared either way.
        """
        license_key = (license_key or "").strip() or self.get_key()

        if license_key:
            outcome = await self._api_request(DEACTIVATE_ENDPOINT, self._request_body(license_key))
            if not isinstance(outcome, Success):
                log.info("Server-side deactivation failed, clearing local license anyway: %s", outcome.message)

        for name in LICENSE_OPTIONS:
            self.store.delete(name)

        self._log("success", "License deactivated.")
        return LicenseResult(success=True, message="License deactivated.")

    def _log(self, status: str, message: str):
        log.info("license %s: %s", status, message)
        self.activity.add("license", status, message)

    # Stored state

    def get_record(self) -> LicenseRecord:
        return LicenseRecord(
            key=self.store.get(LICENSE_KEY, "") or "",
            status=coerce_status(self.store.get(LICENSE_STATUS, "")),
            data=self.store.get(LICENSE_DATA),
            last_checked_at=self.store.get_datetime(LICENSE_LAST_CHECK),
            grace_started_at=self.store.get_datetime(LICENSE_GRACE_START),
        )

    def get_key(self) -> str:
        return self.store.get(LICENSE_KEY, "") or ""

    def get_status(self) -> LicenseStatus:
        return coerce_status(self.store.get(LICENSE_STATUS, ""))

    def get_data(self) -> Dict[str, Any]:
        return self.store.get(LICENSE_DATA, {}) or {}

    def get_last_check(self):
        return self.store.get_datetime(LICENSE_LAST_CHECK)

    def is_sync_enabled(self) -> bool:
        return bool(self.store.get(SYNC_ENABLED, True))

    # Derived queries

    def is_valid(self) -> bool:
        return queries.is_valid(self.get_record())

    def get_status_label(self) -> str:
        return queries.status_label(self.get_status())

    def can_reactivate(self) -> bool:
        return queries.can_reactivate(self.get_record())

    def needs_renewal(self) -> bool:
        return queries.needs_renewal(self.get_record())

    def is_in_grace_period(self) -> bool:
        return queries.is_in_grace_period(self.get_record(), self.clock.now())

    def get_grace_days_remaining(self) -> Optional[int]:
        return queries.grace_days_remaining(self.get_record(), self.clock.now())

    def get_license_status(self) -> Dict[str, Any]:
        """
        Get current license status for UI display.
        """
        record = self.get_record()
        now = self.clock.now()
        license_data = record.license_data
        activations = license_data.activations

        return {
            "hasLicense": bool(record.key),
            "status": record.status.value,
            "statusLabel": queries.status_label(record.status),
            "licenseKey": queries.masked_key(record.key) if record.key else None,
            "isValid": queries.is_valid(record),
            "product": license_data.product or None,
            "package": license_data.package or None,
            "expiresAt": license_data.expires_at,
            "isExpired": queries.is_expired(record, now),
            "remainingDays": queries.remaining_days(record, now),
            "activations": {"limit": activations.limit, "used": activations.used},
            "lastChecked": record.last_checked_at.isoformat() if record.last_checked_at else None,
            "inGracePeriod": queries.is_in_grace_period(record, now),
            "graceDaysRemaining": queries.grace_days_remaining(record, now),
            "canReactivate": queries.can_reactivate(record),
            "needsRenewal": queries.needs_renewal(record),
            "renewalUrl": queries.renewal_url(record, settings.RENEWAL_URL),
            "accountUrl": settings.ACCOUNT_URL,
            "syncEnabled": self.is_sync_enabled(),
            "presentation": queries.presentation(record.status).to_dict(),
        }
