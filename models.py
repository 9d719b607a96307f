from pydantic import BaseModel
from typing import Optional, Dict, Any

class LicenseActivationRequest(BaseModel):
    licenseKey: str

class LicenseKeyRequest(BaseModel):
    licenseKey: Optional[str] = None

class LicenseOperationResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None
    httpCode: int = 0
    isNetworkError: bool = False
    inGracePeriod: bool = False
    activated: Optional[bool] = None
    errors: Dict[str, Any] = {}

class ActivationsInfo(BaseModel):
    limit: int = 0
    used: int = 0

class StatusPresentationInfo(BaseModel):
    tone: str
    message: str
    action: str

class LicenseStatusResponse(BaseModel):
    hasLicense: bool
    status: str
    statusLabel: str
    licenseKey: Optional[str] = None
    isValid: bool = False
    product: Optional[str] = None
    package: Optional[str] = None
    expiresAt: Optional[str] = None
    isExpired: bool = False
    remainingDays: Optional[int] = None
    activations: ActivationsInfo
    lastChecked: Optional[str] = None
    inGracePeriod: bool = False
    graceDaysRemaining: Optional[int] = None
    canReactivate: bool = False
    needsRenewal: bool = False
    renewalUrl: str
    accountUrl: str
    syncEnabled: bool = True
    presentation: StatusPresentationInfo

class ActivityLogEntry(BaseModel):
    type: str
    status: str
    message: Optional[str] = None
    createdAt: Optional[str] = None

class HealthCheckResponse(BaseModel):
    status: str
    service: str
    version: str
    domain: Optional[str] = None
