import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from clock import SystemClock
from config import settings
from database import ActivityLog, get_db, init_db
from domain_resolver import get_domain
from license_client import InvalidLicenseKeyError, LicenseClient
from license_scheduler import LicenseScheduler
from models import (
    ActivityLogEntry,
    HealthCheckResponse,
    LicenseActivationRequest,
    LicenseKeyRequest,
    LicenseOperationResponse,
    LicenseStatusResponse,
)
from transport import HttpTransport

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    license_scheduler = LicenseScheduler()
    license_scheduler.start()
    log.info("License check scheduled every %s hours", settings.CHECK_INTERVAL_HOURS)
    try:
        yield
    finally:
        license_scheduler.shutdown()


app = FastAPI(
    title="License Reconciler Service",
    description="Keeps the local license entitlement in step with the license server",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_transport():
    return HttpTransport()

def get_clock():
    return SystemClock()

def get_client(
    db: Session = Depends(get_db),
    transport=Depends(get_transport),
    clock=Depends(get_clock),
) -> LicenseClient:
    return LicenseClient(db, transport=transport, clock=clock)


# API Endpoints
@app.post("/api/license/activate", response_model=LicenseOperationResponse)
async def activate_license(
    request: LicenseActivationRequest,
    client: LicenseClient = Depends(get_client)
):
    """
    Activate license for this domain.

    Failed activations still update the stored status (invalid key,
    domain limit, expired, ...) so the status endpoint shows the reason.
    """
    try:
        result = await client.activate(request.licenseKey)
    except InvalidLicenseKeyError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not result.success:
        raise HTTPException(status_code=400, detail=result.to_dict())

    return result.to_dict()

@app.post("/api/license/check", response_model=LicenseOperationResponse)
async def check_license(
    request: Optional[LicenseKeyRequest] = None,
    client: LicenseClient = Depends(get_client)
):
    """
    Verify the license with the server now instead of waiting for the daily check.
    """
    result = await client.check(request.licenseKey if request else None)
    return result.to_dict()

@app.post("/api/license/validate", response_model=LicenseOperationResponse)
async def validate_license(
    request: Optional[LicenseKeyRequest] = None,
    client: LicenseClient = Depends(get_client)
):
    result = await client.validate(request.licenseKey if request else None)
    return result.to_dict()

@app.post("/api/license/deactivate", response_model=LicenseOperationResponse)
async def deactivate_license(client: LicenseClient = Depends(get_client)):
    """
    Deactivate license and clear local license state.

    Always succeeds locally, even when the license server is unreachable.
    """
    result = await client.deactivate()
    return result.to_dict()

@app.get("/api/license/status", response_model=LicenseStatusResponse)
async def get_license_status(client: LicenseClient = Depends(get_client)):
    """
    Current license status as stored locally. Does not contact the server.
    """
    return client.get_license_status()

@app.get("/api/license/logs", response_model=List[ActivityLogEntry])
async def get_license_logs(limit: int = 20, db: Session = Depends(get_db)):
    return [
        {
            "type": entry.type,
            "status": entry.status,
            "message": entry.message,
            "createdAt": entry.created_at.isoformat() if entry.created_at else None,
        }
        for entry in ActivityLog(db).recent(limit)
    ]

@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    return {
        "status": "healthy",
        "service": settings.SERVICE_NAME,
        "version": settings.APP_VERSION,
        "domain": get_domain(),
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
