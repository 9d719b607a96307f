from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import create_engine, Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config import settings


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_engine(url: str, **kwargs):
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, **kwargs)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Option names
LICENSE_KEY = "license_key"
LICENSE_STATUS = "license_status"
LICENSE_DATA = "license_data"
LICENSE_LAST_CHECK = "license_last_check"
LICENSE_GRACE_START = "license_grace_start"
SYNC_ENABLED = "sync_enabled"

LICENSE_OPTIONS = (
    LICENSE_KEY,
    LICENSE_STATUS,
    LICENSE_DATA,
    LICENSE_LAST_CHECK,
    LICENSE_GRACE_START,
)

# Database Models
class LicenseOption(Base):
    __tablename__ = "license_options"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

class LicenseActivityLog(Base):
    __tablename__ = "license_activity_log"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False)  # success, error, offline
    message = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)


class OptionStore:
    """
    Durable key/value storage for the license record.

    Setting a value to None deletes the option so "get with default" keeps
    returning the default.
    """

    def __init__(self, db: Session):
        self.db = db

    def _row(self, name: str) -> Optional[LicenseOption]:
        return self.db.query(LicenseOption).filter(LicenseOption.name == name).first()

    def get(self, name: str, default: Any = None) -> Any:
        row = self._row(name)
        if row is None:
            return default
        return row.value

    def set(self, name: str, value: Any):
        if value is None:
            self.delete(name)
            return

        row = self._row(name)
        if row:
            row.value = value
        else:
            self.db.add(LicenseOption(name=name, value=value))
        self.db.commit()

    def delete(self, name: str):
        self.db.query(LicenseOption).filter(LicenseOption.name == name).delete()
        self.db.commit()

    def get_datetime(self, name: str) -> Optional[datetime]:
        value = self.get(name)
        if not value:
            return None
        moment = datetime.fromisoformat(value)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment

    def set_datetime(self, name: str, moment: datetime):
        self.set(name, moment.isoformat())


class ActivityLog:
    """
    Structured log of license events shown alongside sync logs.
    """

    def __init__(self, db: Session):
        self.db = db

    def add(self, type: str, status: str, message: str) -> LicenseActivityLog:
        entry = LicenseActivityLog(type=type, status=status, message=message)
        self.db.add(entry)
        self.db.commit()
        return entry

    def recent(self, limit: int = 20):
        return (
            self.db.query(LicenseActivityLog)
            .order_by(LicenseActivityLog.id.desc())
            .limit(limit)
            .all()
        )


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
