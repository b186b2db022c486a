from datetime import datetime

from sqlalchemy import Column, DateTime, String

from app.database import Base


class ProvisioningRequest(Base):
    __tablename__ = "provisioning_requests"

    # Client-supplied idempotency key, one per submission attempt
    request_id = Column(String(128), primary_key=True)
    role = Column(String(16), nullable=False)
    uid = Column(String(128), nullable=False, index=True)
    # sha256 of the normalized email and phone; a replay must match it
    credentials_hash = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
