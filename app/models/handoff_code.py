from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from app.database import Base


class HandoffCode(Base):
    __tablename__ = "handoff_codes"

    id = Column(Integer, primary_key=True, index=True)
    code_hash = Column(String(64), unique=True, nullable=False, index=True)
    uid = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
