"""
AppConfiguration Model
Key/value configuration store (ignore lists and similar operator settings)
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from app.database import Base, JSONVariant


class AppConfiguration(Base):
    """
    Operator-managed configuration values.

    Known keys:
    - Ignored_Emails: ["spam@example.com", ...]
    - Ignored_Services: ["storage", ...]
    """
    __tablename__ = "configuration"

    key = Column(String(100), primary_key=True)
    value = Column(JSONVariant, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<AppConfiguration(key='{self.key}')>"
