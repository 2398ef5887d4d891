"""Database model for studio configuration."""

from sqlalchemy import JSON, Column, DateTime, Text
from sqlalchemy.sql import func

from ..database import Base


class StudioSetting(Base):
    """Key/value configuration stored as JSON for admin-editable settings."""

    __tablename__ = "studio_settings"

    key = Column(Text, primary_key=True, nullable=False)
    value_json = Column(JSON, nullable=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<StudioSetting key={self.key}>"


__all__ = ["StudioSetting"]
