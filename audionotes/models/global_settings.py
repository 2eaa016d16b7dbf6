from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from audionotes.db.base import Base


class GlobalSettings(Base):
    __tablename__ = "global_settings"

    # "models" is the only type today
    type: Mapped[str] = mapped_column(String(32), primary_key=True)
    settings_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")  # JSON string

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())
