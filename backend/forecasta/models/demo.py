from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column
from sqlmodel import Field, SQLModel

from forecasta.models.types import JSONType


class Demo(SQLModel, table=True):
    __tablename__ = "demos"

    id: str = Field(primary_key=True, index=True)  # demo_<ms>_<rand>
    website_url: str = Field(index=True, unique=True)
    business_name: str = Field(default="Unnamed Business", index=True)
    industry: Optional[str] = Field(default=None)
    intelligence_data: Optional[Any] = Field(default=None, sa_column=Column(JSONType, nullable=True))

    contractor_mode: bool = Field(default=False, index=True)
    contractor_profile: Optional[Any] = Field(default=None, sa_column=Column(JSONType, nullable=True))

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
