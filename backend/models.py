from datetime import datetime

from pydantic import NaiveDatetime
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class ProductionLog(SQLModel, table=True):
    __tablename__ = "production_log"

    id: int | None = Field(default=None, primary_key=True)
    timestamp: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime, index=True)  # Local time
    type: str | None = Field(default=None)  # e.g. "molding"
    good_parts: int = Field(default=0)
    scrap_parts: int = Field(default=0)
    reject_parts: int = Field(default=0)
    total_parts: int = Field(default=0)
    shift: str | None = Field(default=None)
    operator: str = Field(default="Unknown")
    notes: str | None = Field(default=None)


class BladeLog(SQLModel, table=True):
    __tablename__ = "blade_log"

    id: int | None = Field(default=None, primary_key=True)
    timestamp: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime, index=True)  # Local time
    coil_count: int = Field(default=0)
    total_length_ft: float = Field(default=0.0)
    blades_cut: int = Field(default=0)
    material_cost: float = Field(default=0.0)
    operator: str = Field(default="Unknown")
    coil_ids: str = Field(default="[]")  # JSON-encoded list of coil ids
