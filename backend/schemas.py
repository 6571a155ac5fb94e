from pydantic import BaseModel, ConfigDict, Field, NaiveDatetime
from sqlmodel import SQLModel


class EngelReading(BaseModel):
    """Counters read off an Engel injection molding screen."""

    # Strict: the vision reply must carry real integers, not "12" or 12.5
    model_config = ConfigDict(strict=True, extra="ignore")

    good_parts: int = Field(ge=0)
    scrap_parts: int = Field(ge=0)
    reject_parts: int = Field(ge=0)
    total_parts: int = Field(ge=0)


class CoilLabelReading(BaseModel):
    """Fields read off a photo of steel coil labels."""

    model_config = ConfigDict(strict=True, extra="ignore")

    coil_count: int = Field(ge=0)
    total_length: float = Field(ge=0)
    coil_ids: list[str]


class BladeReading(CoilLabelReading):
    estimated_blades: int = Field(ge=0)


class EngelCaptureResponse(BaseModel):
    success: bool = True
    id: int
    data: EngelReading
    fallback: bool = False


class BladeCaptureResponse(BaseModel):
    success: bool = True
    id: int
    data: BladeReading
    fallback: bool = False


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: str | None = None


class ProductionTotals(BaseModel):
    total_good: int = 0
    total_rejects: int = 0
    run_count: int = 0


class BladeTotals(BaseModel):
    total_blades: int = 0
    total_steel: float = 0


class TodaySummaryResponse(BaseModel):
    production: ProductionTotals
    blade: BladeTotals
    date: str  # YYYY-MM-DD, local time


class ProductionLogResponse(SQLModel):
    id: int
    timestamp: NaiveDatetime
    type: str | None = None
    good_parts: int
    scrap_parts: int
    reject_parts: int
    total_parts: int
    shift: str | None = None
    operator: str
    notes: str | None = None


class BladeLogResponse(SQLModel):
    id: int
    timestamp: NaiveDatetime
    coil_count: int
    total_length_ft: float
    blades_cut: int
    material_cost: float
    operator: str
    coil_ids: list[str]
