"""Strict schema baselines with forbidden extras by default."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Neutral strict base for response DTOs."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class OrmReadModel(BaseModel):
    """Read model populated from SQLAlchemy rows; unknown columns are ignored."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")
