"""Product catalog schemas."""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from ..core.enums import ProductType
from ._strict_base import OrmReadModel, StrictRequestModel
from .slot import SchedulingRule, SessionOverride


class ProductBase(StrictRequestModel):
    """Fields shared by every product type; type-specific ones are optional."""

    id: int
    type: ProductType
    name: str = Field(..., min_length=1)
    price: Optional[Decimal] = Field(default=None, ge=0)
    description: Optional[str] = None
    image_url: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    is_active: bool = True
    classes: Optional[int] = Field(default=None, ge=1)
    scheduling_rules: List[SchedulingRule] = Field(default_factory=list)
    overrides: List[SessionOverride] = Field(default_factory=list)

    @field_validator("scheduling_rules", "overrides", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _check_type_fields(self) -> "ProductBase":
        if self.type == ProductType.CLASS_PACKAGE and not self.classes:
            raise ValueError("CLASS_PACKAGE products require 'classes'")
        seen = set()
        for override in self.overrides:
            if override.date in seen:
                raise ValueError(f"More than one override for {override.date.isoformat()}")
            seen.add(override.date)
        return self


class ProductWrite(ProductBase):
    pass


class ProductRead(ProductBase, OrmReadModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    def override_for(self, day) -> Optional[SessionOverride]:
        for override in self.overrides:
            if override.date == day:
                return override
        return None

    def snapshot(self) -> Dict[str, Any]:
        """JSON copy embedded in bookings."""
        return self.model_dump(mode="json")


class InstructorRead(OrmReadModel):
    id: int
    name: str
    color_scheme: Optional[str] = None
