"""Typed shapes of the admin-editable studio settings."""

from typing import List, Literal, Optional

from pydantic import Field

from ..core.enums import CapacityLevel
from ._strict_base import StrictModel


class ClassCapacity(StrictModel):
    max: int = Field(..., ge=1)


class CapacityThreshold(StrictModel):
    level: CapacityLevel
    threshold: int = Field(..., ge=0, le=100, description="Occupancy percentage")
    message: str = ""


class CapacityMessageSettings(StrictModel):
    thresholds: List[CapacityThreshold] = Field(default_factory=list)


class AutomationToggle(StrictModel):
    enabled: bool = False


class ReminderAutomation(StrictModel):
    enabled: bool = False
    value: int = Field(default=24, ge=1)
    unit: Literal["hours", "days"] = "hours"

    @property
    def lead_hours(self) -> int:
        return self.value if self.unit == "hours" else self.value * 24


class IncentiveAutomation(StrictModel):
    enabled: bool = False
    value: int = Field(default=1, ge=1)
    unit: Literal["classes"] = "classes"


class AutomationSettings(StrictModel):
    pre_booking_confirmation: AutomationToggle = Field(default_factory=AutomationToggle)
    payment_receipt: AutomationToggle = Field(default_factory=AutomationToggle)
    class_reminder: ReminderAutomation = Field(default_factory=ReminderAutomation)
    incentive_renewal: IncentiveAutomation = Field(default_factory=IncentiveAutomation)


class BankDetails(StrictModel):
    bank_name: str
    account_holder: str
    account_number: str
    account_type: str
    tax_id: str
    details: Optional[str] = None
