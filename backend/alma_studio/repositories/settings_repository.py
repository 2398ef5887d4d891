"""Typed accessors over the studio_settings key/value table."""

from __future__ import annotations

import copy
from datetime import datetime
import logging
from typing import Any, Dict, List, Mapping, Optional, cast

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from ..core.constants import (
    DEFAULT_AUTOMATION_SETTINGS,
    DEFAULT_AVAILABILITY,
    DEFAULT_CAPACITY_MESSAGES,
    DEFAULT_CLASS_CAPACITY,
    SETTING_AUTOMATION,
    SETTING_AVAILABILITY,
    SETTING_BANK_DETAILS,
    SETTING_CAPACITY_MESSAGES,
    SETTING_CLASS_CAPACITY,
    SETTING_SCHEDULE_OVERRIDES,
)
from ..models.studio_setting import StudioSetting
from ..schemas.settings import (
    AutomationSettings,
    BankDetails,
    CapacityMessageSettings,
    ClassCapacity,
)
from ..schemas.slot import Availability, AvailableSlot, DailyScheduleOverride, ScheduleOverrides

logger = logging.getLogger(__name__)

_AVAILABILITY_ADAPTER: TypeAdapter[Dict[str, List[AvailableSlot]]] = TypeAdapter(
    Dict[str, List[AvailableSlot]]
)
_OVERRIDES_ADAPTER: TypeAdapter[Dict[str, DailyScheduleOverride]] = TypeAdapter(
    Dict[str, DailyScheduleOverride]
)


class StudioSettingsRepository:
    """
    One accessor per logical setting.

    Unset keys return the seed defaults. A stored value that no longer
    validates is logged and replaced by the default rather than breaking
    every read of the schedule.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_key(self, key: str) -> Optional[StudioSetting]:
        result = self.db.query(StudioSetting).filter(StudioSetting.key == key).first()
        return cast(Optional[StudioSetting], result)

    def get_raw(self, key: str, default: Any = None) -> Any:
        record = self.get_by_key(key)
        if record is None or record.value_json is None:
            return copy.deepcopy(default)
        return copy.deepcopy(record.value_json)

    def upsert(self, *, key: str, value: Any, updated_at: Optional[datetime] = None) -> StudioSetting:
        updated_at = updated_at or datetime.now()
        record = self.get_by_key(key)
        if record is None:
            record = StudioSetting(key=key, value_json=copy.deepcopy(value), updated_at=updated_at)
            self.db.add(record)
        else:
            record.value_json = copy.deepcopy(value)
            record.updated_at = updated_at
        self.db.flush()
        return record

    def _parse(self, key: str, adapter_or_model: Any, default: Any) -> Any:
        raw = self.get_raw(key, default)
        try:
            if isinstance(adapter_or_model, TypeAdapter):
                return adapter_or_model.validate_python(raw)
            return adapter_or_model.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Stored setting %s is invalid, using default: %s", key, exc)
            if isinstance(adapter_or_model, TypeAdapter):
                return adapter_or_model.validate_python(copy.deepcopy(default))
            return adapter_or_model.model_validate(copy.deepcopy(default))

    # Class-package weekly template

    def get_availability(self) -> Availability:
        return self._parse(SETTING_AVAILABILITY, _AVAILABILITY_ADAPTER, DEFAULT_AVAILABILITY)

    def set_availability(self, availability: Mapping[str, Any]) -> None:
        value = _AVAILABILITY_ADAPTER.dump_python(
            _AVAILABILITY_ADAPTER.validate_python(dict(availability)), mode="json"
        )
        self.upsert(key=SETTING_AVAILABILITY, value=value)

    def get_schedule_overrides(self) -> ScheduleOverrides:
        return self._parse(SETTING_SCHEDULE_OVERRIDES, _OVERRIDES_ADAPTER, {})

    def set_schedule_overrides(self, overrides: Mapping[str, Any]) -> None:
        value = _OVERRIDES_ADAPTER.dump_python(
            _OVERRIDES_ADAPTER.validate_python(dict(overrides)), mode="json"
        )
        self.upsert(key=SETTING_SCHEDULE_OVERRIDES, value=value)

    # Capacity

    def get_class_capacity(self) -> ClassCapacity:
        return self._parse(SETTING_CLASS_CAPACITY, ClassCapacity, DEFAULT_CLASS_CAPACITY)

    def set_class_capacity(self, capacity: ClassCapacity) -> None:
        self.upsert(key=SETTING_CLASS_CAPACITY, value=capacity.model_dump(mode="json"))

    def get_capacity_messages(self) -> CapacityMessageSettings:
        return self._parse(
            SETTING_CAPACITY_MESSAGES, CapacityMessageSettings, DEFAULT_CAPACITY_MESSAGES
        )

    def set_capacity_messages(self, messages: CapacityMessageSettings) -> None:
        self.upsert(key=SETTING_CAPACITY_MESSAGES, value=messages.model_dump(mode="json"))

    # Client communication

    def get_automation_settings(self) -> AutomationSettings:
        return self._parse(SETTING_AUTOMATION, AutomationSettings, DEFAULT_AUTOMATION_SETTINGS)

    def set_automation_settings(self, automation: AutomationSettings) -> None:
        self.upsert(key=SETTING_AUTOMATION, value=automation.model_dump(mode="json"))

    def get_bank_details(self) -> Optional[BankDetails]:
        raw = self.get_raw(SETTING_BANK_DETAILS)
        if not raw:
            return None
        try:
            return BankDetails.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Stored bank details are invalid: %s", exc)
            return None

    def set_bank_details(self, details: BankDetails) -> None:
        self.upsert(key=SETTING_BANK_DETAILS, value=details.model_dump(mode="json"))


__all__ = ["StudioSettingsRepository"]
