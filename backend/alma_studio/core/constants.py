# backend/alma_studio/core/constants.py
"""
Studio-wide constants and seed defaults.

Defaults here are returned by the settings repository whenever the
corresponding key has never been written.
"""

from typing import Any, Dict, List

BRAND_NAME = "Ceramic Alma"

BOOKING_CODE_PREFIX = "C-ALMA"
BOOKING_CODE_TIMESTAMP_CHARS = 4
BOOKING_CODE_RANDOM_CHARS = 4

PACKAGE_VALIDITY_DAYS = 30

# Sunday first, matching SchedulingRule.day_of_week (0 = Sunday)
DAY_NAMES: List[str] = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]

DEFAULT_AVAILABILITY: Dict[str, List[Dict[str, Any]]] = {
    "Monday": [
        {"time": "10:00 AM", "instructor_id": 1},
        {"time": "03:00 PM", "instructor_id": 2},
    ],
    "Tuesday": [
        {"time": "10:00 AM", "instructor_id": 1},
        {"time": "03:00 PM", "instructor_id": 2},
    ],
    "Wednesday": [
        {"time": "10:00 AM", "instructor_id": 1},
        {"time": "03:00 PM", "instructor_id": 2},
    ],
    "Thursday": [
        {"time": "10:00 AM", "instructor_id": 1},
        {"time": "03:00 PM", "instructor_id": 2},
    ],
    "Friday": [
        {"time": "10:00 AM", "instructor_id": 1},
        {"time": "03:00 PM", "instructor_id": 2},
    ],
    "Saturday": [
        {"time": "10:00 AM", "instructor_id": 1},
        {"time": "02:00 PM", "instructor_id": 2},
    ],
    "Sunday": [],
}

DEFAULT_CLASS_CAPACITY: Dict[str, Any] = {"max": 8}

DEFAULT_CAPACITY_MESSAGES: Dict[str, Any] = {
    "thresholds": [
        {"level": "available", "threshold": 0, "message": "Espacios disponibles"},
        {"level": "few", "threshold": 50, "message": "Quedan pocos cupos"},
        {"level": "last", "threshold": 85, "message": "¡Último cupo!"},
    ]
}

DEFAULT_AUTOMATION_SETTINGS: Dict[str, Any] = {
    "pre_booking_confirmation": {"enabled": True},
    "payment_receipt": {"enabled": True},
    "class_reminder": {"enabled": True, "value": 24, "unit": "hours"},
    "incentive_renewal": {"enabled": False, "value": 1, "unit": "classes"},
}

# Settings keys in the studio_settings key/value table
SETTING_AVAILABILITY = "availability"
SETTING_SCHEDULE_OVERRIDES = "scheduleOverrides"
SETTING_CLASS_CAPACITY = "classCapacity"
SETTING_CAPACITY_MESSAGES = "capacityMessages"
SETTING_AUTOMATION = "automationSettings"
SETTING_BANK_DETAILS = "bankDetails"
