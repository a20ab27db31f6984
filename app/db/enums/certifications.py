"""Certification-related enums."""

from enum import Enum


class CertificationStatus(str, Enum):
    """Derived certification state (the persisted is_expired flag is a cache of this)."""

    ACTIVE = "active"
    EXPIRING = "expiring"
    EXPIRED = "expired"


class ReminderType(str, Enum):
    """Reminder audit classification, by the expiry window crossed."""

    SIX_MONTHS = "SIX_MONTHS"
    THREE_MONTHS = "THREE_MONTHS"
    ONE_MONTH = "ONE_MONTH"
    EXPIRED = "EXPIRED"
    CUSTOM = "CUSTOM"  # Manually triggered by an admin


class CourseCategory(str, Enum):
    """Course categories offered by training providers."""

    GAS_SAFE = "GAS_SAFE"
    COMMERCIAL_GAS = "COMMERCIAL_GAS"
    COMMERCIAL_CATERING = "COMMERCIAL_CATERING"
    ELECTRICAL = "ELECTRICAL"
    FGAS_AIR_CONDITIONING = "FGAS_AIR_CONDITIONING"
    HEAT_PUMP = "HEAT_PUMP"
    LPG = "LPG"
    OFTEC = "OFTEC"
    WATER = "WATER"
