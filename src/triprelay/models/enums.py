"""All string enums for triprelay."""

from __future__ import annotations

from enum import StrEnum, unique


@unique
class UserRole(StrEnum):
    SUPERADMIN = "superadmin"
    HOSPITAL_ADMIN = "hospital_admin"
    HOSPITAL_STAFF = "hospital_staff"
    HOSPITAL_DOCTOR = "hospital_doctor"
    HOSPITAL_PARAMEDIC = "hospital_paramedic"
    FLEET_ADMIN = "fleet_admin"
    FLEET_STAFF = "fleet_staff"
    FLEET_DOCTOR = "fleet_doctor"
    FLEET_PARAMEDIC = "fleet_paramedic"


@unique
class MessageType(StrEnum):
    TEXT = "text"
    SYSTEM = "system"
    ALERT = "alert"
    CALL = "call"
    VIDEO = "video"
