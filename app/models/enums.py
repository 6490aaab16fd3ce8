"""PostgreSQL-backed enum types for all ORM models.

Each StrEnum maps 1:1 to a PostgreSQL CREATE TYPE ... AS ENUM, except the
stage and actuator enums, which live inside the JSONB stage documents and
are only validated in Python.
"""

from enum import StrEnum

# ── Grow cycle enums ────────────────────────────────────────────────────────


class StageTypeEnum(StrEnum):
    """The seven stage kinds of a grow cycle, in canonical timeline order."""

    seeding = "seeding"
    germination = "germination"
    blackout = "blackout"
    light_exposure = "light_exposure"
    growth = "growth"
    pre_harvest = "pre_harvest"
    harvest = "harvest"


class ScheduleTargetEnum(StrEnum):
    """Actuator subtype a stage schedule drives (bound to a GPIO pin)."""

    pump = "pump"
    mist = "mist"
    fan = "fan"
    valve = "valve"
    light = "light"


class CycleStatusEnum(StrEnum):
    """Lifecycle status of a grow cycle."""

    active = "active"
    paused = "paused"
    completed = "completed"
    aborted = "aborted"


class DeploymentStatusEnum(StrEnum):
    """Outcome of the device deployment leg of a stage edit."""

    deployed = "deployed"
    skipped = "skipped"
    failed = "failed"


class HarvestQualityEnum(StrEnum):
    excellent = "excellent"
    good = "good"
    fair = "fair"
    poor = "poor"


class YieldUnitEnum(StrEnum):
    oz = "oz"
    g = "g"
    lbs = "lbs"
    kg = "kg"


# ── Auth enums ──────────────────────────────────────────────────────────────


class UserRoleEnum(StrEnum):
    """Organization membership roles for RBAC."""

    owner = "owner"
    admin = "admin"
    member = "member"
    viewer = "viewer"
