"""ORM model registry — importing this module registers every table on Base.metadata.

Alembic ``env.py`` imports ``Base`` from here (not from ``base.py``) so that
autogenerate sees all tables.  Application code can also do::

    from app.models import GrowCycleRecord, GrowProgramRecord, ...
"""

# ── Base & Mixins ───────────────────────────────────────────────────────────
from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, VersionedMixin

# ── Grow cycles & programs ──────────────────────────────────────────────────
from app.models.cycles import GrowCycleRecord, GrowProgramRecord

# ── Enums ───────────────────────────────────────────────────────────────────
from app.models.enums import (
    CycleStatusEnum,
    DeploymentStatusEnum,
    ScheduleTargetEnum,
    StageTypeEnum,
    UserRoleEnum,
)

# ── Auth models ─────────────────────────────────────────────────────────────
# Imported as a module (not ``from ... import User``) so that entering via
# ``app.auth.models`` -> ``app.models.base`` does not hit a circular import;
# ``User`` is resolved lazily below.
from app.auth import models as _auth_models  # isort: skip  # noqa: E402,F401


def __getattr__(name: str):  # PEP 562
    if name == "User":
        from app.auth.models import User

        return User
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    # Base & mixins
    "Base",
    # Enums
    "CycleStatusEnum",
    "DeploymentStatusEnum",
    # Grow cycles
    "GrowCycleRecord",
    "GrowProgramRecord",
    "ScheduleTargetEnum",
    "StageTypeEnum",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "VersionedMixin",
    # Auth
    "User",
    "UserRoleEnum",
]
