"""GrowCycle and GrowProgram ORM models.

A cycle row is a single document: the ordered stage list, pin bindings,
stage history and daily log are JSONB columns, so replacing the stage list is one UPDATE
of one row.  ``stages`` holds a frozen copy of the program's stages taken
when the cycle started; later edits to the program do not reach running
cycles.

``version`` is bumped on every stage commit and can serve as an
optimistic-concurrency token (see ``Settings.cycle_optimistic_locking``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Enum, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, VersionedMixin
from app.models.enums import CycleStatusEnum

# ═══════════════════════════════════════════════════════════════════════════
# Grow cycle
# ═══════════════════════════════════════════════════════════════════════════


class GrowCycleRecord(Base, UUIDPrimaryKeyMixin, TimestampMixin, VersionedMixin):
    """One grow run on one farm module (device), divided into stages."""

    __tablename__ = "grow_cycles"
    __table_args__ = (
        Index("ix_grow_cycles_module_status", "module_id", "status"),
    )

    module_id: Mapped[str] = mapped_column(String(128), nullable=False)
    organization_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    program_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    program_name: Mapped[str] = mapped_column(String(255), nullable=False)
    crop_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[CycleStatusEnum] = mapped_column(
        Enum(
            CycleStatusEnum,
            name="cycle_status",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
        default=CycleStatusEnum.active,
        server_default=CycleStatusEnum.active.value,
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    paused_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    stages: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False)
    pin_bindings: Mapped[dict[str, int]] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )
    stage_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )
    daily_log: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )
    harvest: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<GrowCycleRecord id={self.id} module={self.module_id!r} "
            f"status={self.status} version={self.version}>"
        )


# ═══════════════════════════════════════════════════════════════════════════
# Grow program (template library)
# ═══════════════════════════════════════════════════════════════════════════


class GrowProgramRecord(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A custom, organization-owned program template.

    Built-in presets are not stored; they live in ``app.services.presets``.
    """

    __tablename__ = "grow_programs"

    organization_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    crop_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False)
    stages: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False)
    image_emoji: Mapped[str | None] = mapped_column(String(16), nullable=True)

    def __repr__(self) -> str:
        return f"<GrowProgramRecord id={self.id} name={self.name!r}>"
