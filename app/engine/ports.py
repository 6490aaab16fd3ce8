"""Boundaries the stage editor depends on.

``CycleStore`` persists the cycle aggregate; ``DeploymentGateway`` pushes a
stage's operative parameters to the physical controller.  Concrete adapters
live in ``app.services``.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from typing import Protocol

from app.engine.stages import GrowCycle, Stage


class CycleStore(Protocol):
	async def load_cycle(self, cycle_id: uuid.UUID) -> GrowCycle:
		"""Return the cycle or raise ``CycleNotFoundError``."""
		...

	async def commit_stages(
		self,
		cycle_id: uuid.UUID,
		stages: Sequence[Stage],
		expected_version: int | None = None,
	) -> GrowCycle:
		"""Replace the whole stage list in one write.

		Must not touch status, start time or total days.  Raises
		``PersistenceError`` (``conflict=True`` when ``expected_version`` no
		longer matches).
		"""
		...


class DeploymentGateway(Protocol):
	async def deploy(
		self,
		device_id: str,
		stage: Stage,
		*,
		cycle_id: str,
		pin_bindings: Mapping[str, int],
		enabled: bool = True,
	) -> None:
		"""Apply ``stage`` to the device.  Idempotent; raises ``DeploymentError``.

		With ``enabled=False`` the entries are written disabled (paused cycle).
		"""
		...
