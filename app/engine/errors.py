"""Error taxonomy for stage edit transactions.

Every error is scoped to a single edit; none is fatal to the process.

* ``StageValidationError`` — bad stage content, nothing was written.
* ``UnknownStageTypeError`` — edited stage has no slot in the cycle,
  nothing was written.  An integration bug rather than a user retry case.
* ``PersistenceError`` — the commit failed or conflicted, nothing was written.
* ``DeploymentError`` — the commit already succeeded, the device did not
  acknowledge the new configuration.  Callers should retry the deploy.

``CycleDocumentError`` sits outside the edit taxonomy: a stored cycle row
that no longer decodes.
"""

from __future__ import annotations


class StageEditError(Exception):
	"""Base class for failures of a stage edit transaction."""


class StageValidationError(StageEditError):
	def __init__(self, field: str, reason: str) -> None:
		super().__init__(f"{field}: {reason}")
		self.field = field
		self.reason = reason


class UnknownStageTypeError(StageEditError):
	def __init__(self, stage_type: str) -> None:
		super().__init__(f"cycle has no stage of type {stage_type!r}")
		self.stage_type = stage_type


class PersistenceError(StageEditError):
	def __init__(self, reason: str, *, conflict: bool = False, retryable: bool = True) -> None:
		super().__init__(reason)
		self.reason = reason
		self.conflict = conflict
		self.retryable = retryable


class DeploymentError(StageEditError):
	def __init__(self, device_id: str, reason: str, *, retryable: bool = True) -> None:
		super().__init__(f"deployment to {device_id} failed: {reason}")
		self.device_id = device_id
		self.reason = reason
		self.retryable = retryable


class CycleNotFoundError(LookupError):
	def __init__(self, cycle_id: object) -> None:
		super().__init__(f"Grow cycle {cycle_id} not found")
		self.cycle_id = cycle_id


class CycleDocumentError(Exception):
	"""A stored cycle row whose JSONB documents cannot be decoded.

	Routes report it as a 500; it is not a ``ValueError``.
	"""

	def __init__(self, cycle_id: object, reason: str) -> None:
		super().__init__(f"grow cycle {cycle_id} has an unreadable document: {reason}")
		self.cycle_id = cycle_id
		self.reason = reason
