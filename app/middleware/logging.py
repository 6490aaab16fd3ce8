"""structlog setup and per-request logging for the GrowCycle API.

Every request gets a request ID (taken from ``x-request-id`` or generated)
bound into the structlog context, so engine and service log lines emitted
while handling it carry the same ID.  Cycle and module IDs found in the path
are bound too, which lets a stage edit, its commit and its device deploy be
followed across log lines.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import LogFormat, get_settings

_configured = False

_CYCLE_PATH = re.compile(r"/cycles/(?P<cycle_id>[0-9a-fA-F-]{36})")
_MODULE_PATH = re.compile(r"/modules/(?P<module_id>[^/]+)")

# Polled by load balancers; logged at debug only.
_QUIET_PATHS = frozenset({"/health"})


def _add_service(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
	event_dict.setdefault("service", "growcycle")
	return event_dict


def configure_structured_logging() -> None:
	global _configured
	if _configured:
		return

	settings = get_settings()
	log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

	processors: list[Any] = [
		structlog.contextvars.merge_contextvars,
		structlog.processors.add_log_level,
		_add_service,
		structlog.processors.TimeStamper(fmt="iso", utc=True),
		structlog.processors.format_exc_info,
	]
	if settings.log_format == LogFormat.json:
		processors.append(structlog.processors.JSONRenderer(sort_keys=True))
		logging.basicConfig(level=log_level, format="%(message)s")
	else:
		processors.append(structlog.dev.ConsoleRenderer())
		logging.basicConfig(level=log_level)

	structlog.configure(
		processors=processors,
		wrapper_class=structlog.make_filtering_bound_logger(log_level),
		logger_factory=structlog.PrintLoggerFactory(),
		cache_logger_on_first_use=True,
	)
	_configured = True


def path_context(path: str) -> dict[str, str]:
	"""Cycle / module identifiers embedded in a request path."""
	context: dict[str, str] = {}
	if match := _CYCLE_PATH.search(path):
		context["cycle_id"] = match.group("cycle_id").lower()
	if match := _MODULE_PATH.search(path):
		context["module_id"] = match.group("module_id")
	return context


class RequestLoggingMiddleware(BaseHTTPMiddleware):
	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
		request.state.request_id = request_id
		path = request.url.path

		structlog.contextvars.clear_contextvars()
		structlog.contextvars.bind_contextvars(request_id=request_id, **path_context(path))

		logger = structlog.get_logger("growcycle.request")
		start = time.perf_counter()

		try:
			response = await call_next(request)
		except Exception:
			logger.exception(
				"http_request_failed",
				method=request.method,
				path=path,
				duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
			)
			raise

		response.headers["x-request-id"] = request_id
		log = logger.debug if path in _QUIET_PATHS else logger.info
		log(
			"http_request",
			method=request.method,
			path=path,
			status_code=response.status_code,
			duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
		)
		return response
