"""Bearer tokens for dashboard users.

Access tokens carry the user id (``sub``) and, for organization members,
the organization id (``org``) the token was issued for.  Refresh tokens
carry only the user id.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from jose import JWTError, jwt

from app.config import get_settings

TokenType = Literal["access", "refresh"]


@dataclass(slots=True)
class AuthError(Exception):
	code: str
	detail: str
	status_code: int = 401


@dataclass(frozen=True, slots=True)
class TokenClaims:
	user_id: uuid.UUID
	token_type: str
	expires_at: datetime
	organization_id: str | None = None


def _encode(claims: dict[str, Any]) -> str:
	settings = get_settings()
	return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _issue(
	user_id: uuid.UUID | str,
	token_type: TokenType,
	ttl_minutes: int,
	organization_id: str | None = None,
) -> str:
	now = datetime.now(UTC)
	claims: dict[str, Any] = {
		"sub": str(user_id),
		"typ": token_type,
		"iat": int(now.timestamp()),
		"exp": int((now + timedelta(minutes=ttl_minutes)).timestamp()),
	}
	if organization_id is not None:
		claims["org"] = organization_id
	return _encode(claims)


def create_access_token(
	user_id: uuid.UUID | str,
	expires_minutes: int | None = None,
	organization_id: str | None = None,
) -> str:
	ttl = expires_minutes or get_settings().jwt_access_token_expire_minutes
	return _issue(user_id, "access", ttl, organization_id)


def create_refresh_token(user_id: uuid.UUID | str, expires_minutes: int | None = None) -> str:
	ttl = expires_minutes or get_settings().jwt_refresh_token_expire_minutes
	return _issue(user_id, "refresh", ttl)


def decode_token(token: str, expected_type: TokenType | None = None) -> TokenClaims:
	"""Verify signature, type and expiry, and return the typed claims."""
	settings = get_settings()
	try:
		payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
	except JWTError as exc:
		raise AuthError(code="token_invalid", detail="Invalid authentication token") from exc

	try:
		user_id = uuid.UUID(str(payload["sub"]))
	except (KeyError, ValueError) as exc:
		raise AuthError(code="token_invalid", detail="Token subject is invalid") from exc

	token_type = payload.get("typ")
	if expected_type is not None and token_type != expected_type:
		raise AuthError(code="token_type_invalid", detail=f"Expected {expected_type} token")

	exp_raw = payload.get("exp")
	if not isinstance(exp_raw, int):
		raise AuthError(code="token_invalid", detail="Token expiration is missing")
	expires_at = datetime.fromtimestamp(exp_raw, UTC)
	if datetime.now(UTC) >= expires_at:
		raise AuthError(code="token_expired", detail="Authentication token has expired")

	organization_id = payload.get("org")
	return TokenClaims(
		user_id=user_id,
		token_type=str(token_type),
		expires_at=expires_at,
		organization_id=organization_id if isinstance(organization_id, str) else None,
	)
