"""Request authentication and role checks for cycle and program routes."""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import AuthError, decode_token
from app.auth.models import User
from app.database import get_db
from app.models.enums import UserRoleEnum

bearer_scheme = HTTPBearer(auto_error=False)

# Members may edit stages and run cycles; viewers only read.
READ_ROLES = (UserRoleEnum.owner, UserRoleEnum.admin, UserRoleEnum.member, UserRoleEnum.viewer)
EDIT_ROLES = (UserRoleEnum.owner, UserRoleEnum.admin, UserRoleEnum.member)


def _raise_auth(exc: AuthError) -> HTTPException:
	return HTTPException(
		status_code=exc.status_code,
		detail={"error": exc.code, "message": exc.detail},
	)


async def resolve_user_from_token(db: AsyncSession, token: str) -> User:
	"""Load the active user an access token was issued to.

	A token issued for one organization stops working once the user has
	moved to another one.
	"""
	try:
		claims = decode_token(token, expected_type="access")
	except AuthError as exc:
		raise _raise_auth(exc) from exc

	row = await db.execute(select(User).where(User.id == claims.user_id))
	user = row.scalar_one_or_none()
	if user is None or not user.is_active:
		raise _raise_auth(AuthError(code="user_invalid", detail="User is not active"))
	if claims.organization_id is not None and claims.organization_id != user.organization_id:
		raise _raise_auth(
			AuthError(code="organization_mismatch", detail="Token was issued for another organization")
		)
	return user


async def get_current_user(
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> User:
	credentials: HTTPAuthorizationCredentials | None = await bearer_scheme(request)
	if credentials is None or credentials.scheme.lower() != "bearer":
		raise _raise_auth(AuthError(code="auth_required", detail="Bearer token is required"))
	return await resolve_user_from_token(db, credentials.credentials)


def require_role(*allowed: UserRoleEnum) -> Callable[[User], User]:
	allowed_set = set(allowed)

	async def dependency(current_user: User = Depends(get_current_user)) -> User:
		if current_user.role not in allowed_set:
			raise HTTPException(
				status_code=status.HTTP_403_FORBIDDEN,
				detail={"error": "forbidden", "message": "Insufficient role"},
			)
		return current_user

	return dependency
