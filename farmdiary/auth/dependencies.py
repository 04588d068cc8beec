"""Session dependencies: resolve the acting owner once per request."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException, Request, status

OWNER_HEADER = "x-owner-id"


@dataclass(frozen=True, slots=True)
class SessionContext:
	"""Explicit identity handed to owner-scoped queries and mutations."""

	owner_id: str


def extract_owner_id(request: Request) -> str | None:
	raw = request.headers.get(OWNER_HEADER, "").strip()
	return raw or None


async def get_session_context(request: Request) -> SessionContext:
	owner_id = extract_owner_id(request)
	if owner_id is None:
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail={"error": "missing_owner", "message": f"{OWNER_HEADER} header is required"},
		)
	return SessionContext(owner_id=owner_id)
