from fastapi import Depends, HTTPException, Request

from ehr.config import AUTH_USER_HEADER
from ehr.database import get_db
from ehr.services.data_access import deny
from ehr.services.identity import Caller, resolve_caller
from ehr.services.policy import role_allows


async def get_caller(request: Request) -> Caller:
    """Resolve the identity asserted by the auth gateway into a caller context."""
    user_id = (request.headers.get(AUTH_USER_HEADER) or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    db = await get_db()
    return await resolve_caller(db, user_id)


def require_role(table: str, operation: str):
    """Dependency that refuses callers whose role the rule for ``table`` excludes.

    FastAPI resolves dependencies before it validates the request body, so a
    denied caller gets 403 whatever they sent.
    """

    async def dependency(caller: Caller = Depends(get_caller)) -> Caller:
        if not role_allows(caller, table, operation):
            raise deny(caller, table, operation)
        return caller

    return dependency
