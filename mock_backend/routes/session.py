"""Guest session API routes for mock backend"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from ..database import SessionDatabase, get_session_db
from ..database.sessions import GUEST
from ..security.auth import bearer_token, resolve_owner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["Session"])


@router.post("/guest-session")
async def create_guest_session(sessions: SessionDatabase = Depends(get_session_db)):
    """Start an anonymous shopping session"""
    token, session_id = sessions.create_guest_session()
    logger.info(f"Guest session {session_id[:8]} created")
    return {"success": True, "token": token, "sessionId": session_id}


@router.get("/guest-session/validate")
async def validate_guest_session(
    authorization: Optional[str] = Header(None),
    sessions: SessionDatabase = Depends(get_session_db),
):
    """Report whether the presented guest token is still usable"""
    token = bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")

    owner = resolve_owner(sessions, token)
    return {"success": True, "valid": owner is not None and owner.kind == GUEST}
