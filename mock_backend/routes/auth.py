"""Login route for mock backend. Any email signs in; there are no passwords."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..database import SessionDatabase, get_session_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


class LoginRequest(BaseModel):
    """Login request"""
    email: str = Field(min_length=3, pattern=r"^[^\s@]+@[^\s@]+$")
    password: Optional[str] = None


@router.post("/login")
async def login(
    request: LoginRequest,
    sessions: SessionDatabase = Depends(get_session_db),
):
    """Issue a user token"""
    token, user_id = sessions.login(request.email)
    logger.info(f"User {user_id} signed in")
    return {"success": True, "token": token, "userId": user_id}
