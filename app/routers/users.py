# User and session routes

import logging
from fastapi import APIRouter, Header, Depends
import accounts
import utils
import schemas

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/register", response_model=schemas.UserCreateResponse, status_code=201)
async def register(data: schemas.UserRegister, ctx=Depends(utils.get_context)):
    """Register a new user; the response carries the only copy of the API key"""
    user, api_key = accounts.register(ctx, data)
    return {
        "user_id": user.id,
        "api_key": api_key,
        "message": "User created successfully"
    }

@router.get("/me", response_model=schemas.User)
async def get_me(
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    return accounts.get_profile(ctx, user)

@router.put("/me", response_model=schemas.User)
async def update_me(
    data: schemas.UserUpdate,
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    """Update name and/or timezone"""
    return accounts.update_profile(ctx, user, data)

@router.delete("/me", response_model=schemas.MessageResponse)
async def delete_me(
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    """Delete the account with everything it owns"""
    accounts.delete_account(ctx, user)
    return {"message": "User deleted successfully"}

@router.post("/me/sessions", response_model=schemas.SessionResponse, status_code=201)
async def create_session(
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    """Issue an additional API key for the calling user"""
    return {"api_key": ctx.sessions.create(user.id), "message": "Session created successfully"}

@router.delete("/me/sessions/current", response_model=schemas.MessageResponse)
async def delete_current_session(
    api_key: str = Header(..., alias="X-API-Key"),
    user: schemas.User = Depends(utils.get_current_user),
    ctx=Depends(utils.get_context),
):
    """Revoke the API key used for this request"""
    ctx.sessions.destroy(api_key)
    logger.info(f"User {user.id} logged out")
    return {"message": "Session revoked successfully"}
