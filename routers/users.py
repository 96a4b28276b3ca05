# routers/users.py
from fastapi import APIRouter, Depends, Request
from errors import NotFound
from schemas import Identity, UserOut
from util.security import get_current_user

router = APIRouter(prefix="/api/users", tags=["Users"])

@router.get("/me", response_model=UserOut)
async def read_users_me(request: Request, current_user: Identity = Depends(get_current_user)):
    """Get current user information"""
    user = await request.app.state.user_registry.get_user(current_user.id)
    if user is None:
        raise NotFound("User not found")
    return user
