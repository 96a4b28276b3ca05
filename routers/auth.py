# routers/auth.py
from fastapi import APIRouter, Request
from schemas import RegisterRequest, LoginRequest, AuthResponse

router = APIRouter(prefix="/api", tags=["Authentication"])

@router.post("/register", response_model=AuthResponse)
async def register(payload: RegisterRequest, request: Request):
    """Register a new user and return a token bound to the new identity"""
    registry = request.app.state.user_registry
    token, user = await registry.register(
        payload.name, payload.email, payload.password, payload.role
    )
    return {"token": token, "user": user}

@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, request: Request):
    """Login user and return a token"""
    registry = request.app.state.user_registry
    token, user = await registry.login(payload.email, payload.password)
    return {"token": token, "user": user}
