# schemas.py
# Defines request/response Pydantic models for validation
from pydantic import BaseModel, ConfigDict

from model import Role

# -------------------- USER --------------------
class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    role: Role = Role.CITIZEN

class LoginRequest(BaseModel):
    email: str
    password: str

class UserOut(BaseModel):
    """Public projection of a user, never carries the password digest"""
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: int
    name: str
    email: str
    role: Role

class AuthResponse(BaseModel):
    token: str
    user: UserOut

# -------------------- IDENTITY --------------------
class Identity(BaseModel):
    """Decoded token subject attached to authenticated calls"""
    model_config = ConfigDict(use_enum_values=True)

    id: int
    email: str
    role: Role

# -------------------- REPORT --------------------
class ReportSubmitted(BaseModel):
    reportId: int

# -------------------- RESPONSES --------------------
class ErrorResponse(BaseModel):
    error: str
    category: str
