from pydantic import BaseModel, EmailStr

from app.models.user import UserRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class SignupRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: str | None = None
    name: str | None = None  # frontend sends "name"; prefer over full_name if both absent
    role: UserRole = UserRole.PATIENT
    specialization: str | None = None  # providers only


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
