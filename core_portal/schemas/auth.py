from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from core_portal.schemas.user import UserRead


# -------------------------------------------------------------------
# LOGIN REQUEST
# -------------------------------------------------------------------
class LoginRequest(BaseModel):
    email: EmailStr
    password: str


# -------------------------------------------------------------------
# STUDENT SELF SIGN-UP
# -------------------------------------------------------------------
class StudentSignupRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    mobile_number: Optional[str] = None


# -------------------------------------------------------------------
# TOKEN + USER DETAILS (login response)
# -------------------------------------------------------------------
class TokenWithUser(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    user: UserRead
