# core_portal/api/endpoints/auth.py

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core_portal.api.deps import get_db_session, get_current_user
from core_portal.core.config import settings
from core_portal.core.exceptions import ServiceError, http_error
from core_portal.core.rate_limiter import limiter
from core_portal.models.user import User
from core_portal.schemas.auth import LoginRequest, StudentSignupRequest
from core_portal.schemas.student import StudentRead
from core_portal.schemas.user import UserRead
from core_portal.services.auth_service import authenticate_user, create_login_response
from core_portal.services.registration_service import get_student_by_user
from core_portal.services.student_service import create_student_account

router = APIRouter(prefix="/api/auth", tags=["Auth"])


# -------------------------------------------------------------------
# LOGIN (all roles)
# -------------------------------------------------------------------
@router.post("/login")
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    payload: LoginRequest,
    session: AsyncSession = Depends(get_db_session),
):
    user = await authenticate_user(session, payload.email, payload.password)

    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")

    return {"success": True, "message": "Login successful", "data": create_login_response(user)}


# -------------------------------------------------------------------
# STUDENT SIGN-UP
# -------------------------------------------------------------------
@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    payload: StudentSignupRequest,
    session: AsyncSession = Depends(get_db_session),
):
    try:
        student = await create_student_account(
            session,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            mobile_number=payload.mobile_number,
        )
    except ServiceError as e:
        raise http_error(e)

    user = await session.get(User, student.user_id)
    return {
        "success": True,
        "message": "Account created successfully",
        "data": create_login_response(user),
    }


# -------------------------------------------------------------------
# CURRENT USER
# -------------------------------------------------------------------
@router.get("/me")
async def me(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    data = {"user": UserRead.model_validate(current_user)}

    student = await get_student_by_user(session, current_user.id)
    if student:
        data["student"] = StudentRead.model_validate(student)

    return {"success": True, "data": data}
