import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.config.dependency_injection import get_current_user_id
from app.core.exceptions import AppError, BadRequestError, PersistenceError
from app.core.security import create_access_token, verify_password
from app.crud.crud_user import user as crud_user
from app.db.database import get_db
from app.models.user import User
from app.schemas.response import MessageResponse
from app.schemas.user import (
    AuthResponse,
    PasswordChange,
    ProfileResponse,
    ProfileUpdate,
    UserLogin,
    UserPublic,
    UserRegister,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MIN_PASSWORD_LENGTH = 6


def _issue_token(user: User) -> str:
    return create_access_token({"id": user.id, "email": user.email})


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_user(user_in: UserRegister, db: Session = Depends(get_db)):
    """
    注册新用户，返回访问令牌。新用户的学习进度为空。
    """
    if user_in.password != user_in.confirm_password:
        raise BadRequestError("Passwords do not match")
    if len(user_in.password) < MIN_PASSWORD_LENGTH:
        raise BadRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not user_in.terms_accepted:
        raise BadRequestError("You must accept the terms and conditions")

    try:
        if crud_user.get_by_email(db, email=user_in.email) is not None:
            raise BadRequestError("User with this email already exists")
        user = crud_user.create(db, obj_in=user_in)
    except AppError:
        raise
    except Exception as e:
        logger.exception("Registration error")
        raise PersistenceError("Server error", error=str(e))

    return AuthResponse(
        message="User registered successfully",
        token=_issue_token(user),
        user=UserPublic.model_validate(user),
    )


@router.post("/login", response_model=AuthResponse)
def login_user(credentials: UserLogin, db: Session = Depends(get_db)):
    if not credentials.email or not credentials.password:
        raise BadRequestError("Email and password are required")

    try:
        user = crud_user.authenticate(db, email=credentials.email, password=credentials.password)
    except Exception as e:
        logger.exception("Login error")
        raise PersistenceError("Server error", error=str(e))

    if user is None:
        raise BadRequestError("Invalid credentials")
    if not user.is_active:
        raise BadRequestError("Account is deactivated")

    return AuthResponse(
        message="Login successful",
        token=_issue_token(user),
        user=UserPublic.model_validate(user),
    )


@router.get("/profile", response_model=UserPublic)
def get_user_profile(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return UserPublic.model_validate(crud_user.find(db, user_id))


@router.put("/profile", response_model=ProfileResponse)
def update_user_profile(
    profile_in: ProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    更新个人资料。姓名和手机号为空时保持不变，简介和头像允许清空。
    """
    update_data = profile_in.model_dump(exclude_unset=True)
    for field in ("full_name", "phone_number"):
        if not update_data.get(field):
            update_data.pop(field, None)
    update_data = {field: value for field, value in update_data.items() if value is not None}

    try:
        user = crud_user.update(db, db_obj=crud_user.find(db, user_id), obj_in=update_data)
    except AppError:
        raise
    except Exception as e:
        logger.exception("Update profile error")
        raise PersistenceError("Server error", error=str(e))

    return ProfileResponse(message="Profile updated successfully", user=UserPublic.model_validate(user))


@router.put("/change-password", response_model=MessageResponse, response_model_exclude_none=True)
def change_password(
    password_in: PasswordChange,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    if not password_in.current_password or not password_in.new_password:
        raise BadRequestError("Current password and new password are required")
    if len(password_in.new_password) < MIN_PASSWORD_LENGTH:
        raise BadRequestError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters long")

    user = crud_user.find(db, user_id)
    if not verify_password(password_in.current_password, user.hashed_password):
        raise BadRequestError("Current password is incorrect")

    try:
        crud_user.set_password(db, db_obj=user, password=password_in.new_password)
    except AppError:
        raise
    except Exception as e:
        logger.exception("Change password error")
        raise PersistenceError("Server error", error=str(e))

    return MessageResponse(message="Password changed successfully")
