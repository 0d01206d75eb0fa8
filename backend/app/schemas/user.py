# backend/app/schemas/user.py
from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, EmailStr, Field

from app.schemas.response import CamelModel


class UserRegister(CamelModel):
    """注册请求模型"""
    full_name: str = Field(..., min_length=1, description="姓名")
    email: EmailStr = Field(..., description="登录邮箱")
    phone_number: Optional[str] = Field(None, description="手机号，可选")
    password: str = Field(..., description="密码，至少6位")
    confirm_password: str = Field(..., description="确认密码")
    terms_accepted: bool = Field(False, description="是否接受服务条款")


class UserLogin(CamelModel):
    """登录请求模型"""
    email: str
    password: str


class ProfileUpdate(CamelModel):
    """更新个人资料请求模型，只更新显式提供的字段"""
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)
    profile_picture: Optional[str] = None


class PasswordChange(CamelModel):
    """修改密码请求模型"""
    current_password: str
    new_password: str


class UserPublic(CamelModel):
    """用户信息响应模型，不包含密码哈希"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str
    email: str
    phone_number: str = ""
    bio: str = ""
    profile_picture: str = ""
    created_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    """注册/登录响应模型"""
    message: str
    token: str
    user: UserPublic


class ProfileResponse(CamelModel):
    """更新个人资料响应模型"""
    message: str
    user: UserPublic
