#!/usr/bin/env python3
"""
测试用户注册、登录、个人资料和修改密码相关接口
"""

import os
import sys
import uuid
from typing import Generator

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# 添加项目根目录到 Python 路径
backend_path = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, backend_path)
# 设置测试环境变量，确保 Pydantic Settings 可以初始化
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite://"

# 导入项目模块
from app.core.config import settings
from app.core.security import decode_access_token
from app.db.base_class import Base
from app.db.database import get_db
from app.main import app

AUTH = f"{settings.API_V1_STR}/auth"


@pytest.fixture(scope="function")
def client(tmp_path) -> Generator[TestClient, None, None]:
    """初始化使用临时数据库的 FastAPI 测试客户端"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'auth.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    engine.dispose()


def registration(**overrides) -> dict:
    payload = {
        "fullName": "Ada Lovelace",
        "email": f"ada_{uuid.uuid4().hex[:8]}@example.com",
        "phoneNumber": "",
        "password": "secret123",
        "confirmPassword": "secret123",
        "termsAccepted": True,
    }
    payload.update(overrides)
    return payload


class TestRegister:
    """注册接口测试类"""

    def test_register_new_user(self, client: TestClient):
        payload = registration(email="Ada@Example.com")
        response = client.post(f"{AUTH}/register", json=payload)
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["message"] == "User registered successfully"
        assert data["user"]["email"] == "ada@example.com"
        assert data["user"]["fullName"] == "Ada Lovelace"
        assert "password" not in data["user"]
        assert "hashedPassword" not in data["user"]
        assert decode_access_token(data["token"]) == data["user"]["id"]

    @pytest.mark.parametrize("overrides, message", [
        ({"confirmPassword": "different"}, "Passwords do not match"),
        ({"password": "abc", "confirmPassword": "abc"}, "Password must be at least 6 characters long"),
        ({"termsAccepted": False}, "You must accept the terms and conditions"),
    ])
    def test_register_rejected(self, client: TestClient, overrides, message):
        response = client.post(f"{AUTH}/register", json=registration(**overrides))
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"message": message}

    def test_register_duplicate_email(self, client: TestClient):
        payload = registration()
        assert client.post(f"{AUTH}/register", json=payload).status_code == status.HTTP_201_CREATED
        response = client.post(f"{AUTH}/register", json=payload)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"message": "User with this email already exists"}

    def test_register_invalid_email(self, client: TestClient):
        response = client.post(f"{AUTH}/register", json=registration(email="not-an-email"))
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestLoginAndProfile:
    """登录与个人资料接口测试类"""

    @pytest.fixture
    def account(self, client: TestClient) -> dict:
        payload = registration()
        response = client.post(f"{AUTH}/register", json=payload)
        return {"email": payload["email"], "password": payload["password"], "token": response.json()["token"]}

    def test_login(self, client: TestClient, account: dict):
        response = client.post(f"{AUTH}/login", json={"email": account["email"], "password": account["password"]})
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["message"] == "Login successful"
        assert response.json()["token"]

    def test_login_wrong_password(self, client: TestClient, account: dict):
        response = client.post(f"{AUTH}/login", json={"email": account["email"], "password": "wrong-password"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"message": "Invalid credentials"}

    def test_login_unknown_email(self, client: TestClient):
        response = client.post(f"{AUTH}/login", json={"email": "nobody@example.com", "password": "secret123"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"message": "Invalid credentials"}

    def test_profile(self, client: TestClient, account: dict):
        headers = {"Authorization": f"Bearer {account['token']}"}
        profile = client.get(f"{AUTH}/profile", headers=headers)
        assert profile.status_code == status.HTTP_200_OK
        assert profile.json()["email"] == account["email"]

        response = client.put(f"{AUTH}/profile", json={"bio": "Learning Python", "fullName": ""}, headers=headers)
        assert response.status_code == status.HTTP_200_OK
        user = response.json()["user"]
        assert user["bio"] == "Learning Python"
        assert user["fullName"] == "Ada Lovelace"

    def test_profile_requires_token(self, client: TestClient):
        response = client.get(f"{AUTH}/profile")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_change_password(self, client: TestClient, account: dict):
        headers = {"Authorization": f"Bearer {account['token']}"}
        wrong = client.put(f"{AUTH}/change-password", headers=headers,
                           json={"currentPassword": "nope-nope", "newPassword": "brand-new"})
        assert wrong.status_code == status.HTTP_400_BAD_REQUEST
        assert wrong.json() == {"message": "Current password is incorrect"}

        ok = client.put(f"{AUTH}/change-password", headers=headers,
                        json={"currentPassword": account["password"], "newPassword": "brand-new"})
        assert ok.status_code == status.HTTP_200_OK
        assert ok.json() == {"message": "Password changed successfully"}

        login = client.post(f"{AUTH}/login", json={"email": account["email"], "password": "brand-new"})
        assert login.status_code == status.HTTP_200_OK
