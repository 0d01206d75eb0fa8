from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.exceptions import AuthenticationError
from app.core.security import decode_access_token
from app.db.database import get_db
from app.services.progress_service import ProgressService

# auto_error=False：缺少令牌时由 get_current_user_id 返回统一的 401 响应
security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    认证依赖：从 Authorization: Bearer <token> 中解析出用户ID。

    只校验令牌本身，用户是否存在由后续的业务逻辑判断。
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No token, authorization denied")
    return decode_access_token(credentials.credentials)


def get_progress_service(db: Session = Depends(get_db)) -> ProgressService:
    """
    获取绑定到当前请求数据库会话的 ProgressService 实例
    """
    return ProgressService(db)
