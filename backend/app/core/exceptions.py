from typing import Optional

from fastapi import status


class AppError(Exception):
    """应用异常基类

    由 main.py 中注册的异常处理器统一渲染为 {"message": ...} 响应。

    Attributes:
        message: 面向客户端的提示信息
        status_code: HTTP 状态码
        error: 内部错误详情，生产环境下不返回给客户端
    """
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(AppError):
    """目标用户记录不存在"""
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    """乐观锁重试次数用尽，记录仍被并发修改"""
    status_code = status.HTTP_409_CONFLICT


class PersistenceError(AppError):
    """数据库读写失败或其他未预期的错误"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
