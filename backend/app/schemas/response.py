# backend/app/schemas/response.py
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional


class CamelModel(BaseModel):
    """驼峰命名基础模型

    Python 侧使用 snake_case 字段名，序列化/反序列化时使用前端约定的
    camelCase 别名（例如 quiz_id <-> quizId）。两种写法都可以用于构造。
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageResponse(BaseModel):
    """消息响应模型

    统一的简单响应/错误响应格式。

    Attributes:
        message: 面向客户端的提示信息
        error: 内部错误详情，仅在非生产环境下返回
    """
    message: str
    error: Optional[str] = None
