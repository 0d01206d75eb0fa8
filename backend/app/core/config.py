from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

from pydantic import PositiveInt

class Settings(BaseSettings):
    """
    应用程序配置设置类，从环境变量或.env文件加载所有配置项。
    使用Pydantic进行数据验证和类型检查。

    包含服务器配置、JWT密钥、数据库连接、时区和进度合并参数等配置项。
    在应用启动时会自动验证必需的配置项是否存在。
    """
    # Server
    BACKEND_PORT: int = 8000

    # 运行环境：production 环境下 500 响应不暴露内部错误信息
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Auth (JWT)
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7

    # Model configuration tells Pydantic where to find the .env file.
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=True
    )

    PROJECT_NAME: str = "Tutorial Progress Backend"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api"

    # TODO: 生产环境需要收紧为前端站点和管理后台的域名
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    DATABASE_URL: str = "sqlite:///./database.db"

    # 学习连续天数按该时区的自然日计算
    TIMEZONE: str = "Asia/Shanghai"

    # 乐观锁冲突时整个读-合并-写流程的最大尝试次数
    PROGRESS_SAVE_MAX_ATTEMPTS: PositiveInt = 3

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

# Create a single, globally accessible instance of the settings.
# This will raise a validation error on startup if required settings are missing.
settings = Settings()
