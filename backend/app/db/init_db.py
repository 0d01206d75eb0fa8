"""
数据库初始化

创建所有数据库表。应用启动时由 lifespan 调用，也可以作为脚本单独执行。
"""

import logging

from sqlalchemy.engine import Engine

from app.db.base_class import Base
from app.db.database import engine as default_engine

# 导入所有模型，确保它们被正确注册
from app.models.user import User  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(engine: Engine = default_engine) -> None:
    """初始化数据库，创建所有表"""
    logger.info("Using database URL: %s", engine.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=engine)
    logger.info("数据库表创建成功")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
