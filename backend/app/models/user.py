import uuid
from datetime import datetime, UTC

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text

from app.db.base_class import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class User(Base):
    """用户账户模型

    存储账户信息以及该账户私有的学习进度。进度以 JSON 文档的形式存放在
    三个列中，整行通过 version_id 做乐观锁：每次 UPDATE 都以读取时的版本号
    为条件，并发写入会触发 StaleDataError 而不是静默覆盖。

    Attributes:
        id: 系统生成的唯一ID (UUID)
        full_name: 姓名
        email: 登录邮箱，唯一
        phone_number: 手机号，可为空字符串
        hashed_password: bcrypt 哈希后的密码
        bio: 个人简介
        profile_picture: 头像地址
        terms_accepted: 是否接受服务条款
        is_active: 账户是否可用
        quiz_results: 测验结果列表，最新的在最前，最多100条
        quiz_bookmarks: 题目收藏列表，最新的在最前，最多200条，questionId 唯一
        resume_progress: quizId -> 断点续答状态
        version_id: 乐观锁版本号
        created_at: 创建时间
        updated_at: 最后修改时间
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone_number = Column(String, nullable=False, default="")
    hashed_password = Column(String, nullable=False)
    bio = Column(Text, nullable=False, default="")
    profile_picture = Column(String, nullable=False, default="")
    terms_accepted = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    quiz_results = Column(JSON, nullable=False, default=list)
    quiz_bookmarks = Column(JSON, nullable=False, default=list)
    resume_progress = Column(JSON, nullable=False, default=dict)

    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": version_id}
