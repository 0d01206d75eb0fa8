import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConflictError, NotFoundError, PersistenceError
from app.core.security import get_password_hash, verify_password
from app.crud.base import CRUDBase
from app.models.user import User
from app.schemas.user import ProfileUpdate, UserRegister
from app.schemas.user_progress import UserProgress

logger = logging.getLogger(__name__)


class CRUDUser(CRUDBase[User, UserRegister, ProfileUpdate]):
    def get_by_email(self, db: Session, *, email: str) -> Optional[User]:
        return self.get_by(db, email=email.strip().lower())

    def create(self, db: Session, *, obj_in: UserRegister) -> User:
        """
        创建用户，密码以哈希形式保存，进度集合初始为空
        """
        return super().create(db, obj_in={
            "full_name": obj_in.full_name.strip(),
            "email": obj_in.email.strip().lower(),
            "phone_number": (obj_in.phone_number or "").strip(),
            "hashed_password": get_password_hash(obj_in.password),
            "terms_accepted": obj_in.terms_accepted,
            "quiz_results": [],
            "quiz_bookmarks": [],
            "resume_progress": {},
        })

    def authenticate(self, db: Session, *, email: str, password: str) -> Optional[User]:
        user = self.get_by_email(db, email=email)
        if user is None or not verify_password(password, user.hashed_password):
            return None
        return user

    def set_password(self, db: Session, *, db_obj: User, password: str) -> User:
        return self.update(db, db_obj=db_obj, obj_in={"hashed_password": get_password_hash(password)})

    def find(self, db: Session, user_id: str) -> User:
        """
        获取用户记录，不存在时抛出 NotFoundError
        """
        try:
            user = self.get(db, user_id)
        except SQLAlchemyError as e:
            raise PersistenceError("Server error", error=str(e)) from e
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def read_progress(db_obj: User) -> UserProgress:
        """把 JSON 列还原为 UserProgress"""
        return UserProgress.model_validate({
            "quizResults": db_obj.quiz_results or [],
            "quizBookmarks": db_obj.quiz_bookmarks or [],
            "resumeProgress": db_obj.resume_progress or {},
        })

    @staticmethod
    def save_progress(db: Session, *, db_obj: User, progress: UserProgress) -> User:
        """
        把进度整体写回用户记录并提交。

        UPDATE 以读取时的 version_id 为条件；期间若有其他请求提交过该记录，
        会回滚并抛出 ConflictError，由调用方决定是否重试。

        Args:
            db: 数据库会话
            db_obj: 通过同一会话读取的用户记录
            progress: 新的进度

        Returns:
            User: 更新后的用户记录
        """
        data = progress.model_dump(mode="json", by_alias=True)
        db_obj.quiz_results = data["quizResults"]
        db_obj.quiz_bookmarks = data["quizBookmarks"]
        db_obj.resume_progress = data["resumeProgress"]

        db.add(db_obj)
        try:
            db.commit()
        except StaleDataError as e:
            db.rollback()
            raise ConflictError("Progress was modified concurrently, please retry", error=str(e)) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Failed to save progress for user %s", db_obj.id)
            raise PersistenceError("Server error", error=str(e)) from e
        return db_obj


# 实例化并暴露给 API 层使用
user = CRUDUser(User)
