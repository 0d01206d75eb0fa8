import logging
from typing import Callable, List, Optional, Tuple, TypeVar

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ConflictError
from app.crud.crud_user import CRUDUser, user as crud_user
from app.schemas.user_progress import (
    BookmarkCreate,
    ProgressImportRequest,
    ProgressImportResponse,
    ProgressSummary,
    QuizBookmark,
    QuizResult,
    ResumeState,
    ResumeUpdate,
    SectionResultCreate,
    UserProgress,
)
from app.services import progress_merger

# 配置日志
logger = logging.getLogger(__name__)

T = TypeVar("T")

# 纯函数形式的进度变换：旧进度 -> (新进度, 返回值)
ProgressMutation = Callable[[UserProgress], Tuple[UserProgress, T]]


class ProgressService:
    """学习进度服务

    每个写操作都是一个工作单元：读取一次用户记录，在内存中计算新进度，
    写回一次。写回以版本号为条件，若期间记录被其他请求修改，则重新读取、
    重新计算后再写，最多尝试 max_attempts 次。
    """

    def __init__(self, db: Session, store: CRUDUser = crud_user, max_attempts: Optional[int] = None):
        self.db = db
        self.store = store
        attempts = settings.PROGRESS_SAVE_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.max_attempts = max(1, attempts)

    def _read(self, user_id: str) -> UserProgress:
        return self.store.read_progress(self.store.find(self.db, user_id))

    def _mutate(self, user_id: str, mutation: ProgressMutation) -> T:
        """
        在乐观锁保护下执行一次 读取-变换-写回。

        Args:
            user_id: 已通过认证的用户ID
            mutation: 进度变换函数，必须是纯函数，重试时会被再次调用

        Returns:
            mutation 返回的附加结果

        Raises:
            NotFoundError: 用户不存在
            ConflictError: 重试次数用尽
            PersistenceError: 数据库读写失败
        """
        last_conflict: Optional[ConflictError] = None
        for attempt in range(1, self.max_attempts + 1):
            db_user = self.store.find(self.db, user_id)
            progress, outcome = mutation(self.store.read_progress(db_user))
            try:
                self.store.save_progress(self.db, db_obj=db_user, progress=progress)
                return outcome
            except ConflictError as e:
                last_conflict = e
                logger.warning(
                    "Concurrent progress update for user %s (attempt %d/%d), retrying",
                    user_id, attempt, self.max_attempts,
                )
        raise last_conflict

    # --- 访客进度导入 ---

    def import_guest_progress(self, user_id: str, payload: ProgressImportRequest) -> ProgressImportResponse:
        def mutation(progress: UserProgress):
            outcome = progress_merger.merge_guest_progress(
                progress,
                results=payload.results,
                bookmarks=payload.bookmarks,
                resume=payload.resume,
            )
            return outcome.progress, ProgressImportResponse(
                imported_results=outcome.imported_results,
                imported_bookmarks=outcome.imported_bookmarks,
                imported_resume=outcome.imported_resume,
            )

        response = self._mutate(user_id, mutation)
        logger.info(
            "Imported guest progress for user %s: results=%d bookmarks=%d resume=%d",
            user_id, response.imported_results, response.imported_bookmarks, response.imported_resume,
        )
        return response

    # --- 测验结果 ---

    def save_section_result(self, user_id: str, payload: SectionResultCreate) -> None:
        self._mutate(user_id, lambda p: (progress_merger.save_section_result(p, payload), None))

    def get_recent(self, user_id: str) -> List[QuizResult]:
        return self._read(user_id).quiz_results

    def get_summary(self, user_id: str) -> ProgressSummary:
        return progress_merger.summarize_results(
            self._read(user_id).quiz_results,
            timezone_name=settings.TIMEZONE,
        )

    # --- 断点续答 ---

    def get_resume(self, user_id: str, quiz_id: str) -> Optional[ResumeState]:
        return self._read(user_id).resume_progress.get(quiz_id)

    def update_resume(self, user_id: str, payload: ResumeUpdate) -> None:
        self._mutate(user_id, lambda p: (progress_merger.update_resume(p, payload), None))

    # --- 收藏 ---

    def list_bookmarks(self, user_id: str) -> List[QuizBookmark]:
        return self._read(user_id).quiz_bookmarks

    def add_bookmark(self, user_id: str, payload: BookmarkCreate) -> None:
        self._mutate(user_id, lambda p: (progress_merger.add_bookmark(p, payload), None))

    def delete_bookmark(self, user_id: str, question_id: str) -> None:
        self._mutate(user_id, lambda p: (progress_merger.delete_bookmark(p, question_id), None))
