import logging
from collections.abc import Mapping
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends

from app.config.dependency_injection import get_current_user_id, get_progress_service
from app.core.exceptions import AppError, PersistenceError
from app.schemas.response import MessageResponse
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
)
from app.services.progress_service import ProgressService

logger = logging.getLogger(__name__)

router = APIRouter()


def _server_error(action: str, e: Exception) -> PersistenceError:
    logger.exception("Unexpected error while %s", action)
    return PersistenceError("Server error", error=str(e))


# Results

@router.post("/section-result", response_model=MessageResponse, response_model_exclude_none=True)
def save_section_result(
    result_in: SectionResultCreate,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """
    保存一次测验（小节）结果，插入到结果列表最前面
    """
    try:
        service.save_section_result(user_id, result_in)
    except AppError:
        raise
    except Exception as e:
        raise _server_error("saving section result", e)
    return MessageResponse(message="Result saved")


@router.get("/summary", response_model=ProgressSummary)
def get_summary(
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """
    获取学习概况：平均分、总次数、总用时、连续学习天数、进步趋势
    """
    try:
        return service.get_summary(user_id)
    except AppError:
        raise
    except Exception as e:
        raise _server_error("computing summary", e)


@router.get("/recent", response_model=List[QuizResult])
def get_recent(
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    try:
        return service.get_recent(user_id)
    except AppError:
        raise
    except Exception as e:
        raise _server_error("listing recent results", e)


# Resume

@router.get("/resume/{quiz_id}", response_model=Optional[ResumeState])
def get_resume(
    quiz_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """
    获取某个测验的断点续答状态，没有记录时返回 null
    """
    try:
        return service.get_resume(user_id, quiz_id)
    except AppError:
        raise
    except Exception as e:
        raise _server_error("reading resume state", e)


@router.post("/resume", response_model=MessageResponse, response_model_exclude_none=True)
def update_resume(
    resume_in: ResumeUpdate,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    try:
        service.update_resume(user_id, resume_in)
    except AppError:
        raise
    except Exception as e:
        raise _server_error("updating resume state", e)
    return MessageResponse(message="Resume updated")


# Bookmarks

@router.get("/bookmarks", response_model=List[QuizBookmark])
def list_bookmarks(
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    try:
        return service.list_bookmarks(user_id)
    except AppError:
        raise
    except Exception as e:
        raise _server_error("listing bookmarks", e)


@router.post("/bookmarks", response_model=MessageResponse, response_model_exclude_none=True)
def add_bookmark(
    bookmark_in: BookmarkCreate,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """
    添加收藏；同一题目已收藏时替换旧收藏并移到最前面
    """
    try:
        service.add_bookmark(user_id, bookmark_in)
    except AppError:
        raise
    except Exception as e:
        raise _server_error("adding bookmark", e)
    return MessageResponse(message="Bookmarked")


@router.delete("/bookmarks/{question_id}", response_model=MessageResponse, response_model_exclude_none=True)
def delete_bookmark(
    question_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    try:
        service.delete_bookmark(user_id, question_id)
    except AppError:
        raise
    except Exception as e:
        raise _server_error("deleting bookmark", e)
    return MessageResponse(message="Removed")


# Import guest/local progress

@router.post("/import", response_model=ProgressImportResponse)
def import_guest_progress(
    body: Any = Body(None),
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """
    把访客在本地积累的测验结果、收藏和断点续答状态导入当前账户。

    导入数据不做校验，请求体不是 JSON 对象时按空对象处理，无效字段会被清洗为默认值；
    返回每类实际导入的条数。
    """
    payload = ProgressImportRequest.model_validate(body if isinstance(body, Mapping) else {})
    try:
        return service.import_guest_progress(user_id, payload)
    except AppError:
        raise
    except Exception as e:
        raise _server_error("importing guest progress", e)
