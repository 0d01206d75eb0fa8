"""
学习进度合并

把访客（未登录）在客户端本地积累的测验结果、题目收藏和断点续答状态
合并进已登录账户的进度记录，同时提供单条写入操作和学习概况统计。

这里的函数都是纯函数：输入一个 UserProgress，返回一个新的 UserProgress，
不会修改入参，也不接触数据库。持久化由 ProgressService 负责。

合并规则：
- 测验结果：以 (quiz_id, completed_at) 去重，新条目插到最前面，最多保留100条
- 收藏：以 question_id 去重，已存在的收藏不会被导入数据覆盖，最多保留200条
- 断点续答：updated_at 严格更新时才替换，缺失的数值字段沿用旧值

导入数据来自客户端，完全不可信。清洗函数从不抛异常：无效数字变成默认值，
非字符串变成空字符串，无法解析的时间变成当前时间。
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta, UTC
from typing import Any, Dict, List, Optional, Tuple

import pytz

from app.schemas.user_progress import (
    BookmarkCreate,
    ImprovementTrend,
    ProgressSummary,
    QuizBookmark,
    QuizResult,
    ResumeState,
    ResumeUpdate,
    SectionResultCreate,
    UserProgress,
)

MAX_QUIZ_RESULTS = 100
MAX_QUIZ_BOOKMARKS = 200

# 趋势统计：最近5次 vs 之前5次，平均分相差超过5分才算变化
TREND_WINDOW = 5
TREND_THRESHOLD = 5

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass
class MergeOutcome:
    """一次访客进度导入的结果"""
    progress: UserProgress
    imported_results: int = 0
    imported_bookmarks: int = 0
    imported_resume: int = 0


# --- 清洗 ---

def _truncate_to_ms(value: datetime) -> datetime:
    return value.replace(microsecond=value.microsecond - value.microsecond % 1000)


def utcnow() -> datetime:
    """当前 UTC 时间，精度为毫秒（与浏览器端时间戳一致）"""
    return _truncate_to_ms(datetime.now(UTC))


def to_number(value: Any, default: Any = 0) -> Any:
    """把任意值转换为有限数字，失败时返回 default

    空白字符串按 0 处理。
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            number = float(text)
        except ValueError:
            return default
    else:
        return default

    if isinstance(number, float):
        if not math.isfinite(number):
            return default
        if number.is_integer():
            return int(number)
    return number


def to_string(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def parse_date(value: Any) -> Optional[datetime]:
    """解析 datetime / ISO-8601 字符串 / 毫秒时间戳，无法解析时返回 None

    不带时区的时间按 UTC 处理。
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            parsed = datetime.fromisoformat(text)
        elif isinstance(value, (int, float)):
            if not value:
                return None
            parsed = datetime.fromtimestamp(value / 1000, UTC)
        else:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return _truncate_to_ms(parsed.astimezone(UTC))
    except (ValueError, OverflowError, OSError):
        return None


def to_date(value: Any) -> datetime:
    parsed = parse_date(value)
    return parsed if parsed is not None else utcnow()


def _as_mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def sanitize_result(raw: Any) -> Optional[QuizResult]:
    """把一条不可信的测验结果转换为 QuizResult，缺少 quizId 时返回 None"""
    record = _as_mapping(raw)
    quiz_id = to_string(record.get("quizId"))
    if not quiz_id:
        return None

    section_index = record.get("sectionIndex")
    return QuizResult(
        quiz_id=quiz_id,
        quiz_name=to_string(record.get("quizName")),
        section_index=None if section_index is None else to_number(section_index),
        score=to_number(record.get("score")),
        total_questions=to_number(record.get("totalQuestions")),
        correct_answers=to_number(record.get("correctAnswers")),
        time_spent=to_number(record.get("timeSpent")),
        accuracy=to_number(record.get("accuracy")),
        completed_at=to_date(record.get("completedAt")),
    )


def sanitize_bookmark(raw: Any) -> Optional[QuizBookmark]:
    """把一条不可信的收藏转换为 QuizBookmark，缺少 questionId 或 quizId 时返回 None"""
    record = _as_mapping(raw)
    question_id = to_string(record.get("questionId"))
    quiz_id = to_string(record.get("quizId"))
    if not question_id or not quiz_id:
        return None

    return QuizBookmark(
        question_id=question_id,
        quiz_id=quiz_id,
        quiz_name=to_string(record.get("quizName")),
        question=to_string(record.get("question")),
        note=to_string(record.get("note")),
        created_at=to_date(record.get("createdAt")),
    )


# --- 批量导入 ---

def _result_key(result: QuizResult) -> Tuple[str, datetime]:
    return result.quiz_id, result.completed_at


def merge_results(existing: List[QuizResult], candidates: Any) -> Tuple[List[QuizResult], int]:
    """合并测验结果，返回 (新列表, 导入条数)

    只看前 MAX_QUIZ_RESULTS 条候选数据。同一批次内的重复条目同样会被跳过。
    被接纳的条目按输入顺序依次插到最前面，最后按插入顺序截断。
    """
    seen = {_result_key(result) for result in existing}
    merged = list(existing)
    imported = 0

    for raw in _as_list(candidates)[:MAX_QUIZ_RESULTS]:
        result = sanitize_result(raw)
        if result is None:
            continue
        key = _result_key(result)
        if key in seen:
            continue
        seen.add(key)
        merged.insert(0, result)
        imported += 1

    return merged[:MAX_QUIZ_RESULTS], imported


def merge_bookmarks(existing: List[QuizBookmark], candidates: Any) -> Tuple[List[QuizBookmark], int]:
    """合并收藏，返回 (新列表, 导入条数)

    已存在的 question_id 一律跳过，不更新原有收藏；同一批次内以先出现的为准。
    """
    known_ids = {bookmark.question_id for bookmark in existing}
    merged = list(existing)
    imported = 0

    for raw in _as_list(candidates)[:MAX_QUIZ_BOOKMARKS]:
        bookmark = sanitize_bookmark(raw)
        if bookmark is None or bookmark.question_id in known_ids:
            continue
        known_ids.add(bookmark.question_id)
        merged.insert(0, bookmark)
        imported += 1

    return merged[:MAX_QUIZ_BOOKMARKS], imported


def merge_resume(existing: Dict[str, ResumeState], candidates: Any) -> Tuple[Dict[str, ResumeState], int]:
    """合并断点续答状态，返回 (新映射, 替换条数)

    候选状态的时间取 updatedAt，其次 lastUpdated，都没有则为当前时间；
    只有严格晚于已保存的 updated_at 才整条替换。替换时每个数值字段单独回退到旧值。
    """
    merged = dict(existing)
    imported = 0

    for quiz_id, raw_state in _as_mapping(candidates).items():
        if not quiz_id or not isinstance(raw_state, Mapping):
            continue

        current = merged.get(quiz_id)
        incoming_updated = parse_date(raw_state.get("updatedAt") or raw_state.get("lastUpdated")) or utcnow()
        current_updated = current.updated_at if current is not None else EPOCH
        if incoming_updated <= current_updated:
            continue

        merged[quiz_id] = ResumeState(
            current_section=to_number(raw_state.get("currentSection"), current.current_section if current else 0),
            current_question=to_number(raw_state.get("currentQuestion"), current.current_question if current else 0),
            time_spent=to_number(raw_state.get("timeSpent"), current.time_spent if current else 0),
            updated_at=incoming_updated,
        )
        imported += 1

    return merged, imported


def merge_guest_progress(
    progress: UserProgress,
    *,
    results: Any = None,
    bookmarks: Any = None,
    resume: Any = None,
) -> MergeOutcome:
    """把访客进度合并进账户进度

    Args:
        progress: 账户当前的进度
        results: 客户端提交的测验结果列表
        bookmarks: 客户端提交的收藏列表
        resume: 客户端提交的 quizId -> 断点续答状态

    Returns:
        MergeOutcome: 合并后的进度以及每类实际导入的条数
    """
    quiz_results, imported_results = merge_results(progress.quiz_results, results)
    quiz_bookmarks, imported_bookmarks = merge_bookmarks(progress.quiz_bookmarks, bookmarks)
    resume_progress, imported_resume = merge_resume(progress.resume_progress, resume)

    return MergeOutcome(
        progress=progress.model_copy(update={
            "quiz_results": quiz_results,
            "quiz_bookmarks": quiz_bookmarks,
            "resume_progress": resume_progress,
        }),
        imported_results=imported_results,
        imported_bookmarks=imported_bookmarks,
        imported_resume=imported_resume,
    )


# --- 单条写入 ---

def _or_default(value: Any, default: Any) -> Any:
    return default if value is None else value


def save_section_result(
    progress: UserProgress,
    payload: SectionResultCreate,
    now: Optional[datetime] = None,
) -> UserProgress:
    """追加一条测验结果到最前面，不去重"""
    result = QuizResult(
        quiz_id=payload.quiz_id,
        quiz_name=payload.quiz_name or "",
        section_index=payload.section_index,
        score=_or_default(payload.score, 0),
        total_questions=_or_default(payload.total_questions, 0),
        correct_answers=_or_default(payload.correct_answers, 0),
        time_spent=_or_default(payload.time_spent, 0),
        accuracy=_or_default(payload.accuracy, 0),
        completed_at=now or utcnow(),
    )
    quiz_results = [result, *progress.quiz_results][:MAX_QUIZ_RESULTS]
    return progress.model_copy(update={"quiz_results": quiz_results})


def add_bookmark(
    progress: UserProgress,
    payload: BookmarkCreate,
    now: Optional[datetime] = None,
) -> UserProgress:
    """添加收藏；同一 question_id 的旧收藏会被移除，新收藏放到最前面"""
    bookmark = QuizBookmark(
        question_id=payload.question_id,
        quiz_id=payload.quiz_id,
        quiz_name=payload.quiz_name or "",
        question=payload.question or "",
        note=payload.note or "",
        created_at=now or utcnow(),
    )
    others = [b for b in progress.quiz_bookmarks if b.question_id != payload.question_id]
    quiz_bookmarks = [bookmark, *others][:MAX_QUIZ_BOOKMARKS]
    return progress.model_copy(update={"quiz_bookmarks": quiz_bookmarks})


def delete_bookmark(progress: UserProgress, question_id: str) -> UserProgress:
    quiz_bookmarks = [b for b in progress.quiz_bookmarks if b.question_id != question_id]
    return progress.model_copy(update={"quiz_bookmarks": quiz_bookmarks})


def update_resume(
    progress: UserProgress,
    payload: ResumeUpdate,
    now: Optional[datetime] = None,
) -> UserProgress:
    """覆盖某个测验的断点续答状态，不比较时间；未提供的字段沿用旧值"""
    current = progress.resume_progress.get(payload.quiz_id)
    state = ResumeState(
        current_section=_or_default(payload.current_section, current.current_section if current else 0),
        current_question=_or_default(payload.current_question, current.current_question if current else 0),
        time_spent=_or_default(payload.time_spent, current.time_spent if current else 0),
        updated_at=now or utcnow(),
    )
    resume_progress = {**progress.resume_progress, payload.quiz_id: state}
    return progress.model_copy(update={"resume_progress": resume_progress})


# --- 学习概况 ---

def _score_of(result: QuizResult) -> Any:
    return result.score or result.accuracy or 0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _mean(values: List[Any]) -> float:
    return sum(values) / len(values)


def study_streak(results: List[QuizResult], today: date, tz: Any = UTC) -> int:
    """从 today 往前数，连续有完成记录的自然日天数"""
    active_days = {result.completed_at.astimezone(tz).date() for result in results}
    streak = 0
    while today - timedelta(days=streak) in active_days:
        streak += 1
    return streak


def improvement_trend(scores: List[Any]) -> ImprovementTrend:
    recent = scores[:TREND_WINDOW]
    previous = scores[TREND_WINDOW:TREND_WINDOW * 2]
    if not recent or not previous:
        return ImprovementTrend.NEUTRAL

    recent_avg = _mean(recent)
    previous_avg = _mean(previous)
    if recent_avg > previous_avg + TREND_THRESHOLD:
        return ImprovementTrend.IMPROVING
    if recent_avg < previous_avg - TREND_THRESHOLD:
        return ImprovementTrend.DECLINING
    return ImprovementTrend.NEUTRAL


def summarize_results(
    results: List[QuizResult],
    timezone_name: str = "UTC",
    today: Optional[date] = None,
) -> ProgressSummary:
    """根据已保存的测验结果计算学习概况

    Args:
        results: 测验结果，最新的在最前
        timezone_name: 计算自然日使用的时区名（pytz）
        today: 计算连续天数的基准日，默认为该时区的今天
    """
    if not results:
        return ProgressSummary()

    tz = pytz.timezone(timezone_name)
    if today is None:
        today = datetime.now(tz).date()

    scores = [_score_of(result) for result in results]
    return ProgressSummary(
        average_score=_round_half_up(_mean(scores)),
        total_quizzes=len(results),
        total_time_spent=sum(result.time_spent for result in results),
        study_streak=study_streak(results, today, tz),
        improvement_trend=improvement_trend(scores),
    )
