from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import Field

from app.schemas.response import CamelModel

# JSON 数字：整数保持整数，小数保持小数
Number = Union[int, float]


# 已持久化的进度记录
class QuizResult(CamelModel):
    """测验结果模型

    用户完成一次测验（或测验的某一节）后记录的成绩。
    批量导入时以 (quiz_id, completed_at) 作为去重标识。

    Attributes:
        quiz_id: 测验ID
        quiz_name: 测验名称
        section_index: 小节序号，整套测验时为 None
        score: 得分
        total_questions: 题目总数
        correct_answers: 答对题数
        time_spent: 用时（秒）
        accuracy: 正确率
        completed_at: 完成时间（UTC）
    """
    quiz_id: str
    quiz_name: str = ""
    section_index: Optional[Number] = None
    score: Number = 0
    total_questions: Number = 0
    correct_answers: Number = 0
    time_spent: Number = 0
    accuracy: Number = 0
    completed_at: datetime


class QuizBookmark(CamelModel):
    """题目收藏模型

    Attributes:
        question_id: 题目ID，在收藏列表中唯一
        quiz_id: 所属测验ID
        quiz_name: 所属测验名称
        question: 题干快照
        note: 用户备注
        created_at: 收藏时间（UTC）
    """
    question_id: str
    quiz_id: str
    quiz_name: str = ""
    question: str = ""
    note: str = ""
    created_at: datetime


class ResumeState(CamelModel):
    """断点续答状态模型

    Attributes:
        current_section: 当前小节序号
        current_question: 当前题目序号
        time_spent: 已用时间（秒）
        updated_at: 最后更新时间（UTC），导入时按此字段判断新旧
    """
    current_section: Number = 0
    current_question: Number = 0
    time_spent: Number = 0
    updated_at: datetime


class UserProgress(CamelModel):
    """用户学习进度聚合模型

    对应 users 表上的三个 JSON 列，只属于一个账户。
    """
    quiz_results: List[QuizResult] = Field(default_factory=list)
    quiz_bookmarks: List[QuizBookmark] = Field(default_factory=list)
    resume_progress: Dict[str, ResumeState] = Field(default_factory=dict)


# 用于单条写入接口的输入模型
class SectionResultCreate(CamelModel):
    """保存测验结果请求模型，未提供的数值字段按 0 记录"""
    quiz_id: str = Field(..., description="测验ID")
    quiz_name: Optional[str] = None
    section_index: Optional[Number] = None
    score: Optional[Number] = None
    total_questions: Optional[Number] = None
    correct_answers: Optional[Number] = None
    time_spent: Optional[Number] = None
    accuracy: Optional[Number] = None


class ResumeUpdate(CamelModel):
    """更新断点续答请求模型

    未提供的字段沿用已保存的值。
    """
    quiz_id: str = Field(..., description="测验ID")
    current_section: Optional[Number] = None
    current_question: Optional[Number] = None
    time_spent: Optional[Number] = None


class BookmarkCreate(CamelModel):
    """添加收藏请求模型"""
    question_id: str = Field(..., description="题目ID")
    quiz_id: str = Field(..., description="所属测验ID")
    quiz_name: Optional[str] = None
    question: Optional[str] = None
    note: Optional[str] = None


# 访客进度导入
class ProgressImportRequest(CamelModel):
    """访客进度导入请求模型

    数据来自客户端本地存储，不做任何结构校验，每个字段都原样交给
    progress_merger 清洗。

    Attributes:
        results: 测验结果列表
        bookmarks: 收藏列表
        resume: quizId -> 断点续答状态
    """
    results: Any = None
    bookmarks: Any = None
    resume: Any = None


class ProgressImportResponse(CamelModel):
    """访客进度导入响应模型，记录实际被接纳的条目数"""
    imported_results: int = 0
    imported_bookmarks: int = 0
    imported_resume: int = 0


class ImprovementTrend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    NEUTRAL = "neutral"


class ProgressSummary(CamelModel):
    """学习概况响应模型

    Attributes:
        average_score: 平均分（四舍五入取整）
        total_quizzes: 已保存的测验结果数
        total_time_spent: 累计用时（秒）
        study_streak: 连续学习天数
        improvement_trend: 最近5次与之前5次平均分的对比结果
    """
    average_score: int = 0
    total_quizzes: int = 0
    total_time_spent: Number = 0
    study_streak: int = 0
    improvement_trend: ImprovementTrend = ImprovementTrend.NEUTRAL
