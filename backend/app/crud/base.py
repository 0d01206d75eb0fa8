from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConflictError
from app.db.base_class import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    通用的增、查、改操作，具体模型的 CRUD 类继承它并补充业务查询。

    **参数**

    * `model`: SQLAlchemy模型类
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def get(self, db: Session, obj_id: Any) -> Optional[ModelType]:
        """按主键读取，obj_id 为空或记录不存在时返回 None"""
        if obj_id is None:
            return None
        return db.get(self.model, obj_id)

    def get_by(self, db: Session, **filter_conditions: Any) -> Optional[ModelType]:
        """
        按等值条件读取第一条记录，例如 get_by(db, email="a@b.c")。
        模型上没有的字段不参与过滤。
        """
        conditions = {k: v for k, v in filter_conditions.items() if hasattr(self.model, k)}
        return db.scalars(select(self.model).filter_by(**conditions).limit(1)).first()

    def create(self, db: Session, *, obj_in: Union[CreateSchemaType, Dict[str, Any]]) -> ModelType:
        values = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        db_obj = self.model(**values)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    @staticmethod
    def update(
        db: Session,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """
        把 obj_in 中的字段写到 db_obj 并提交。

        Pydantic 模型只取显式设置过的字段；模型上不存在的字段被忽略。
        带 version_id 的记录在读取后被其他会话修改过时，提交会失败，
        此时回滚并抛出 ConflictError。

        Args:
            db: 数据库会话
            db_obj: 通过同一会话读取的记录
            obj_in: 要写入的字段

        Returns:
            ModelType: 刷新后的记录
        """
        changes = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        db.add(db_obj)
        try:
            db.commit()
        except StaleDataError as e:
            db.rollback()
            raise ConflictError("Record was modified concurrently, please retry", error=str(e)) from e
        db.refresh(db_obj)
        return db_obj
