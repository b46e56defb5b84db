"""CRUD 基类：为各实体提供通用的数据访问方法。"""

from typing import Any, Generic, Iterable, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.packages.drive.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    """封装常见的查询、创建与保存逻辑，减少重复代码。"""

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def query(self, db: Session):
        return db.query(self.model)

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return self.query(db).filter(self.model.id == id).first()

    def exists(self, db: Session, **filters: Any) -> bool:
        """按字段等值判断记录是否存在，例如 ``exists(db, username="User1")``。"""
        query = self.query(db).filter_by(**filters)
        return db.query(query.exists()).scalar()

    def existing_values(self, db: Session, column, values: Iterable[Any]) -> set:
        """一次查询返回 ``values`` 中实际存在于 ``column`` 的那部分取值。"""
        candidates = set(values)
        if not candidates:
            return set()
        rows = db.execute(select(column).where(column.in_(candidates)))
        return {row[0] for row in rows}

    def save(self, db: Session, db_obj: ModelType, *, auto_commit: bool = True) -> ModelType:
        db.add(db_obj)
        if auto_commit:
            self.commit(db)
            db.refresh(db_obj)
        return db_obj

    @staticmethod
    def commit(db: Session) -> None:
        """提交事务，失败时回滚后继续抛出。"""
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise

    def list_after(
        self,
        db: Session,
        *,
        after: Optional[str] = None,
        limit: int = 100,
    ) -> List[ModelType]:
        """按标识符倒序（最新优先）分页，``after`` 为上一页最后一条记录的标识符。"""
        query = self.query(db)
        if after is not None:
            query = query.filter(self.model.id < after)
        return query.order_by(self.model.id.desc()).limit(max(limit, 1)).all()
