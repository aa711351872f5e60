from abc import ABC
from typing import TypeVar, Generic, Optional, List, Dict, Any, Type
from sqlalchemy.orm import Session
from pydantic import BaseModel

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[T, SchemaType], ABC):
    """모든 리포지토리의 베이스 클래스

    리포지토리는 flush 까지만 수행하고 commit 은 서비스 계층이 담당합니다.
    (여러 테이블에 걸친 원장 변경을 하나의 DB 트랜잭션으로 묶기 위함)
    """

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def _to_schema(self, model_instance: Any) -> Optional[SchemaType]:
        """SQLAlchemy 모델을 Pydantic 스키마로 변환"""
        if model_instance is None:
            return None
        return self.schema_class.model_validate(model_instance)

    def to_schema(self, model_instance: T) -> SchemaType:
        schema = self._to_schema(model_instance)
        if schema is None:
            raise ValueError(f"Cannot convert empty {self.model_class.__name__}")
        return schema

    def get(self, id: Any, for_update: bool = False) -> Optional[T]:
        """ID로 모델 조회 (for_update=True 이면 행 잠금)"""
        query = self.db.query(self.model_class).filter(
            getattr(self.model_class, "id") == id
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def find_all(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[SchemaType]:
        """조건에 맞는 모든 레코드 조회 - Pydantic 스키마 리스트 반환"""
        query = self.db.query(self.model_class)

        if filters:
            for key, value in filters.items():
                if value is not None and hasattr(self.model_class, key):
                    query = query.filter(getattr(self.model_class, key) == value)

        if order_by and hasattr(self.model_class, order_by):
            query = query.order_by(getattr(self.model_class, order_by))

        if offset:
            query = query.offset(offset)

        if limit:
            query = query.limit(limit)

        return [self.to_schema(instance) for instance in query.all()]

    def add(self, **kwargs) -> T:
        """새 레코드 추가 (flush 만 수행)"""
        instance = self.model_class(**kwargs)
        self.db.add(instance)
        self.db.flush()
        self.db.refresh(instance)
        return instance
