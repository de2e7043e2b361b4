"""Base repository with shared get-by-ID patterns.

Subclasses specify model_class, id_column, and not_found_error; the base
provides get_by_id / get_by_id_optional / get_many.
"""

from typing import Dict, Generic, Iterable, Optional, Type, TypeVar

from sqlalchemy.orm import Query, Session

from ..database import Base
from ..exceptions import ArborException

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Shared repository logic for SQLAlchemy models.

    Class variables to set in subclasses:
        model_class:     The SQLAlchemy model (e.g., Page)
        id_column:       Name of the primary-key column (default "id")
        not_found_error: Exception class to raise from get_by_id
    """

    model_class: Type[ModelT]
    id_column: str = "id"
    not_found_error: Type[ArborException]

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self) -> Query:
        return self.db.query(self.model_class)

    def _not_found(self, entity_id: str) -> ArborException:
        return self.not_found_error(entity_id)

    def get_by_id(self, entity_id: str) -> ModelT:
        """Get entity by primary key. Raises not_found_error if missing."""
        entity = self.get_by_id_optional(entity_id)
        if entity is None:
            raise self._not_found(entity_id)
        return entity

    def get_by_id_optional(self, entity_id: str) -> Optional[ModelT]:
        """Get entity by primary key, or None if not found."""
        col = getattr(self.model_class, self.id_column)
        return self._base_query().filter(col == entity_id).first()

    def get_many(self, entity_ids: Iterable[str]) -> Dict[str, ModelT]:
        """Load several entities in one query, keyed by id. Missing ids are absent."""
        ids = list(set(entity_ids))
        if not ids:
            return {}
        col = getattr(self.model_class, self.id_column)
        rows = self._base_query().filter(col.in_(ids)).all()
        return {getattr(row, self.id_column): row for row in rows}

    def add(self, entity: ModelT) -> ModelT:
        self.db.add(entity)
        self.db.flush()
        return entity

    def delete(self, entity: ModelT) -> None:
        self.db.delete(entity)
        self.db.flush()
