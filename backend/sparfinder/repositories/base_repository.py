# backend/sparfinder/repositories/base_repository.py
"""
Shared base for the chat repositories.

Subclasses bind a model and add their own queries. Nothing here commits;
the service layer owns transactions.
"""

import logging
from typing import Generic, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Lookup and insert helpers shared by every repository.

    Attributes:
        db: Session supplied by the caller
        model: Mapped class this repository reads and writes
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: int, load_relationships: bool = True) -> Optional[T]:
        """Row with primary key ``id``, or None. Relationships are joined in when asked."""
        try:
            query = self.db.query(self.model).filter(self.model.id == id)
            if load_relationships:
                query = self._apply_eager_loading(query)
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Lookup of {self.model.__name__} {id} failed: {e}")
            raise RepositoryException(f"Failed to load {self.model.__name__} {id}") from e

    def create(self, **kwargs) -> T:
        """Insert a row and flush so its id is assigned."""
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as e:
            self.logger.error(f"Constraint violation inserting {self.model.__name__}: {e}")
            self.db.rollback()
            raise RepositoryException(f"Duplicate or invalid {self.model.__name__}") from e
        except SQLAlchemyError as e:
            self.logger.error(f"Insert of {self.model.__name__} failed: {e}")
            self.db.rollback()
            raise RepositoryException(f"Failed to create {self.model.__name__}") from e

    def flush(self) -> None:
        self.db.flush()

    def exists(self, **kwargs) -> bool:
        """True when some row matches the equality filters in ``kwargs``."""
        try:
            query = self.db.query(self.model.id).filter_by(**kwargs)
            return self.db.query(query.exists()).scalar()
        except SQLAlchemyError as e:
            self.logger.error(f"Existence check on {self.model.__name__} failed: {e}")
            raise RepositoryException(f"Failed to query {self.model.__name__}") from e

    def _apply_eager_loading(self, query: Query) -> Query:
        """Hook for subclasses that need relationships joined into ``get_by_id``."""
        return query
