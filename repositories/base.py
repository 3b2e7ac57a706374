"""
Base repository interface for data access layer.
This follows the Repository pattern to separate business logic from data access.
"""

from typing import Generic, TypeVar, Optional, Type
from uuid import UUID
from sqlalchemy.orm import Session
from abc import ABC

ModelType = TypeVar("ModelType")


class BaseRepository(Generic[ModelType], ABC):
    """
    Base repository providing common CRUD operations.
    All repositories should inherit from this class.

    Subclasses name their primary key attribute in ``id_field`` (user_id,
    menu_id, ...). Writes only flush; committing is the service's decision so a
    multi-row operation stays in one transaction.
    """

    id_field: str = ""

    def __init__(self, db: Session, model: Type[ModelType]):
        self.db = db
        self.model = model

    def get_by_id(self, entity_id: UUID) -> Optional[ModelType]:
        """
        Get entity by ID.

        Args:
            entity_id: Entity UUID

        Returns:
            Entity or None if not found
        """
        if not self.id_field:
            raise NotImplementedError(
                f"{self.__class__.__name__} must set id_field"
            )
        column = getattr(self.model, self.id_field)
        return self.db.query(self.model).filter(column == entity_id).first()

    def add(self, entity: ModelType) -> ModelType:
        """Stage a new entity and flush so generated keys are available"""
        self.db.add(entity)
        self.db.flush()
        return entity

    def delete(self, entity: ModelType) -> None:
        """Stage deletion of an entity"""
        self.db.delete(entity)
        self.db.flush()

    def exists(self, entity_id: UUID) -> bool:
        """Check if entity exists"""
        return self.get_by_id(entity_id) is not None
