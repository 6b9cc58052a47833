# app/repositories/base_repository.py
from typing import TypeVar, Generic, List, Optional, Type, Dict, Any
from sqlalchemy import insert
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app.core.database import Base

# Type générique pour les modèles
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Repository générique pour les opérations CRUD de base"""

    def __init__(self, model: Type[ModelType], db: Session):
        self.model = model
        self.db = db

    def get_by_id(self, id: int) -> Optional[ModelType]:
        """Récupère un enregistrement par son ID"""
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def exists(self, id: int) -> bool:
        """Vérifie si un enregistrement existe"""
        try:
            return self.db.query(self.model.id).filter(self.model.id == id).first() is not None
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def count_by_field(self, field: str, value: Any) -> int:
        """Compte les enregistrements dont un champ vaut une valeur donnée"""
        try:
            return self.db.query(self.model).filter(getattr(self.model, field) == value).count()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def create(self, obj_data: Dict[str, Any]) -> ModelType:
        """Crée un nouvel enregistrement"""
        try:
            db_obj = self.model(**obj_data)
            self.db.add(db_obj)
            self.db.commit()
            self.db.refresh(db_obj)
            return db_obj
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def update(self, id: int, obj_data: Dict[str, Any]) -> Optional[ModelType]:
        """Met à jour un enregistrement existant (None s'il n'existe plus)"""
        try:
            db_obj = self.get_by_id(id)
            if db_obj:
                for field, value in obj_data.items():
                    if hasattr(db_obj, field):
                        setattr(db_obj, field, value)
                self.db.commit()
                self.db.refresh(db_obj)
            return db_obj
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def bulk_insert(self, objects_data: List[Dict[str, Any]]) -> int:
        """Insère plusieurs enregistrements en une seule requête"""
        if not objects_data:
            return 0
        try:
            self.db.execute(insert(self.model), objects_data)
            self.db.commit()
            return len(objects_data)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
