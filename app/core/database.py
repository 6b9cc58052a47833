# app/core/database.py
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Optional
from functools import lru_cache

Base = declarative_base()


class DatabaseManager:
    """Gestion de l'engine et des sessions de base de données"""

    def __init__(self, database_url: Optional[str] = None):
        self._database_url = database_url
        self._engine = None
        self._session_factory = None
        self._initialize_database()

    def _initialize_database(self):
        """Initialise la connexion à la base de données"""
        database_url = self._get_database_url()

        engine_kwargs = {"pool_pre_ping": True, "echo": False}
        if not database_url.startswith("sqlite"):
            engine_kwargs["pool_recycle"] = 300

        self._engine = create_engine(database_url, **engine_kwargs)

        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self._engine
        )

    def _get_database_url(self) -> str:
        """Construit l'URL de la base de données"""
        if self._database_url:
            return self._database_url

        from app.config import settings

        return settings.database_url

    def get_session(self) -> Session:
        """Retourne une nouvelle session de base de données"""
        return self._session_factory()

    def check_connection(self) -> None:
        """Vérifie que la base répond (lève l'exception du driver sinon)"""
        with self._engine.connect() as connection:
            connection.execute(text("SELECT 1"))

    def dispose(self):
        """Ferme les connexions du pool"""
        self._engine.dispose()


@lru_cache()
def get_db_manager() -> DatabaseManager:
    """Instance partagée du gestionnaire, créée au premier usage"""
    return DatabaseManager()

