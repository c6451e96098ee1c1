from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sensorboard.core.config import settings

# URL de conexión: PostgreSQL con asyncpg en producción, aiosqlite en local/tests
DATABASE_URL = settings.DATABASE_URL

def create_engine_for(url: str, echo: bool = False):
    """
    Crea el motor async. En SQLite hay que activar las claves foráneas
    por conexión para que funcionen los ON DELETE CASCADE.
    """
    engine = create_async_engine(url, echo=echo)
    if engine.dialect.name == "sqlite":
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_fks(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    return engine

def create_session_factory(engine):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

# Crear el motor de la base de datos
engine = create_engine_for(DATABASE_URL, echo=settings.SQL_ECHO)

# Crear una clase SessionLocal para cada solicitud
SessionLocal = create_session_factory(engine)

# Declarar una base para los modelos de SQLAlchemy
Base = declarative_base()
