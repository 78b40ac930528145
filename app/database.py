# app/database.py
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from app.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Supabase Postgres connection (via pooler)
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=1       : keep only 1 connection to the Supabase pooler
# - max_overflow=0    : do not open extra connections beyond the pool
# - pool_pre_ping=True: validate connections before using them
# - connect_timeout / statement_timeout: seconds / milliseconds
#
# Supabase Session mode limits the number of clients; the SQLAlchemy
# default pool quickly hits "MaxClientsInSessionMode: max clients reached".
#
# SQLite URLs (local runs, tests) share one connection across threads.
# ---------------------------------------------------------


def build_engine(
    db_url: str,
    echo: bool = False,
    connect_timeout: int = 10,
    statement_timeout_ms: int = 15000,
):
    """
    Create the SQLAlchemy engine for the given URL.

    On Postgres every connection gets a connect timeout and a server-side
    statement_timeout, so a dead pooler or a stuck row lock surfaces as
    OperationalError instead of hanging the request.
    """
    if db_url.startswith("sqlite"):
        return create_engine(
            db_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    # Append sslmode=require if it is not already present
    if "sslmode=" not in db_url:
        if "?" in db_url:
            db_url = db_url + "&sslmode=require"
        else:
            db_url = db_url + "?sslmode=require"

    return create_engine(
        db_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=1,
        max_overflow=0,
        connect_args={
            "connect_timeout": connect_timeout,
            "options": f"-c statement_timeout={statement_timeout_ms}",
        },
    )


engine = build_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    connect_timeout=settings.DB_CONNECT_TIMEOUT_SECONDS,
    statement_timeout_ms=settings.DB_STATEMENT_TIMEOUT_MS,
)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
