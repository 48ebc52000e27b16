import logging
from urllib.parse import urlparse

from fastapi import Depends, Request
from sqlalchemy import event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from models import Comment, Post, User  # noqa: F401  registers the tables
from storage import ForumStorage

logger = logging.getLogger(__name__)

SEED_USERS = [
    ("tech_guru", "$2a$12$kmhLiw.1D/aG0Rk3mYgaY.HjKp7VXBWE6yxHV9l00g4g.sN.FS132"),
    ("coder123", "$2a$12$NWxG82ezo.Ck5f91hvkKyO0gQOl7zxzFg3k0L8API9NQvYzpwmMjW"),
    ("nature_lover", "$2a$12$.mp6qTJAWtVvJCGtfqCSP.BPqx6nKFmcF.BctLvDkAuuhyZnzRIYm"),
    ("foodie_jane", "$2a$12$mt4YMAyxlG2KgkAjEfD52OlDNH9kDMmRVELzBmEBzVe5wV4ToJyKy"),
]


def build_engine(database_url: str) -> Engine:
    if not urlparse(database_url).scheme.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    engine_kwargs = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, otherwise every checkout sees an empty database
        engine_kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **engine_kwargs)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_conn, conn_record):  # noqa: ARG001
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def create_db_and_tables(engine: Engine) -> bool:
    """Create the schema and seed users unless the users table already exists.

    Returns True when the schema was created by this call.
    """
    if inspect(engine).has_table("users"):
        return False

    logger.info("users table missing, creating schema")
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        session.add_all(User(username=name, password=hashed) for name, hashed in SEED_USERS)
        session.commit()
    logger.info("seeded %d users", len(SEED_USERS))
    return True


def get_session(request: Request):
    with Session(request.app.state.engine) as session:
        yield session


def get_storage(session: Session = Depends(get_session)) -> ForumStorage:
    return ForumStorage(session)
