import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from database import build_engine, create_db_and_tables
from main import create_app, limiter
from models import User
from security import hash_password
from storage import ForumStorage

PASSWORDS = {"alice": "wonderland", "bob": "builder"}


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    with Session(engine) as session:
        session.add_all(
            User(username=name, password=hash_password(password, rounds=4))
            for name, password in PASSWORDS.items()
        )
        session.commit()
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def storage(session):
    return ForumStorage(session)


@pytest.fixture
def client(engine):
    limiter.reset()
    with TestClient(create_app(engine)) as client:
        yield client


def sign_in(client, username="alice"):
    return client.post(
        "/users/signin",
        data={"username": username, "password": PASSWORDS[username]},
        follow_redirects=False,
    )
