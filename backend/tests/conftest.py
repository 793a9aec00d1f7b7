from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient

from twx.auth import get_current_user, get_optional_user
from twx.database import Base, SessionLocal, engine, get_db
from twx.main import app
from twx.models import Project, User


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def user(db) -> User:
    user = User(id="user-pm", email="pm@example.com", first_name="Pat", last_name="Morgan")
    db.add(user)
    db.commit()
    return user


@pytest.fixture()
def make_project(db):
    def _make(project_id: str, name: str | None = None) -> Project:
        project = Project(
            id=project_id,
            name=name or project_id,
            status="active",
            speckle_url=f"https://app.speckle.systems/projects/{project_id}",
        )
        db.add(project)
        db.commit()
        return project

    return _make


@pytest.fixture()
def client(db, user):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_optional_user] = lambda: user
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def anonymous_client(db):
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
