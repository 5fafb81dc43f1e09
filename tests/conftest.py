import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.setdefault("TESTING", "true")
os.environ.setdefault("LOG_DIR", "./test-logs")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient
from app.core.database import Base, get_db
from app.models import registry  # noqa: F401
from app.utils import deps as deps_utils
from app.core.config import settings
import main
from tests.helpers.factories import (
    create_course_factory,
    create_enrollment_factory,
    create_lesson_factory,
    create_user_factory,
)

test_db_url = settings.TEST_DATABASE_URL or "sqlite:///./test.db"

@pytest.fixture(scope="session")
def database_engine():
    if test_db_url.startswith("sqlite"):
        engine = create_engine(test_db_url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(test_db_url)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()
    if test_db_url.startswith("sqlite") and os.path.exists("./test.db"):
        os.remove("./test.db")

@pytest.fixture(scope="session")
def session_factory(database_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=database_engine)

@pytest.fixture(scope="function")
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.rollback()
        # Services commit their own transactions, so empty every table between tests
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
        db.close()

@pytest.fixture(scope="function")
def client(db_session):
    main.app.dependency_overrides[get_db] = lambda: db_session
    main.app.dependency_overrides[deps_utils.get_transactional_db] = lambda: db_session
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()

@pytest.fixture
def user_factory(db_session):
    return create_user_factory(db_session)

@pytest.fixture
def course_factory(db_session):
    return create_course_factory(db_session)

@pytest.fixture
def lesson_factory(db_session):
    return create_lesson_factory(db_session)

@pytest.fixture
def enrollment_factory(db_session):
    return create_enrollment_factory(db_session)

@pytest.fixture
def course_with_lessons(course_factory, lesson_factory):
    """A published course with ``count`` lessons of ``duration`` seconds each."""
    def _factory(count=4, duration=120):
        course = course_factory()
        lessons = [lesson_factory(course.id, duration=duration) for _ in range(count)]
        return course, lessons
    return _factory
