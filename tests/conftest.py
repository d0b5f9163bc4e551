"""
GreekDash - Configuration et fixtures des tests
"""
import os
import tempfile
from datetime import datetime, timedelta
from typing import AsyncGenerator, Callable, Generator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session

# Environnement de test, avant tout import de l'application
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['DEBUG'] = 'false'
os.environ['LOG_FILE'] = os.path.join(tempfile.gettempdir(), 'greekdash-tests', 'greekdash.log')

from greekdash.main import app
from greekdash.database import Base, engine, SessionLocal, get_db
from greekdash.core.security import get_password_hash, create_access_token
from greekdash.models import (
    User,
    Chapter,
    Membership,
    Subscription,
    Event,
)

DEFAULT_PASSWORD = 'Password123'


@pytest.fixture(scope='function')
def db_session() -> Generator[Session, None, None]:
    """Base SQLite en mémoire, recréée pour chaque test"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
async def client(db_session: Session) -> AsyncGenerator[AsyncClient, None]:
    """Client HTTP branché sur la session de test"""
    def override_get_db():
        try:
            yield db_session
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


# ============== Fabriques ==============

@pytest.fixture
def make_user(db_session: Session) -> Callable[..., User]:
    def _make_user(email: str, name: str = 'Test User', password: str = DEFAULT_PASSWORD) -> User:
        user = User(
            email=email,
            name=name,
            hashed_password=get_password_hash(password),
            is_active=True,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user


@pytest.fixture
def add_member(db_session: Session) -> Callable[..., Membership]:
    def _add_member(chapter: Chapter, user: User, role: str = 'MEMBER') -> Membership:
        membership = Membership(user_id=user.id, chapter_id=chapter.id, role=role)
        db_session.add(membership)
        db_session.commit()
        db_session.refresh(membership)
        return membership
    return _add_member


@pytest.fixture
def set_plan(db_session: Session) -> Callable[[Chapter, str], None]:
    def _set_plan(chapter: Chapter, plan: str) -> None:
        chapter.subscription.plan = plan
        db_session.commit()
    return _set_plan


@pytest.fixture
def make_event(db_session: Session) -> Callable[..., Event]:
    def _make_event(chapter: Chapter, **overrides) -> Event:
        start = datetime.utcnow() + timedelta(days=3)
        values = {
            'title': 'Chapter Meeting',
            'description': 'Weekly chapter meeting for all members',
            'location': 'Chapter House',
            'start_date': start,
            'end_date': start + timedelta(hours=2),
            'capacity': None,
            'is_public': True,
            'status': 'UPCOMING',
        }
        values.update(overrides)
        event = Event(chapter_id=chapter.id, **values)
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)
        return event
    return _make_event


def headers_for(user: User) -> dict:
    """En-têtes d'authentification pour un utilisateur"""
    token = create_access_token(subject=user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def owner(make_user) -> User:
    return make_user('owner@example.com', name='Olivia Owner')


@pytest.fixture
def chapter(db_session: Session, owner: User) -> Chapter:
    """Chapitre 'alpha' sur le plan FREE, détenu par owner"""
    chapter = Chapter(name="Olivia's Chapter", slug='alpha', join_code='ABCD1234')
    db_session.add(chapter)
    db_session.flush()
    db_session.add(Membership(user_id=owner.id, chapter_id=chapter.id, role='OWNER'))
    db_session.add(Subscription(chapter_id=chapter.id, plan='FREE', status='ACTIVE'))
    db_session.commit()
    db_session.refresh(chapter)
    return chapter


@pytest.fixture
def owner_headers(owner: User, chapter: Chapter) -> dict:
    return headers_for(owner)


@pytest.fixture
def member(make_user, add_member, chapter: Chapter) -> User:
    user = make_user('member@example.com', name='Max Member')
    add_member(chapter, user, 'MEMBER')
    return user


@pytest.fixture
def member_headers(member: User) -> dict:
    return headers_for(member)


@pytest.fixture
def admin(make_user, add_member, chapter: Chapter) -> User:
    user = make_user('admin@example.com', name='Ada Admin')
    add_member(chapter, user, 'ADMIN')
    return user


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return headers_for(admin)


@pytest.fixture
def auth_for() -> Callable[[User], dict]:
    return headers_for
