"""Shared test fixtures for the Arbor backend test suite.

Every test gets a fresh in-memory SQLite database (one shared connection via
StaticPool) and an application built by the factory from explicit settings,
so nothing depends on the environment or a running database server.
"""

import base64
import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from arbor.core.auth import Actor
from arbor.core.config import Settings
from arbor.database import get_db, init_schema
from arbor.main import create_app
from arbor.models import AclEntry, AclPermission, Document, Folder, NodeKind, Page, PageStatus, Role, User
from arbor.repositories import DocumentRepository, NodeStore
from arbor.services.page_service import slugify
from arbor.services.path_maintainer import build_path
from arbor.services.stats_aggregator import StatsAggregator

TEST_SECRET = "test-secret-key"

OWNER = Actor(id="owner", role=Role.READ_ONLY)
READER = Actor(id="reader", role=Role.READ_ONLY)
EDITOR = Actor(id="editor", role=Role.EDITOR)
ADMIN = Actor(id="admin", role=Role.ADMINISTRATOR)


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": "sqlite://",
        "auth_enabled": False,
        "jwt_secret_key": TEST_SECRET,
        "log_format": "text",
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(**values)


def make_token(subject: str, secret: str = TEST_SECRET, expires_in: int = 3600) -> str:
    """Sign an HS256 token the way the identity provider would."""

    def b64(data: bytes) -> bytes:
        return base64.urlsafe_b64encode(data).rstrip(b"=")

    header = b64(json.dumps({"alg": "HS256", "typ": "JWT"}).encode())
    payload = b64(json.dumps({"sub": subject, "exp": int(time.time()) + expires_in}).encode())
    signing_input = header + b"." + payload
    signature = b64(hmac.new(secret.encode(), signing_input, hashlib.sha256).digest())
    return (signing_input + b"." + signature).decode()


def tree_snapshot(db, model) -> list:
    """Every placement column of every row, freshly read from the database."""
    db.expire_all()
    rows = db.query(model).order_by(model.id).all()
    return [(r.id, r.parent_id, r.order, r.path, r.visible) for r in rows]


class TreeFactory:
    """Writes nodes straight to the database with correct paths."""

    def __init__(self, db):
        self.db = db
        self._tick = 0

    def _created_at(self) -> datetime:
        # Strictly increasing, so later nodes are "newer" in sibling ties.
        self._tick += 1
        return datetime(2024, 1, 1) + timedelta(seconds=self._tick)

    def page(self, page_id, parent=None, order=0, status=PageStatus.DRAFT,
             visible=True, owner_id="owner", title=None, menu_title=None) -> Page:
        page = Page(
            id=page_id,
            title=title or page_id,
            menu_title=menu_title,
            slug=slugify(page_id),
            body="",
            parent_id=parent.id if parent is not None else None,
            order=order,
            path=build_path(parent.path if parent is not None else None, page_id),
            visible=visible,
            status=status,
            owner_id=owner_id,
            created_at=self._created_at(),
        )
        self.db.add(page)
        self.db.commit()
        return page

    def folder(self, folder_id, parent=None, order=0, is_public=False,
               owner_id="owner", name=None) -> Folder:
        folder = Folder(
            id=folder_id,
            name=name or folder_id,
            parent_id=parent.id if parent is not None else None,
            order=order,
            path=build_path(parent.path if parent is not None else None, folder_id),
            is_public=is_public,
            owner_id=owner_id,
            created_at=self._created_at(),
        )
        self.db.add(folder)
        self.db.commit()
        return folder

    def document(self, doc_id, folder, size=100, uploaded_by="owner") -> Document:
        doc = Document(
            id=doc_id,
            folder_id=folder.id,
            filename=f"{doc_id}.pdf",
            mime_type="application/pdf",
            size=size,
            uploaded_by=uploaded_by,
        )
        self.db.add(doc)
        self.db.flush()
        StatsAggregator(NodeStore(self.db), DocumentRepository(self.db)).refresh_ancestors([folder.path])
        self.db.commit()
        return doc

    def user(self, user_id, role=Role.READ_ONLY, is_active=True) -> User:
        user = User(user_id=user_id, display_name=user_id, role=role, is_active=is_active)
        self.db.add(user)
        self.db.commit()
        return user

    def grant(self, node, actor_id, permission=AclPermission.READ) -> None:
        self.db.add(AclEntry(
            node_kind=NodeKind(node.kind),
            node_id=node.id,
            actor_id=actor_id,
            permission=permission,
        ))
        self.db.commit()


@pytest.fixture()
def app():
    """Application built from explicit test settings, schema created."""
    application = create_app(make_settings())
    init_schema(application.state.engine)
    yield application
    application.state.engine.dispose()


@pytest.fixture()
def db(app):
    """Per-test database session."""
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture()
def client(app, db):
    """FastAPI TestClient with the DB dependency overridden to use the test session.

    Used without a ``with`` block: the schema already exists, and the startup
    connection check would contend with the test session for the one shared
    connection.
    """

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def factory(db) -> TreeFactory:
    return TreeFactory(db)


@pytest.fixture()
def services_tree(factory):
    """The menu from the worked examples.

    services (root)
        waste      order 0
        planning   order 1
    contact (root)
    """
    services = factory.page("services", order=0, status=PageStatus.PUBLISHED)
    waste = factory.page("waste", parent=services, order=0, status=PageStatus.PUBLISHED)
    planning = factory.page("planning", parent=services, order=1, status=PageStatus.PUBLISHED)
    contact = factory.page("contact", order=1, status=PageStatus.PUBLISHED)
    return {"services": services, "waste": waste, "planning": planning, "contact": contact}
