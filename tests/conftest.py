import copy

import pytest
from google.api_core.exceptions import AlreadyExists

from groupledger.config import settings
from groupledger.config.firebase_config import set_db


class FakeSnapshot:
    def __init__(self, db, path):
        self._db = db
        self._path = path
        self.id = path[-1]
        self.reference = FakeDocument(db, path)

    @property
    def exists(self):
        return self._path in self._db.docs

    def to_dict(self):
        data = self._db.docs.get(self._path)
        return copy.deepcopy(data) if data is not None else None


class FakeDocument:
    def __init__(self, db, path):
        self._db = db
        self._path = path
        self.id = path[-1]

    def create(self, data):
        if self._path in self._db.docs:
            raise AlreadyExists(f"Document already exists: {'/'.join(self._path)}")
        self._db.docs[self._path] = copy.deepcopy(data)

    def set(self, data):
        self._db.docs[self._path] = copy.deepcopy(data)

    def update(self, data):
        if self._path not in self._db.docs:
            raise KeyError(f"No document to update: {'/'.join(self._path)}")
        self._db.docs[self._path].update(copy.deepcopy(data))

    def get(self):
        return FakeSnapshot(self._db, self._path)

    def delete(self):
        self._db.docs.pop(self._path, None)

    def collection(self, name):
        return FakeCollection(self._db, self._path + (name,))


class FakeCollection:
    def __init__(self, db, path):
        self._db = db
        self._path = path

    def document(self, doc_id):
        return FakeDocument(self._db, self._path + (doc_id,))

    def stream(self):
        depth = len(self._path) + 1
        paths = sorted(
            path for path in self._db.docs
            if len(path) == depth and path[:-1] == self._path
        )
        return iter([FakeSnapshot(self._db, path) for path in paths])


class FakeFirestore:
    """In-memory stand-in for the Firestore client (collection/document API)."""

    def __init__(self):
        self.docs = {}

    def collection(self, name):
        return FakeCollection(self, (name,))


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    # a developer's .env must not leak into test expectations
    monkeypatch.setattr(settings, "DEFAULT_CURRENCY", "USD")
    monkeypatch.setattr(settings, "PERSIST_RESULTS", True)


@pytest.fixture
def fake_db():
    db = FakeFirestore()
    set_db(db)
    yield db
    set_db(None)


@pytest.fixture
def no_db(monkeypatch):
    set_db(None)
    monkeypatch.setattr(settings, "FIREBASE_CREDENTIALS", "")
    yield
    set_db(None)
