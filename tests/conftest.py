"""Shared fixtures: an in-memory events collection and a FastAPI client with a fixed clock."""
import copy
from datetime import datetime
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from controllers import event_controller, gallery_controller
from controllers.event_controller import get_clock
from main import app
from models.event import Event, GalleryImage

FIXED_NOW = datetime(2024, 5, 15, 12, 0)


def _lookup(document: dict, key: str):
    """Resolve a dotted key; array fields yield every element's value."""
    values = [document]
    for part in key.split("."):
        found = []
        for value in values:
            if isinstance(value, list):
                found.extend(item.get(part) for item in value if isinstance(item, dict))
            elif isinstance(value, dict):
                found.append(value.get(part))
        values = found
    return values


def _condition_holds(value, condition) -> bool:
    if isinstance(condition, dict) and "$in" in condition:
        return value in condition["$in"]
    return value == condition


def _matches(document: dict, query: dict) -> bool:
    for key, condition in query.items():
        if "." in key:
            if not any(_condition_holds(value, condition) for value in _lookup(document, key)):
                return False
        elif not _condition_holds(document.get(key), condition):
            return False
    return True


def _positional_index(document: dict, query: dict, array: str) -> int:
    prefix = f"{array}."
    for index, item in enumerate(document.get(array, [])):
        conditions = {k[len(prefix):]: v for k, v in query.items() if k.startswith(prefix)}
        if conditions and _matches(item, conditions):
            return index
    raise ValueError(f"positional operator did not find a match in {array}")


def _apply_update(document: dict, query: dict, update: dict) -> None:
    for key, value in update.get("$set", {}).items():
        if ".$." in key:
            array, field = key.split(".$.")
            document[array][_positional_index(document, query, array)][field] = copy.deepcopy(value)
        else:
            document[key] = copy.deepcopy(value)
    for key, value in update.get("$push", {}).items():
        items = value["$each"] if isinstance(value, dict) and "$each" in value else [value]
        document.setdefault(key, []).extend(copy.deepcopy(items))
    for key, condition in update.get("$pull", {}).items():
        document[key] = [item for item in document.get(key, []) if not _matches(item, condition)]


class FakeCursor:
    """Subset of motor's AsyncIOMotorCursor used by the controllers."""

    def __init__(self, documents):
        self._documents = documents

    def sort(self, key, direction=1):
        self._documents = sorted(self._documents, key=lambda d: d[key], reverse=direction < 0)
        return self

    def skip(self, count):
        self._documents = self._documents[count:]
        return self

    def limit(self, count):
        if count:
            self._documents = self._documents[:count]
        return self

    async def to_list(self, length=None):
        return list(self._documents if length is None else self._documents[:length])

    def __aiter__(self):
        self._iter = iter(self._documents)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """In-memory stand-in for the motor events collection."""

    def __init__(self):
        self.documents = []

    def insert(self, **fields) -> dict:
        document = {"_id": ObjectId(), "status": "published", "gallery_images": [], **fields}
        self.documents.append(document)
        return document

    async def find_one(self, query, projection=None):
        for document in self.documents:
            if _matches(document, query):
                return copy.deepcopy(document)
        return None

    def find(self, query=None):
        return FakeCursor([copy.deepcopy(d) for d in self.documents if _matches(d, query or {})])

    async def count_documents(self, query):
        return sum(1 for d in self.documents if _matches(d, query))

    async def update_one(self, query, update):
        for document in self.documents:
            if _matches(document, query):
                _apply_update(document, query, update)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)


@pytest.fixture
def events_collection(monkeypatch) -> FakeCollection:
    collection = FakeCollection()
    monkeypatch.setattr(event_controller, "events_collection", collection)
    monkeypatch.setattr(gallery_controller, "events_collection", collection)
    return collection


@pytest.fixture
def api_client(events_collection):
    app.dependency_overrides[get_clock] = lambda: (lambda: FIXED_NOW)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_image():
    """Factory for gallery images ``img<index>`` with predictable fields."""
    def _make_image(index: int) -> GalleryImage:
        return GalleryImage(
            image_id=f"img{index}",
            public_id=f"events/gallery/img{index}",
            url=f"https://res.cloudinary.com/demo/image/upload/img{index}.jpg",
            caption=f"Photo {index}",
            uploaded_at=datetime(2024, 5, 1, 10, 0),
        )
    return _make_image


@pytest.fixture
def make_event():
    """Factory for events; defaults to a published event before ``FIXED_NOW``."""
    def _make_event(event_id: str, date=datetime(2024, 5, 1), time=None, status="published") -> Event:
        return Event(id=event_id, title=f"Event {event_id}", date=date, time=time, status=status)
    return _make_event
