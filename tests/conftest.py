from contextlib import contextmanager
from pathlib import Path
from types import SimpleNamespace

import bson
import pytest
from lxml import html
from pymongo.errors import DuplicateKeyError, OperationFailure

from quote_crawler.storage import MongoStorage


FIXTURES = Path(__file__).parent / "fixtures"


def read_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


class FakeCollection:
    """Just enough of pymongo's Collection for the reconciler."""

    def __init__(self):
        self.docs = {}
        self.indexes = []
        self.inserts = 0
        self.fail_on_insert = None

    def find_one(self, filter, projection=None, session=None):
        doc = self.docs.get(filter["_id"])
        return dict(doc) if doc is not None else None

    def insert_one(self, doc, session=None):
        self.inserts += 1
        if self.fail_on_insert is not None and self.inserts == self.fail_on_insert:
            raise OperationFailure("simulated write failure")
        bson.encode(doc)
        if doc["_id"] in self.docs:
            raise DuplicateKeyError("duplicate _id")
        self.docs[doc["_id"]] = dict(doc)

    def update_one(self, filter, update, session=None):
        bson.encode(update)
        self.docs[filter["_id"]].update(update["$set"])

    def count_documents(self, filter):
        return len(self.docs)

    def create_index(self, keys, name=None):
        if name not in self.indexes:
            self.indexes.append(name)
        return name


class FakeDatabase:
    def __init__(self):
        self.collections = {}
        self.created = []

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())

    def list_collection_names(self):
        return list(self.created)

    def create_collection(self, name):
        self.created.append(name)
        return self[name]


class FakeSession:
    """Client session whose transaction restores every collection on error."""

    def __init__(self, client):
        self.client = client

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    @contextmanager
    def start_transaction(self):
        snapshot = {
            name: {k: dict(v) for k, v in coll.docs.items()}
            for name, coll in self.client.db.collections.items()
        }
        try:
            yield self
        except Exception:
            for name, docs in snapshot.items():
                self.client.db.collections[name].docs = docs
            self.client.aborted += 1
            raise
        self.client.committed += 1


class FakeMongoClient:
    def __init__(self, ping_error=None):
        self.db = FakeDatabase()
        self.sessions = 0
        self.committed = 0
        self.aborted = 0
        self.closed = False
        self._ping_error = ping_error
        self.admin = SimpleNamespace(command=self._command)

    def _command(self, name):
        if self._ping_error is not None:
            raise self._ping_error
        return {"ok": 1}

    def __getitem__(self, name):
        return self.db

    def start_session(self):
        self.sessions += 1
        return FakeSession(self)

    def close(self):
        self.closed = True


MONGO_CONFIG = {"mongodb": {"uri": "mongodb://fake", "database": "bashim", "collection": "quotes"}}


@pytest.fixture
def mongo_client():
    return FakeMongoClient()


@pytest.fixture
def storage(mongo_client):
    store = MongoStorage(config=MONGO_CONFIG, client=mongo_client)
    store.connect()
    store.bootstrap()
    return store


def render_page(index, quotes):
    """Render an archive page; `index=None` omits the pager control."""
    frames = []
    for number, (body, date, votes) in enumerate(quotes, start=1):
        frames.append(f"""
      <article class="quote">
        <div class="quote__frame">
          <header class="quote__header">
            <a class="quote__header_permalink" href="/quote/{number}">#{number}</a>
            <div class="quote__header_date">
              {date}
            </div>
          </header>
          <div class="quote__body">
            {body}
          </div>
          <footer class="quote__footer">
            <div class="quote__total" data-vote-counter>{votes}</div>
          </footer>
        </div>
      </article>""")
    pager = ""
    if index is not None:
        pager = f"""
    <div class="pager">
      <form class="pager__form"><input class="pager__input" type="number" value="{index}"></form>
    </div>"""
    return f"""<!DOCTYPE html>
<html><head><meta charset="utf-8"><title>Archive</title></head>
<body>
  <main>
    <section class="quotes">{''.join(frames)}
    </section>{pager}
  </main>
</body></html>"""


class FakeFetcher:
    """Serves pre-rendered pages; unknown indexes get the fallback page like the real archive."""

    def __init__(self, pages, fallback=None, errors=None):
        self.pages = pages
        self.fallback = fallback
        self.errors = errors or {}
        self.requested = []
        self.closed = False

    async def fetch_page(self, index):
        self.requested.append(index)
        if index in self.errors:
            raise self.errors[index]
        markup = self.pages.get(index, self.fallback)
        if markup is None:
            markup = render_page(None, [])
        return html.document_fromstring(markup)

    async def close(self):
        self.closed = True


@pytest.fixture
def page_factory():
    return render_page


def quotes_for(index, count=2, date="01.02.2019 в 13:05", votes="10"):
    return [(f"Quote {index}-{n}<br>second line", date, votes) for n in range(count)]


@pytest.fixture
def archive():
    """Pages 100..102 with two quotes each; anything later falls back to page 102."""
    pages = {i: render_page(i, quotes_for(i)) for i in range(100, 103)}
    return FakeFetcher(pages, fallback=pages[102])
