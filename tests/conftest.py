import sys
from pathlib import Path

import pytest

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from utilhub.identity.keys import cc_key, person_key  # noqa: E402
from utilhub.store import InMemoryRecordStore, Write  # noqa: E402


@pytest.fixture
def store():
    return InMemoryRecordStore(batch_limit=450)


@pytest.fixture
def seed(store):
    """Write one document directly (no versioning), filling in the match keys."""

    def _seed(feed, doc_id, **fields):
        data = {"isLatest": True, "uploadVersion": 1, **fields}
        if data.get("person") and "personKey" not in data:
            data["personKey"] = person_key(data["person"])
        if "ccKey" not in data:
            data["ccKey"] = cc_key(data.get("competenceCenter"))
        store.batch_write(feed, [Write(doc_id, data, merge=False)])
        return data

    return _seed
