import sys
from pathlib import Path

import pytest
import pytest_asyncio

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from wishlist.config import Settings  # noqa: E402
from wishlist.controller import WishListController  # noqa: E402
from wishlist.database import init_db, make_engine, make_session_factory  # noqa: E402
from wishlist.main import create_app  # noqa: E402
from wishlist.repository import WishRepository  # noqa: E402
from wishlist.store import WishStore  # noqa: E402

IN_MEMORY = Settings(db_url="sqlite:///:memory:")


@pytest.fixture()
def session_factory():
    engine = make_engine(IN_MEMORY)
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest_asyncio.fixture()
async def store(session_factory):
    store = WishStore(session_factory)
    yield store
    store.close()


@pytest.fixture()
def repository(store):
    return WishRepository(store)


@pytest_asyncio.fixture()
async def controller(repository):
    controller = WishListController(repository)
    yield controller
    await controller.close()


@pytest.fixture()
def client():
    from fastapi.testclient import TestClient

    with TestClient(create_app(IN_MEMORY)) as c:
        yield c
