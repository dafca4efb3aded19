import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterator
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import contextmanager
from functools import partial
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from wishlist.models import WishORM
from wishlist.schemas import Wish

logger = logging.getLogger("wishlist.store")


class TableChanges:
    """Broadcasts "the table changed" to every live query that is listening."""

    def __init__(self) -> None:
        self._listeners: set[asyncio.Event] = set()

    def notify(self) -> None:
        for event in self._listeners:
            event.set()

    @contextmanager
    def listen(self) -> Iterator[asyncio.Event]:
        event = asyncio.Event()
        self._listeners.add(event)
        try:
            yield event
        finally:
            self._listeners.discard(event)


class WishStore:
    """SQLite-backed wish table with live queries.

    All database work runs on one worker thread, so writes are applied in
    the order they were submitted and the event loop never blocks on I/O.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        executor: Executor | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="wish-store"
        )
        self._changes = TableChanges()

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # live queries

    async def observe_all(self) -> AsyncIterator[list[Wish]]:
        with self._changes.listen() as changed:
            while True:
                changed.clear()
                try:
                    wishes = await self._run(self._select_all)
                except Exception:
                    # retried on the next table change
                    logger.error(
                        "live_query_failed", extra={"query": "all"}, exc_info=True
                    )
                else:
                    yield wishes
                await changed.wait()

    async def observe_by_id(self, wish_id: int) -> AsyncIterator[Wish]:
        # stays silent while the row is missing and resumes if it comes back
        last: Wish | None = None
        with self._changes.listen() as changed:
            while True:
                changed.clear()
                try:
                    wish = await self._run(self._select_one, wish_id)
                except Exception:
                    logger.error(
                        "live_query_failed",
                        extra={"query": "by_id", "wish_id": wish_id},
                        exc_info=True,
                    )
                else:
                    if wish is not None and wish != last:
                        yield wish
                    last = wish
                await changed.wait()

    # one-shot reads

    async def get(self, wish_id: int) -> Wish | None:
        return await self._run(self._select_one, wish_id)

    async def snapshot(self) -> list[Wish]:
        return await self._run(self._select_all)

    # writes

    async def insert(self, wish: Wish) -> int | None:
        """Store ``wish``; returns the new id, or None if ``wish.id`` is taken."""
        wish_id = await self._write(self._insert, wish)
        if wish_id is None:
            logger.debug("insert_ignored", extra={"wish_id": wish.id})
        return wish_id

    async def update(self, wish: Wish) -> bool:
        return await self._write(self._update, wish)

    async def delete(self, wish: Wish) -> bool:
        return await self._write(self._delete, wish)

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(fn, *args))

    async def _write(self, fn: Callable[[Session, Wish], Any], wish: Wish) -> Any:
        loop = asyncio.get_running_loop()

        def work() -> Any:
            with self._session_factory() as db:
                result = fn(db, wish)
            # notify even when the awaiting task was cancelled mid-write
            if result:
                loop.call_soon_threadsafe(self._changes.notify)
            return result

        return await loop.run_in_executor(self._executor, work)

    def _select_all(self) -> list[Wish]:
        with self._session_factory() as db:
            rows = db.query(WishORM).order_by(WishORM.id).all()
            return [Wish.model_validate(row) for row in rows]

    def _select_one(self, wish_id: int) -> Wish | None:
        with self._session_factory() as db:
            row = db.get(WishORM, wish_id)
            return Wish.model_validate(row) if row is not None else None

    @staticmethod
    def _insert(db: Session, wish: Wish) -> int | None:
        if wish.id and db.get(WishORM, wish.id) is not None:
            return None

        row = WishORM(title=wish.title, description=wish.description)
        if wish.id:
            row.id = wish.id
        db.add(row)
        db.commit()
        db.refresh(row)
        logger.debug("wish_inserted", extra={"wish_id": row.id})
        return row.id

    @staticmethod
    def _update(db: Session, wish: Wish) -> bool:
        row = db.get(WishORM, wish.id)
        if row is None:
            return False

        row.title = wish.title
        row.description = wish.description
        db.commit()
        logger.debug("wish_updated", extra={"wish_id": wish.id})
        return True

    @staticmethod
    def _delete(db: Session, wish: Wish) -> bool:
        row = db.get(WishORM, wish.id)
        if row is None:
            return False

        db.delete(row)
        db.commit()
        logger.debug("wish_deleted", extra={"wish_id": wish.id})
        return True
