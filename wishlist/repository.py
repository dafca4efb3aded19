import json
import logging
from collections.abc import AsyncIterator, Awaitable

from wishlist.core.context import get_cid
from wishlist.core.errors import RepositoryFailure
from wishlist.schemas import Wish
from wishlist.store import WishStore

logger = logging.getLogger("wishlist.repository")
audit = logging.getLogger("wishlist.audit")


class WishRepository:
    """Boundary between the store and the rest of the app.

    Reads are passed through untouched. Any failure of a write is logged and
    re-raised as RepositoryFailure naming the operation.
    """

    def __init__(self, store: WishStore) -> None:
        self._store = store

    def get_all_wishes(self) -> AsyncIterator[list[Wish]]:
        return self._store.observe_all()

    def get_wish_by_id(self, wish_id: int) -> AsyncIterator[Wish]:
        return self._store.observe_by_id(wish_id)

    async def find_wish(self, wish_id: int) -> Wish | None:
        return await self._store.get(wish_id)

    async def list_wishes(self) -> list[Wish]:
        return await self._store.snapshot()

    async def add_wish(self, wish: Wish) -> int | None:
        wish_id = await self._mutate("add", wish, self._store.insert(wish))
        _audit("create", wish_id if wish_id is not None else wish.id, wish_id is not None)
        return wish_id

    async def update_wish(self, wish: Wish) -> bool:
        updated = await self._mutate("update", wish, self._store.update(wish))
        _audit("update", wish.id, updated)
        return updated

    async def delete_wish(self, wish: Wish) -> bool:
        deleted = await self._mutate("delete", wish, self._store.delete(wish))
        _audit("delete", wish.id, deleted)
        return deleted

    @staticmethod
    async def _mutate(operation: str, wish: Wish, call: Awaitable):
        try:
            return await call
        except Exception as exc:
            logger.error(
                "repository_failure",
                extra={
                    "operation": operation,
                    "wish_id": wish.id,
                    "correlation_id": get_cid(),
                },
                exc_info=True,
            )
            raise RepositoryFailure(operation, exc) from exc


def _audit(action: str, wish_id: int, success: bool) -> None:
    audit.info(
        json.dumps(
            {
                "action": action,
                "wish_id": wish_id,
                "success": success,
                "correlation_id": get_cid(),
            },
            ensure_ascii=False,
        )
    )
