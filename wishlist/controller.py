import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Coroutine
from functools import partial
from weakref import WeakKeyDictionary

from wishlist.core.context import bound_cid
from wishlist.core.state import SharedState, StateCell
from wishlist.repository import WishRepository
from wishlist.schemas import Wish, WishIn

logger = logging.getLogger("wishlist.controller")


class WishListController:
    """View state for the wish list and the add/edit form.

    Owns four independent observable cells (``title_input``,
    ``description_input``, ``last_error`` and ``all_wishes``) and the
    operations a view calls. Writes are fire-and-forget: each one is
    scheduled as a task whose storage I/O runs on the store's worker
    thread, and any failure ends up in ``last_error`` instead of being
    raised to the caller.

    Must be created and used while an event loop is running.
    """

    def __init__(self, repository: WishRepository) -> None:
        self._repository = repository
        self._tasks: set[asyncio.Task] = set()
        self._failures: WeakKeyDictionary[asyncio.Task, Exception] = (
            WeakKeyDictionary()
        )
        self._edit_session: asyncio.Task | None = None
        self._closed = False

        self.title_input: StateCell[str] = StateCell("")
        self.description_input: StateCell[str] = StateCell("")
        self.last_error: StateCell[Exception | None] = StateCell(None)
        self.all_wishes: SharedState[list[Wish]] = SharedState(
            repository.get_all_wishes, []
        )

    # form inputs

    def set_title_input(self, text: str) -> None:
        self.title_input.set(text)

    def set_description_input(self, text: str) -> None:
        self.description_input.set(text)

    def clear_error(self) -> None:
        self.last_error.set(None)

    def start_add_session(self) -> None:
        self._stop_edit_session()
        self.set_title_input("")
        self.set_description_input("")

    def start_edit_session(self, wish_id: int) -> asyncio.Task:
        """Follow the stored record and mirror it into the form inputs."""
        self._stop_edit_session()
        self._edit_session = asyncio.get_running_loop().create_task(
            self._follow(wish_id)
        )
        return self._edit_session

    def form_wish(self, wish_id: int = 0) -> Wish:
        data = WishIn(
            title=self.title_input.value,
            description=self.description_input.value,
        )
        return data.to_wish(wish_id)

    # writes

    def add_wish(self, wish: Wish) -> asyncio.Task:
        return self._launch("add", partial(self._repository.add_wish, wish))

    def update_wish(self, wish: Wish) -> asyncio.Task:
        return self._launch("update", partial(self._repository.update_wish, wish))

    def delete_wish(self, wish: Wish) -> asyncio.Task:
        return self._launch("delete", partial(self._repository.delete_wish, wish))

    def failure_of(self, task: asyncio.Task) -> Exception | None:
        """The error a write task stored in ``last_error``, if it failed."""
        return self._failures.get(task)

    # reads

    def get_wish_by_id(self, wish_id: int) -> AsyncIterator[Wish]:
        return self._repository.get_wish_by_id(wish_id)

    async def find_wish(self, wish_id: int) -> Wish | None:
        return await self._repository.find_wish(wish_id)

    async def snapshot(self) -> list[Wish]:
        return await self._repository.list_wishes()

    async def close(self) -> None:
        """Abandon in-flight tasks and stop collecting the shared list.

        Writes that already reached the store still complete.
        """
        self._closed = True
        self._stop_edit_session()
        self.all_wishes.stop()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _launch(
        self, operation: str, call: Callable[[], Coroutine]
    ) -> asyncio.Task:
        if self._closed:
            raise RuntimeError("controller is closed")
        task = asyncio.get_running_loop().create_task(self._guard(operation, call))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, operation: str, call: Callable[[], Coroutine]):
        with bound_cid():
            try:
                return await call()
            except Exception as exc:
                logger.warning(
                    "wish_operation_failed",
                    extra={"operation": operation, "error": type(exc).__name__},
                )
                self._failures[asyncio.current_task()] = exc
                self.last_error.set(exc)
                return None

    async def _follow(self, wish_id: int) -> None:
        async for wish in self._repository.get_wish_by_id(wish_id):
            self.set_title_input(wish.title)
            self.set_description_input(wish.description)

    def _stop_edit_session(self) -> None:
        session, self._edit_session = self._edit_session, None
        if session is not None:
            session.cancel()
