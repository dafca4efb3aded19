import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger("wishlist.state")


class StateCell(Generic[T]):
    """Observable value holder for a view layer.

    Observers are called synchronously with the current value on subscribe
    and then with every new value. Setting a value equal to the current one
    is conflated and notifies nobody.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._observers: dict[object, Callable[[T], None]] = {}

    @property
    def value(self) -> T:
        return self._value

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def set(self, value: T) -> None:
        if value == self._value:
            return
        self._value = value
        for observer in list(self._observers.values()):
            observer(value)

    def subscribe(self, observer: Callable[[T], None]) -> Callable[[], None]:
        observer(self._value)
        token = object()
        self._observers[token] = observer
        self._attached()

        def unsubscribe() -> None:
            if self._observers.pop(token, None) is not None:
                self._detached()

        return unsubscribe

    async def updates(self) -> AsyncIterator[T]:
        queue: asyncio.Queue[T] = asyncio.Queue()
        unsubscribe = self.subscribe(queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()

    async def wait_for(self, predicate: Callable[[T], bool]) -> T:
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()

        def observer(value: T) -> None:
            if not future.done() and predicate(value):
                future.set_result(value)

        unsubscribe = self.subscribe(observer)
        try:
            return await future
        finally:
            unsubscribe()

    def _attached(self) -> None:
        pass

    def _detached(self) -> None:
        pass


class SharedState(StateCell[T]):
    """A StateCell fed from an upstream live stream.

    The upstream is collected by a single task while at least one observer is
    attached. Late observers get the latest value; once the last observer
    leaves the task is cancelled and the last value is kept.
    """

    def __init__(self, source: Callable[[], AsyncIterator[T]], initial: T) -> None:
        super().__init__(initial)
        self._source = source
        self._collector: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._collector is not None

    def stop(self) -> None:
        collector, self._collector = self._collector, None
        if collector is not None:
            collector.cancel()

    def _attached(self) -> None:
        if self._collector is None:
            self._collector = asyncio.get_running_loop().create_task(self._collect())
            self._collector.add_done_callback(self._collector_done)

    def _detached(self) -> None:
        if not self._observers:
            self.stop()

    async def _collect(self) -> None:
        async for value in self._source():
            self.set(value)

    def _collector_done(self, task: asyncio.Task) -> None:
        if self._collector is task:
            self._collector = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("shared_state_source_failed", exc_info=exc)
