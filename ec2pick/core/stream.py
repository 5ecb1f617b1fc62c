"""Stream fetched items to the picker while the fetch is still running."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterator
from datetime import datetime
from typing import Any

from ec2pick.core.items import ErrorItem, Selectable, build_items
from ec2pick.core.naming import NameRule

__all__ = ["ChannelClosedError", "ItemChannel", "start_fetch"]

logger = logging.getLogger(__name__)

FetchFn = Callable[[], list[dict[str, Any]]]

_CLOSED = object()


class ChannelClosedError(RuntimeError):
    """Raised when sending on a channel that has already been closed."""


class ItemChannel:
    """Unbounded single-producer, single-consumer queue of selectable items.

    The producer sends any number of items and then closes the channel once;
    the consumer either drains what has arrived so far or blocks until the
    close marker is seen.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[Any] = queue.Queue()
        self._closed = False
        self._exhausted = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        """Whether the producer has finished sending."""

        return self._closed

    @property
    def exhausted(self) -> bool:
        """Whether the consumer has received the close marker."""

        return self._exhausted

    def send(self, item: Selectable) -> None:
        with self._lock:
            if self._closed:
                raise ChannelClosedError("cannot send on a closed channel")
            self._queue.put(item)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_CLOSED)

    def drain(self) -> list[Selectable]:
        """Return every item that is ready without blocking."""

        items: list[Selectable] = []
        while not self._exhausted:
            try:
                value = self._queue.get_nowait()
            except queue.Empty:
                break
            if value is _CLOSED:
                self._exhausted = True
                break
            items.append(value)
        return items

    def receive(self, timeout: float | None = None) -> Selectable | None:
        """Block for the next item; ``None`` once the channel is exhausted.

        Raises :class:`queue.Empty` if ``timeout`` elapses first.
        """

        if self._exhausted:
            return None
        value = self._queue.get(timeout=timeout)
        if value is _CLOSED:
            self._exhausted = True
            return None
        return value

    def __iter__(self) -> Iterator[Selectable]:
        while (item := self.receive()) is not None:
            yield item


def _produce(
    channel: ItemChannel,
    fetch: FetchFn,
    name_rule: NameRule,
    clock: Callable[[], datetime] | None,
) -> None:
    try:
        instances = fetch()
        items = build_items(instances, name_rule, clock=clock)
    except Exception as exc:  # surfaced to the operator as an in-band item
        logger.info("Instance fetch failed: %s", exc)
        channel.send(ErrorItem(str(exc) or exc.__class__.__name__))
    else:
        for item in items:
            channel.send(item)
        logger.debug("Streamed %d item(s) to the picker", len(items))
    finally:
        channel.close()


def start_fetch(
    fetch: FetchFn,
    name_rule: NameRule,
    *,
    clock: Callable[[], datetime] | None = None,
) -> ItemChannel:
    """Run ``fetch`` on a background thread and return its item channel.

    The channel is returned immediately. It later receives either one item
    per fetched instance or a single :class:`ErrorItem`, and is then closed.
    An abandoned fetch is left to finish on its daemon thread.
    """

    channel = ItemChannel()
    worker = threading.Thread(
        target=_produce,
        args=(channel, fetch, name_rule, clock),
        name="ec2pick-fetch",
        daemon=True,
    )
    worker.start()
    return channel
