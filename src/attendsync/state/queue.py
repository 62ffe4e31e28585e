"""Durable FIFO queue of pending remote writes."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from pydantic import ValidationError

from attendsync._constants import QUEUE_KEY
from attendsync.exceptions import StorageReadFailure
from attendsync.models.task import MutationTask
from attendsync.storage import KeyValueStorage, dump_json, load_json

_logger = logging.getLogger(__name__)


class MutationQueue:
    """Ordered list of :class:`MutationTask`, persisted on every change.

    Tasks are never deduplicated: two pending writes for the same
    identifier are both delivered, in enqueue order.  A task leaves the
    queue only through :meth:`acknowledge`.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key: str = QUEUE_KEY,
        on_enqueue: Callable[[], None] | None = None,
    ) -> None:
        self._storage = storage
        self._key = key
        self._tasks: list[MutationTask] = self._load()
        self.on_enqueue = on_enqueue

    def _load(self) -> list[MutationTask]:
        try:
            raw = load_json(self._storage, self._key)
        except StorageReadFailure:
            _logger.warning("Discarding unreadable sync queue under %s", self._key, exc_info=True)
            return []
        if raw is None:
            return []
        if not isinstance(raw, list):
            _logger.warning("Discarding sync queue under %s: expected a list, got %s", self._key, type(raw).__name__)
            return []
        tasks: list[MutationTask] = []
        for index, item in enumerate(raw):
            try:
                tasks.append(MutationTask.model_validate(item))
            except ValidationError:
                _logger.warning("Skipping invalid queued task #%d under %s", index, self._key, exc_info=True)
        return tasks

    def _persist(self) -> None:
        dump_json(self._storage, self._key, [task.to_storage() for task in self._tasks])

    def _notify(self) -> None:
        if self.on_enqueue is None:
            return
        try:
            self.on_enqueue()
        except Exception:
            _logger.debug("on_enqueue callback failed", exc_info=True)

    @property
    def tasks(self) -> tuple[MutationTask, ...]:
        return tuple(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def __bool__(self) -> bool:
        return bool(self._tasks)

    def head(self) -> MutationTask | None:
        return self._tasks[0] if self._tasks else None

    def enqueue(self, task: MutationTask) -> None:
        self.extend([task])

    def extend(self, tasks: Iterable[MutationTask]) -> None:
        new_tasks = list(tasks)
        if not new_tasks:
            return
        self._tasks.extend(new_tasks)
        self._persist()
        self._notify()

    def acknowledge(self, task_id: str) -> bool:
        """Remove the task with *task_id*, wherever it sits.  Returns whether it was found."""
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                del self._tasks[index]
                self._persist()
                return True
        return False
