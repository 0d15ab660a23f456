import asyncio
import logging
from typing import Any, Coroutine


class TaskSpawner:
    """
    Creates and tracks the background tasks of a chat session.

    Every spawned task stays registered until it completes. A task that
    ends with an exception has it logged with its name, so failures of
    the receive and dispatch loops never pass silently. Cancelled tasks
    are dropped without logging.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._tasks: set[asyncio.Task[Any]] = set()
        self._logger = logging.getLogger("core.helpers.spawn")

    @property
    def remaining_tasks(self) -> int:
        """
        Return the number of tasks currently being tracked, i.e. spawned
        but not yet completed.
        """
        return len(self._tasks)

    def on_done(self, task: asyncio.Task[Any]) -> None:
        """
        Callback executed when a spawned task completes.

        The task is removed from the tracking set. If it raised, the
        exception is logged with the task name; cancellation is not an error.
        """
        self._tasks.discard(task)
        if task.cancelled():
            self._logger.debug(f"Task {task.get_name()} cancelled")
            return

        if ex := task.exception():
            self._logger.error(
                f"Error occurred in task {task.get_name()}: {str(ex)}",
                exc_info=ex
            )

    def spawn(
        self,
        coro: Coroutine[Any, Any, None],
        name: str | None = None,
    ) -> asyncio.Task[Any]:
        """
        Spawn a coroutine as a named background task and track it until it
        completes.
        """
        task = self._loop.create_task(coro, name=name)
        task.add_done_callback(self.on_done)
        self._tasks.add(task)
        return task

    async def cancel_all(self) -> None:
        """Cancel every tracked task and wait until they have finished."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
