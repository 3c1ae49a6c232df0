import asyncio
import logging
from typing import Optional

import httpx
import redis.asyncio as redis

from .queue import TaskQueue

logger = logging.getLogger(__name__)

TASK_QUEUE_NAME_HEADER = "X-Task-Queue-Name"
TASK_QUEUE_TOKEN_HEADER = "X-Task-Queue-Token"


class TaskWorker:
    """
    Delivers queued tasks to internal endpoints.

    Each task is POSTed once with the task channel headers. Failed deliveries
    are logged and dropped; there are no retries.
    """

    def __init__(
        self,
        queue: TaskQueue,
        client: httpx.AsyncClient,
        token: str,
        queue_name: str = "default",
        poll_wait: int = 5,
        error_backoff: float = 1.0,
    ):
        """
        Initialize task worker.

        Args:
            queue: Task queue to drain
            client: httpx client whose base_url points at the app (ASGI transport in-process)
            token: Shared secret proving the request came through the task channel
            queue_name: Queue to drain
            poll_wait: Seconds to block waiting for a task
            error_backoff: Seconds to pause after a queue read failure
        """
        self.queue = queue
        self.client = client
        self.token = token
        self.queue_name = queue_name
        self.poll_wait = poll_wait
        self.error_backoff = error_backoff
        self._task: Optional[asyncio.Task] = None

    async def deliver(self, task: dict) -> bool:
        """POST a task to its endpoint. Returns True on a 2xx response."""
        headers = {
            TASK_QUEUE_NAME_HEADER: self.queue_name,
            TASK_QUEUE_TOKEN_HEADER: self.token,
        }
        try:
            response = await self.client.post(
                task["path"], json=task.get("payload") or {}, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(f"Task {task.get('id')} delivery to {task['path']} failed: {e}")
            return False

        if not response.is_success:
            logger.error(
                f"Task {task.get('id')} delivery to {task['path']} "
                f"returned HTTP {response.status_code}"
            )
            return False

        logger.info(f"Task {task.get('id')} delivered to {task['path']}")
        return True

    async def run_once(self) -> bool:
        """Pull and deliver a single task. Returns False when the queue was empty."""
        task = await self.queue.pull_task(self.queue_name, wait=self.poll_wait)
        if task is None:
            return False
        await self.deliver(task)
        return True

    async def run(self) -> None:
        logger.info(f"Task worker started on queue '{self.queue_name}'")
        while True:
            try:
                await self.run_once()
            except redis.RedisError as e:
                logger.error(f"Task queue read failed: {e}")
                await asyncio.sleep(self.error_backoff)
            except Exception as e:
                # One bad task must not stop delivery of the ones behind it
                logger.error(f"Task worker iteration failed: {e}", exc_info=True)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Task worker stopped")
