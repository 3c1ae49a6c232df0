import json
import logging
import uuid
from datetime import UTC, datetime
from typing import Optional

logger = logging.getLogger(__name__)


def _decode_task(raw: str) -> Optional[dict]:
    try:
        task = json.loads(raw)
    except ValueError as e:
        logger.error(f"Dropping unreadable task: {e}")
        return None

    if not isinstance(task, dict) or not isinstance(task.get("path"), str):
        logger.error(f"Dropping malformed task envelope: {raw[:200]}")
        return None
    return task


class TaskQueue:
    def __init__(self, redis_client, task_ttl: int = 3600):
        """
        Initialize task queue.

        Args:
            redis_client: Async Redis client
            task_ttl: Seconds an idle queue key is kept before Redis drops it
        """
        self.redis = redis_client
        self.task_ttl = task_ttl

    @staticmethod
    def _queue_key(queue_name: str) -> str:
        return f"queue:tasks:{queue_name}"

    async def push_task(
        self, path: str, payload: Optional[dict] = None, queue_name: str = "default"
    ) -> str:
        """
        Enqueue a POST task for an internal endpoint.

        Args:
            path: Endpoint path the worker will POST to
            payload: Optional JSON body
            queue_name: Target queue

        Returns:
            Task ID

        Logic:
        1. Build the task envelope with ID and timestamp
        2. Push to queue (LPUSH for FIFO with RPOP)
        3. Refresh expiration on queue
        """
        task = {
            "id": str(uuid.uuid4()),
            "path": path,
            "payload": payload or {},
            "queue_name": queue_name,
            "queued_at": datetime.now(UTC).isoformat(),
        }

        queue_key = self._queue_key(queue_name)
        await self.redis.lpush(queue_key, json.dumps(task))
        await self.redis.expire(queue_key, self.task_ttl)

        return task["id"]

    async def pull_task(self, queue_name: str = "default", wait: int = 0) -> Optional[dict]:
        """
        Pull the oldest task, optionally blocking.

        Args:
            queue_name: Queue to read
            wait: Seconds to block for a task (0 = non-blocking)

        Returns:
            Task dict, or None when the queue stayed empty or the item was not a task
        """
        queue_key = self._queue_key(queue_name)

        if wait > 0:
            result = await self.redis.brpop(queue_key, timeout=wait)
            if not result:
                return None
            return _decode_task(result[1])

        task_json = await self.redis.rpop(queue_key)
        if not task_json:
            return None
        return _decode_task(task_json)

    async def get_queue_depth(self, queue_name: str = "default") -> int:
        """
        Get number of pending tasks.

        Args:
            queue_name: Queue name

        Returns:
            Number of tasks in queue
        """
        return await self.redis.llen(self._queue_key(queue_name))
