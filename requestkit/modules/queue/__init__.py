"""
Queue Module - Black Box Interface

Purpose: Deferred task dispatch to internal endpoints
Interface: push_task(), pull_task(), TaskWorker.start()
Hidden: Queue implementation, blocking logic, delivery transport

Can be replaced with RabbitMQ, Cloud Tasks, or any message queue.
"""

from .queue import TaskQueue
from .worker import TASK_QUEUE_NAME_HEADER, TASK_QUEUE_TOKEN_HEADER, TaskWorker

__all__ = ["TaskQueue", "TaskWorker", "TASK_QUEUE_NAME_HEADER", "TASK_QUEUE_TOKEN_HEADER"]
