import json
import logging
import uuid
from typing import List, Optional, Protocol

from kubetask.modules.api.models import Task, TaskExecution
from kubetask.modules.executor.errors import TaskNotFoundError

logger = logging.getLogger("kubetask.storage")

TASK_INDEX_KEY = "tasks:all"

# KEYS[1] task document, KEYS[2] execution list, ARGV[1] execution JSON.
# Returns the new list length, or -1 when the task is gone.
APPEND_EXECUTION_SCRIPT = """
if redis.call("EXISTS", KEYS[1]) == 0 then
    return -1
end
return redis.call("RPUSH", KEYS[2], ARGV[1])
"""


class TaskStore(Protocol):
    """Persistence contract the orchestrator and API depend on."""

    async def find_by_id(self, task_id: str) -> Optional[Task]:
        ...

    async def save(self, task: Task) -> Task:
        ...

    async def append_execution(self, task_id: str, execution: TaskExecution) -> None:
        ...


class RedisTaskStore:
    def __init__(self, redis_client):
        """
        Initialize task store.

        Args:
            redis_client: Async Redis client (decode_responses=True)

        Layout:
            task:{id}             JSON of id, name, command, owner, serverName
            task:{id}:executions  list of JSON executions, oldest first
            tasks:all             set of task ids
        """
        self.redis = redis_client

    def _task_key(self, task_id: str) -> str:
        return f"task:{task_id}"

    def _executions_key(self, task_id: str) -> str:
        return f"task:{task_id}:executions"

    async def save(self, task: Task) -> Task:
        """
        Insert or replace a task's descriptive fields.

        Args:
            task: Task to store; an id is generated when missing

        Returns:
            The stored task, with its current execution history

        The execution list is never written here, so saving a task
        cannot drop executions appended by a concurrent run.
        """
        task_id = task.id or str(uuid.uuid4())
        document = task.model_dump(by_alias=True, exclude={"executions"})
        document["id"] = task_id

        await self.redis.set(self._task_key(task_id), json.dumps(document))
        await self.redis.sadd(TASK_INDEX_KEY, task_id)
        logger.debug(f"Saved task {task_id}")

        stored = await self.find_by_id(task_id)
        return stored if stored is not None else task.model_copy(update={"id": task_id})

    async def find_by_id(self, task_id: str) -> Optional[Task]:
        """
        Load a task with its executions in insertion order.

        Returns:
            Task or None if not found
        """
        data = await self.redis.get(self._task_key(task_id))
        if not data:
            return None

        document = json.loads(data)
        raw_executions = await self.redis.lrange(self._executions_key(task_id), 0, -1)
        document["taskExecutions"] = [json.loads(item) for item in raw_executions or []]
        return Task.model_validate(document)

    async def find_all(self) -> List[Task]:
        """Get every task, ordered by name."""
        task_ids = await self.redis.smembers(TASK_INDEX_KEY)

        tasks = []
        for task_id in task_ids:
            task = await self.find_by_id(task_id)
            if task:
                tasks.append(task)
            else:
                # Clean up stale entry
                await self.redis.srem(TASK_INDEX_KEY, task_id)

        return sorted(tasks, key=lambda t: (t.name.lower(), t.id))

    async def search_by_name(self, fragment: str) -> List[Task]:
        """Find tasks whose name contains the fragment, ignoring case."""
        needle = fragment.lower()
        return [task for task in await self.find_all() if needle in task.name.lower()]

    async def delete(self, task_id: str) -> bool:
        """
        Delete a task and its history.

        Returns:
            True if the task existed
        """
        removed = await self.redis.delete(
            self._task_key(task_id), self._executions_key(task_id)
        )
        await self.redis.srem(TASK_INDEX_KEY, task_id)
        if removed:
            logger.info(f"Deleted task {task_id}")
        return removed > 0

    async def append_execution(self, task_id: str, execution: TaskExecution) -> None:
        """
        Append an execution to a task's history.

        The existence check and the RPUSH run as one server-side script,
        so concurrent runs of one task each land in the list, and a task
        deleted meanwhile never gets an orphaned history.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        length = await self.redis.eval(
            APPEND_EXECUTION_SCRIPT,
            2,
            self._task_key(task_id),
            self._executions_key(task_id),
            execution.model_dump_json(by_alias=True),
        )
        if length < 0:
            raise TaskNotFoundError(f"Task {task_id} not found", task_id=task_id)

        logger.info(f"Recorded execution #{length} for task {task_id}")
