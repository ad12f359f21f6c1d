"""
Task Execution Orchestrator.

Runs one task in one pod: validate the stored command, create the pod,
wait for it under a bound, collect its log, delete it, and append the
resulting TaskExecution to the task's history.

Pod deletion happens in the release path of ``provisioned_environment``,
so it runs exactly once for every pod that was created, whatever
happened in between. Nothing is persisted unless the whole run
succeeded.
"""

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from enum import Enum
from typing import AsyncIterator

from kubetask.modules.api.models import TaskExecution
from kubetask.modules.storage.task_store import TaskStore

from .command_validator import base_command, is_safe
from .errors import (
    EnvironmentRuntimeError,
    PersistenceError,
    TaskExecutionError,
    TaskNotFoundError,
    UnsafeCommandError,
)
from .pod_driver import DEFAULT_WAIT_TIMEOUT, EnvironmentDriver, EnvironmentHandle, PodPhase

logger = logging.getLogger("kubetask.orchestrator")


class RunState(str, Enum):
    """Steps of a single run, in order."""

    VALIDATING = "validating"
    PROVISIONING = "provisioning"
    WAITING = "waiting"
    COLLECTING = "collecting"
    CLEANING = "cleaning"
    DONE = "done"


@asynccontextmanager
async def provisioned_environment(
    driver: EnvironmentDriver, command: str, task_id: str
) -> AsyncIterator[EnvironmentHandle]:
    """Create a pod for the command and always destroy it on exit."""
    handle = await driver.create(command)
    try:
        yield handle
    finally:
        logger.info(f"[{task_id}] {RunState.CLEANING.value}: removing pod {handle.name}")
        try:
            await driver.destroy(handle)
        except Exception as e:
            # Cleanup must never replace the run's own result or error
            logger.warning(f"[{task_id}] cleanup of pod {handle.name} failed: {e}")


class TaskExecutionOrchestrator:
    """Runs stored tasks in single-use pods and records their executions."""

    def __init__(
        self,
        store: TaskStore,
        driver: EnvironmentDriver,
        wait_timeout: float = DEFAULT_WAIT_TIMEOUT,
    ):
        """
        Initialize orchestrator.

        Args:
            store: Task store used to load tasks and append executions
            driver: Environment driver, shared by all runs
            wait_timeout: Seconds to wait for a pod to finish
        """
        self.store = store
        self.driver = driver
        self.wait_timeout = wait_timeout

    async def run(self, task_id: str) -> TaskExecution:
        """
        Run a task once and record the execution.

        Args:
            task_id: Id of the task to run

        Returns:
            The recorded TaskExecution

        Raises:
            TaskNotFoundError: No task with this id
            UnsafeCommandError: The stored command failed validation
            EnvironmentCreateError: The pod could not be created
            EnvironmentTimeoutError: The pod did not finish in time
            EnvironmentRuntimeError: The pod could not be observed or read
            PersistenceError: The execution could not be stored

        A pod ending in the Failed phase is still a successful run: the
        command executed and its output is returned and recorded.
        """
        task = await self.store.find_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(f"Task {task_id} not found", task_id=task_id)

        logger.info(f"[{task_id}] {RunState.VALIDATING.value}: {base_command(task.command)!r}")
        if not is_safe(task.command):
            raise UnsafeCommandError(
                f"Command of task {task_id} is not allowed to run", task_id=task_id
            )

        execution = await self._execute(task_id, task.command)

        try:
            await self.store.append_execution(task_id, execution)
        except TaskExecutionError:
            raise
        except Exception as e:
            raise PersistenceError(
                f"Task {task_id} ran but its execution could not be saved: {e}",
                task_id=task_id,
            ) from e

        logger.info(f"[{task_id}] {RunState.DONE.value}: execution recorded")
        return execution

    async def _execute(self, task_id: str, command: str) -> TaskExecution:
        logger.info(f"[{task_id}] {RunState.PROVISIONING.value}")
        start_time = datetime.now(UTC)

        try:
            async with provisioned_environment(self.driver, command, task_id) as handle:
                logger.info(f"[{task_id}] {RunState.WAITING.value}: pod {handle.name}")
                phase = await self.driver.await_terminal(handle, self.wait_timeout)
                if phase is PodPhase.FAILED:
                    logger.warning(f"[{task_id}] command exited with failure in pod {handle.name}")

                logger.info(f"[{task_id}] {RunState.COLLECTING.value}: pod {handle.name}")
                output = await self.driver.fetch_output(handle)
                # A wall clock stepped back mid-run must not yield end < start
                end_time = max(datetime.now(UTC), start_time)
                execution = TaskExecution(
                    start_time=start_time, end_time=end_time, output=output
                )
        except TaskExecutionError as e:
            if e.task_id is None:
                e.task_id = task_id
            raise
        except Exception as e:
            logger.exception(f"[{task_id}] unexpected failure while running task")
            raise EnvironmentRuntimeError(
                f"Unexpected failure while running task {task_id}: {e}", task_id=task_id
            ) from e

        return execution


__all__ = ["RunState", "TaskExecutionOrchestrator", "provisioned_environment"]
