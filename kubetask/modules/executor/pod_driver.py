"""
Pod Driver - manages the lifecycle of single-use execution pods.

Each task run gets exactly one pod: created with a generated name,
watched until it reaches a terminal phase, read for its log, and
deleted. The Kubernetes client is synchronous, so every API call is
pushed to a worker thread to keep the event loop free while a run
is waiting.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException

from .errors import EnvironmentCreateError, EnvironmentRuntimeError, EnvironmentTimeoutError

logger = logging.getLogger("kubetask.pod-driver")

POD_NAME_PREFIX = "task-exec-"
POD_LABELS = {"app": "task-executor"}
CONTAINER_NAME = "executor-container"
DEFAULT_IMAGE = "busybox"
DEFAULT_WAIT_TIMEOUT = 300.0
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_MAX_OUTPUT_BYTES = 1024 * 1024


class PodPhase(str, Enum):
    """Pod phases reported by the Kubernetes API."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PodPhase":
        """Map a raw phase string to a member; anything unrecognized is UNKNOWN."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (PodPhase.SUCCEEDED, PodPhase.FAILED)


@dataclass(frozen=True)
class EnvironmentHandle:
    """Reference to a live execution pod."""

    name: str
    namespace: str


class EnvironmentDriver(Protocol):
    """Interface the orchestrator uses to run a command in isolation."""

    async def create(self, command: str) -> EnvironmentHandle:
        ...

    async def await_terminal(self, handle: EnvironmentHandle, timeout: float) -> PodPhase:
        ...

    async def fetch_output(self, handle: EnvironmentHandle) -> str:
        ...

    async def destroy(self, handle: EnvironmentHandle) -> None:
        ...


class KubernetesPodDriver:
    """EnvironmentDriver backed by the Kubernetes CoreV1 API."""

    def __init__(
        self,
        api: k8s_client.CoreV1Api,
        namespace: str = "default",
        image: str = DEFAULT_IMAGE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ):
        """
        Initialize the driver.

        Args:
            api: CoreV1Api client, built once and shared by all runs
            namespace: Namespace execution pods are created in
            image: Container image providing /bin/sh
            poll_interval: Seconds between phase checks while waiting
            max_output_bytes: Upper bound on the log bytes returned
        """
        self.api = api
        self.namespace = namespace
        self.image = image
        self.poll_interval = poll_interval
        self.max_output_bytes = max_output_bytes

    @classmethod
    def from_environment(cls, **kwargs) -> "KubernetesPodDriver":
        """
        Build a driver from ambient credentials.

        Uses the pod's service account when running in-cluster and falls
        back to the local kubeconfig otherwise.
        """
        try:
            k8s_config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes configuration")
        except k8s_config.ConfigException:
            k8s_config.load_kube_config()
            logger.info("Loaded Kubernetes configuration from kubeconfig")
        return cls(k8s_client.CoreV1Api(), **kwargs)

    def build_pod(self, command: str) -> k8s_client.V1Pod:
        """Build the pod manifest that runs `sh -c <command>` once."""
        return k8s_client.V1Pod(
            api_version="v1",
            kind="Pod",
            metadata=k8s_client.V1ObjectMeta(
                generate_name=POD_NAME_PREFIX,
                labels=dict(POD_LABELS),
            ),
            spec=k8s_client.V1PodSpec(
                restart_policy="Never",
                containers=[
                    k8s_client.V1Container(
                        name=CONTAINER_NAME,
                        image=self.image,
                        command=["/bin/sh", "-c"],
                        args=[command],
                    )
                ],
            ),
        )

    async def create(self, command: str) -> EnvironmentHandle:
        """
        Create the execution pod.

        Raises:
            EnvironmentCreateError: If the API server rejects the pod or is unreachable
        """
        body = self.build_pod(command)
        try:
            pod = await asyncio.to_thread(
                self.api.create_namespaced_pod, namespace=self.namespace, body=body
            )
        except ApiException as e:
            raise EnvironmentCreateError(
                f"Kubernetes rejected execution pod ({e.status}): {e.reason}"
            ) from e
        except Exception as e:
            raise EnvironmentCreateError(f"Could not reach Kubernetes API: {e}") from e

        handle = EnvironmentHandle(name=pod.metadata.name, namespace=self.namespace)
        logger.info(f"Created execution pod {handle.namespace}/{handle.name}")
        return handle

    async def get_phase(self, handle: EnvironmentHandle) -> PodPhase:
        """Read the pod's current phase."""
        try:
            pod = await asyncio.to_thread(
                self.api.read_namespaced_pod, name=handle.name, namespace=handle.namespace
            )
        except ApiException as e:
            raise EnvironmentRuntimeError(
                f"Could not read pod {handle.name} ({e.status}): {e.reason}"
            ) from e
        status = pod.status
        return PodPhase.parse(status.phase if status else None)

    async def _poll_until_terminal(self, handle: EnvironmentHandle) -> PodPhase:
        while True:
            phase = await self.get_phase(handle)
            if phase.is_terminal:
                return phase
            logger.debug(f"Pod {handle.name} is {phase.value}, checking again in {self.poll_interval}s")
            await asyncio.sleep(self.poll_interval)

    async def await_terminal(
        self, handle: EnvironmentHandle, timeout: float = DEFAULT_WAIT_TIMEOUT
    ) -> PodPhase:
        """
        Wait until the pod reports Succeeded or Failed.

        Args:
            handle: Pod to watch
            timeout: Hard ceiling in seconds

        Returns:
            The terminal phase

        Raises:
            EnvironmentTimeoutError: If no terminal phase is reached in time
            EnvironmentRuntimeError: If the pod can no longer be read
        """
        try:
            phase = await asyncio.wait_for(self._poll_until_terminal(handle), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise EnvironmentTimeoutError(
                f"Pod {handle.name} did not finish within {timeout:g}s"
            ) from e
        logger.info(f"Pod {handle.name} reached phase {phase.value}")
        return phase

    async def fetch_output(self, handle: EnvironmentHandle) -> str:
        """
        Read the container log, capped at max_output_bytes.

        Raises:
            EnvironmentRuntimeError: If the log cannot be read
        """
        try:
            output = await asyncio.to_thread(
                self.api.read_namespaced_pod_log,
                name=handle.name,
                namespace=handle.namespace,
                container=CONTAINER_NAME,
                limit_bytes=self.max_output_bytes,
            )
        except ApiException as e:
            raise EnvironmentRuntimeError(
                f"Could not read log of pod {handle.name} ({e.status}): {e.reason}"
            ) from e
        return output or ""

    async def destroy(self, handle: EnvironmentHandle) -> None:
        """Delete the pod. Never raises; a pod that is already gone counts as deleted."""
        try:
            await asyncio.to_thread(
                self.api.delete_namespaced_pod, name=handle.name, namespace=handle.namespace
            )
            logger.info(f"Deleted execution pod {handle.namespace}/{handle.name}")
        except ApiException as e:
            if e.status == 404:
                logger.info(f"Execution pod {handle.name} was already deleted")
                return
            logger.warning(f"Failed to clean up pod {handle.name} ({e.status}): {e.reason}")
        except Exception as e:
            logger.warning(f"Failed to clean up pod {handle.name}: {e}")


__all__ = [
    "PodPhase",
    "EnvironmentHandle",
    "EnvironmentDriver",
    "KubernetesPodDriver",
]
