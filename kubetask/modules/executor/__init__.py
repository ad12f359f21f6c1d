"""
Executor Module - Black Box Interface

Purpose: Run a stored task's command in a single-use Kubernetes pod
Interface: TaskExecutionOrchestrator.run(), is_safe(), KubernetesPodDriver
Hidden: Pod manifests, phase polling, log retrieval, cleanup

Can be replaced with different execution mechanisms (Jobs, another
container runtime) by providing another EnvironmentDriver.

Submodules are imported directly (command_validator, pod_driver,
orchestrator, errors); the api models depend on command_validator.
"""
