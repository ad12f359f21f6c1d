"""
Kubetask - On-demand Task Execution on Kubernetes

A system for registering named shell commands and running them in
single-use Kubernetes pods, keeping a history of every execution.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- config: Environment-driven configuration
- storage: Task persistence (Redis)
- executor: Command validation, pod lifecycle, run orchestration
- api: REST API request/response models
"""

__version__ = "1.0.0"
