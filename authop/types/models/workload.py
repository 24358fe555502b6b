from typing import NamedTuple
from kubernetes_asyncio.client import V1Deployment


class WorkloadRecord(NamedTuple):
    """Observed state of the managed deployment."""

    name: str
    generation: int
    observed_generation: int
    replicas: int
    updated_replicas: int
    available_replicas: int
    unavailable_replicas: int
    deleting: bool = False

    @classmethod
    def from_deployment(cls, deployment: V1Deployment) -> "WorkloadRecord":
        meta = deployment.metadata
        status = deployment.status
        return cls(
            name=meta.name,
            generation=meta.generation or 0,
            observed_generation=(status.observed_generation or 0) if status else 0,
            replicas=(status.replicas or 0) if status else 0,
            updated_replicas=(status.updated_replicas or 0) if status else 0,
            available_replicas=(status.available_replicas or 0) if status else 0,
            unavailable_replicas=(status.unavailable_replicas or 0) if status else 0,
            deleting=meta.deletion_timestamp is not None,
        )
