from authop.readiness.result import READY, NotReady, Outcome
from authop.types.models import WorkloadRecord

DEPLOYMENT_NOT_READY = "OAuthServerDeploymentNotReady"
DEPLOYMENT_HAS_AVAILABLE_REPLICA = "OAuthServerDeploymentHasAvailableReplica"


def check_deployment_ready(record: WorkloadRecord) -> Outcome:
    """Rollout state of the OAuth server deployment.

    Available stays True while an older version still serves, but the
    operator reports Progressing until every replica runs the latest spec.
    """
    if record.deleting:
        return NotReady(DEPLOYMENT_NOT_READY, "deployment is being deleted")

    if record.available_replicas > 0 and record.updated_replicas != record.replicas:
        return NotReady(
            DEPLOYMENT_NOT_READY,
            "not all deployment replicas are ready",
            available=True,
            available_reason=DEPLOYMENT_HAS_AVAILABLE_REPLICA,
        )

    if record.generation != record.observed_generation:
        return NotReady(
            DEPLOYMENT_NOT_READY,
            "deployment's observed generation did not reach the expected generation",
            available=None,
        )

    if record.updated_replicas != record.replicas or record.unavailable_replicas > 0:
        return NotReady(
            DEPLOYMENT_NOT_READY,
            "not all deployment replicas are ready",
            available=None,
        )

    return READY
