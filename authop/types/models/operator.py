from typing import Any, Dict, Optional
from authop.types.base import BaseModel, ObjectMeta

MANAGED = "Managed"

LOG_LEVEL_VERBOSITY = {
    "Normal": 2,
    "Debug": 4,
    "Trace": 6,
    "TraceAll": 8,
}


class OperatorSpec(BaseModel):
    management_state: str
    log_level: str
    operator_log_level: str
    unsupported_config_overrides: Optional[Dict[str, Any]]
    observed_config: Optional[Dict[str, Any]]

    @property
    def managed(self) -> bool:
        return self.management_state == MANAGED

    @property
    def verbosity(self) -> int:
        return LOG_LEVEL_VERBOSITY.get(self.log_level or "Normal", 2)


class OperatorStatus(BaseModel):
    observed_generation: int


class AuthenticationOperator(BaseModel):
    """The operator configuration object (`authentications.operator.openshift.io`)."""

    metadata: ObjectMeta
    spec: OperatorSpec
    status: OperatorStatus
