from marshmallow import fields
from authop.types.base import BaseSchema, BaseObjectSchema, ObjectMetaSchema
from authop.types.models.operator import (
    OperatorSpec,
    OperatorStatus,
    AuthenticationOperator,
)


class OperatorSpecSchema(BaseSchema):
    __model__ = OperatorSpec

    management_state = fields.Str(data_key="managementState", load_default="Managed")
    log_level = fields.Str(data_key="logLevel", load_default="Normal")
    operator_log_level = fields.Str(data_key="operatorLogLevel", load_default="Normal")
    unsupported_config_overrides = fields.Dict(
        data_key="unsupportedConfigOverrides", load_default=None, allow_none=True
    )
    observed_config = fields.Dict(
        data_key="observedConfig", load_default=None, allow_none=True
    )


class OperatorStatusSchema(BaseSchema):
    __model__ = OperatorStatus

    observed_generation = fields.Int(data_key="observedGeneration", load_default=0)


class AuthenticationOperatorSchema(BaseObjectSchema):
    __model__ = AuthenticationOperator

    metadata = fields.Nested(ObjectMetaSchema)
    spec = fields.Nested(OperatorSpecSchema)
    status = fields.Nested(OperatorStatusSchema)
