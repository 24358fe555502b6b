from types import SimpleNamespace
from typing import Any, Dict, Optional
from marshmallow import EXCLUDE, Schema, fields, post_load, pre_load

JSON = Dict[str, Any]
MAX_REPR_LEN = 80


class BaseModel(SimpleNamespace):
    """Base for all models loaded from Kubernetes object bodies.

    Keyword arguments become instance attributes.
    """

    def __init__(self, **kwargs: Any) -> None:
        self.__dict__.update(kwargs)

    def __repr__(self) -> str:
        repr_ = super().__repr__()
        if len(repr_) > MAX_REPR_LEN:
            return repr_[:MAX_REPR_LEN] + " ...)"
        return repr_

    def as_dict(self) -> Dict[str, Any]:
        result = {}
        for key, value in self.__dict__.items():
            if isinstance(value, BaseModel):
                result[key] = value.as_dict()
            elif isinstance(value, list):
                result[key] = [
                    item.as_dict() if isinstance(item, BaseModel) else item
                    for item in value
                ]
            else:
                result[key] = value
        return result


class UnknownModel(BaseModel):
    """A convenience class for bodies without a dedicated model."""


class BaseSchema(Schema):
    """The default schema for all models."""

    __model__: Any = UnknownModel
    """Determine the object that is created when the load method is called."""

    class Meta:
        unknown = EXCLUDE
        ordered = True

    @post_load
    def make_object(self, data: JSON, **kwargs: Any) -> "__model__":
        """Build model for the given `__model__` class attribute."""
        return self.__model__(**data)


class ObjectMeta(BaseModel):
    name: str
    namespace: Optional[str]
    resource_version: str
    generation: int
    uid: str
    creation_timestamp: Optional[str]
    deletion_timestamp: Optional[str]
    labels: Dict[str, str]
    annotations: Dict[str, str]


class ObjectMetaSchema(BaseSchema):
    __model__ = ObjectMeta

    name = fields.Str(load_default="")
    namespace = fields.Str(load_default=None, allow_none=True)
    resource_version = fields.Str(data_key="resourceVersion", load_default="")
    generation = fields.Int(load_default=0)
    uid = fields.Str(load_default="")
    creation_timestamp = fields.Raw(
        data_key="creationTimestamp", load_default=None, allow_none=True
    )
    deletion_timestamp = fields.Raw(
        data_key="deletionTimestamp", load_default=None, allow_none=True
    )
    labels = fields.Dict(keys=fields.Str(), values=fields.Str(), load_default=dict)
    annotations = fields.Dict(
        keys=fields.Str(), values=fields.Str(), load_default=dict
    )


class BaseObjectSchema(BaseSchema):
    """Schema for a whole Kubernetes object body.

    Missing or null sections listed in `__sections__` are loaded as empty
    mappings so that their nested schemas apply defaults.
    """

    __sections__ = ("metadata", "spec", "status")

    @pre_load
    def fill_sections(self, data: JSON, **kwargs: Any) -> JSON:
        data = dict(data or {})
        for section in self.__sections__:
            if data.get(section) is None:
                data[section] = {}
        return data
