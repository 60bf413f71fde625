from types import SimpleNamespace
from typing import Any, Dict
from marshmallow import INCLUDE, Schema, post_load

JSON = Dict[str, Any]
MAX_REPR_LEN = 80


class BaseModel(SimpleNamespace):
    """BaseModel that all models should inherit from.

    Args:
        **kwargs: All passed parameters as converted to instance attributes.
    """

    def __init__(self, **kwargs: Any) -> None:
        self.__dict__.update(kwargs)

    def __repr__(self) -> str:
        repr_ = super().__repr__()
        if len(repr_) > MAX_REPR_LEN:
            return repr_[:MAX_REPR_LEN] + " ...)"
        else:
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
            elif isinstance(value, dict):
                result[key] = dict(value)
            else:
                result[key] = value
        return result


class UnknownModel(BaseModel):
    """A convenience class that inherits from `BaseModel`."""


class BaseSchema(Schema):
    """The default schema for all models.

    Unknown keys are kept on the loaded model so that fields added to the
    CRD later do not break older operators.
    """

    __model__: Any = UnknownModel
    """Determine the object that is created when the load method is called."""

    class Meta:
        unknown = INCLUDE

    @post_load
    def make_object(self, data: JSON, **kwargs: Any) -> "__model__":
        """Build model for the given `__model__` class attribute."""
        return self.__model__(**data)
