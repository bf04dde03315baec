"""
Popup Service Base Contracts

Shared pydantic base models. Popup definitions arrive from an external
authoring tool, so optional fields that fail validation fall back to their
declared defaults instead of rejecting the whole definition.
"""

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, ValidationInfo, field_validator

logger = logging.getLogger(__name__)


class BaseContract(BaseModel):
    """Base model for all popup service models"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


def fallback_to_default(model: type, value: Any, handler, info: ValidationInfo) -> Any:
    """
    Wrap-validator body: validate ``value`` or return the field default.

    Required fields keep raising.
    """
    try:
        return handler(value)
    except ValidationError:
        field = model.model_fields.get(info.field_name)
        if field is None or field.is_required():
            raise
        default = field.get_default(call_default_factory=True)
        logger.warning(
            f"Invalid value for {model.__name__}.{info.field_name}: {value!r}, "
            f"using default {default!r}"
        )
        return default


class LenientContract(BaseContract):
    """Base model whose optional fields degrade to defaults on bad input"""

    @field_validator("*", mode="wrap")
    @classmethod
    def _fallback_to_default(cls, value: Any, handler, info: ValidationInfo) -> Any:
        return fallback_to_default(cls, value, handler, info)


__all__ = ["BaseContract", "LenientContract", "fallback_to_default"]
