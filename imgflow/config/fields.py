"""
Per-field upload configuration.

Callers describe each upload field either as a bare directory string or as a
structured mapping. ``normalize_field_config`` turns both shapes into one
canonical, immutable ``FieldSpec`` before any other component sees it, so the
rest of the pipeline never inspects raw configuration.

The structured shape is loaded through marshmallow schemas. Keys may be given in
camelCase (``maxCount``, ``withoutEnlargement``, ``compressionLevel``) or in
snake_case. Only the shape is checked here; the content of ``dir`` is left to
the path sandbox.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

import structlog
from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load, pre_load, validate

from imgflow.utils.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

FIT_POLICIES = ("cover", "contain", "fill", "inside", "outside")


@dataclass(frozen=True)
class ResizeOptions:
    width: Optional[int] = None
    height: Optional[int] = None
    fit: Optional[str] = None
    without_enlargement: Optional[bool] = None


@dataclass(frozen=True)
class OutputOptions:
    format: Optional[str] = None
    quality: Optional[int] = None
    compression_level: Optional[int] = None


@dataclass(frozen=True)
class FieldSpec:
    """Canonical configuration of one upload field."""

    dir: str
    max_count: int = 1
    resize: Optional[ResizeOptions] = None
    output: Optional[OutputOptions] = None


RawFieldConfig = Union[str, FieldSpec, Mapping[str, Any]]

# snake_case aliases accepted next to the camelCase keys
_KEY_ALIASES = {
    'max_count': 'maxCount',
    'without_enlargement': 'withoutEnlargement',
    'compression_level': 'compressionLevel',
}


def _apply_aliases(data: Any) -> Any:
    if not isinstance(data, Mapping):
        return data
    renamed = {}
    for key, value in data.items():
        target = _KEY_ALIASES.get(key, key)
        if target in renamed and key != target:
            continue
        renamed[target] = value
    return renamed


class _AliasSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    @pre_load
    def accept_snake_case(self, data, **kwargs):
        return _apply_aliases(data)


class ResizeOptionsSchema(_AliasSchema):
    width = fields.Integer(allow_none=True, validate=validate.Range(min=1))
    height = fields.Integer(allow_none=True, validate=validate.Range(min=1))
    fit = fields.String(allow_none=True, validate=validate.OneOf(FIT_POLICIES))
    without_enlargement = fields.Boolean(allow_none=True, data_key='withoutEnlargement')

    @post_load
    def make_options(self, data, **kwargs):
        return ResizeOptions(**data)


class OutputOptionsSchema(_AliasSchema):
    format = fields.String(allow_none=True)
    quality = fields.Integer(allow_none=True, validate=validate.Range(min=1, max=100))
    compression_level = fields.Integer(
        allow_none=True,
        data_key='compressionLevel',
        validate=validate.Range(min=0, max=9)
    )

    @post_load
    def make_options(self, data, **kwargs):
        return OutputOptions(**data)


class FieldConfigSchema(_AliasSchema):
    dir = fields.String(required=True)
    max_count = fields.Integer(
        load_default=1,
        data_key='maxCount',
        validate=validate.Range(min=1)
    )
    resize = fields.Nested(ResizeOptionsSchema, allow_none=True)
    output = fields.Nested(OutputOptionsSchema, allow_none=True)

    @post_load
    def make_spec(self, data, **kwargs):
        if data.get('max_count') is None:
            data['max_count'] = 1
        return FieldSpec(**data)


_field_schema = FieldConfigSchema()


def normalize_field_config(raw: RawFieldConfig, field: Optional[str] = None) -> FieldSpec:
    """
    Normalize one field configuration into a ``FieldSpec``.

    Args:
        raw: Directory string, structured mapping, or an existing FieldSpec
        field: Field name, used for error context only

    Returns:
        Canonical FieldSpec with defaults applied

    Raises:
        ConfigurationError: When the structured shape is malformed
    """
    if isinstance(raw, FieldSpec):
        return raw
    if isinstance(raw, str):
        return FieldSpec(dir=raw, max_count=1)
    if not isinstance(raw, Mapping):
        raise ConfigurationError(
            f"Field configuration must be a string or a mapping, got {type(raw).__name__}",
            details={'field': field}
        )

    try:
        return _field_schema.load(raw)
    except ValidationError as e:
        logger.warning("Invalid field configuration", field=field, errors=e.messages)
        raise ConfigurationError(
            f"Invalid configuration for field '{field}'" if field else "Invalid field configuration",
            details={'field': field, 'field_errors': e.messages}
        ) from e


def normalize_fields(raw_fields: Mapping[str, RawFieldConfig]) -> Dict[str, FieldSpec]:
    """Normalize a whole field mapping, keeping configuration order."""
    return {name: normalize_field_config(cfg, field=name) for name, cfg in raw_fields.items()}


__all__ = [
    'FIT_POLICIES',
    'ResizeOptions',
    'OutputOptions',
    'FieldSpec',
    'FieldConfigSchema',
    'normalize_field_config',
    'normalize_fields'
]
