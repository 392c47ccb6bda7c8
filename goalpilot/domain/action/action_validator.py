# Payload schema grammar & validation
#
# A schema is a plain value: named field specs discriminated by ``kind``.
# ``validate_payload`` interprets it without side effects and reports every
# violated constraint, not just the first one.

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field
import copy
import re

from goalpilot.domain.errors import SchemaValidationError, SchemaViolation


class _BaseField(BaseModel):
    required: bool = False
    default: Optional[Any] = None
    description: Optional[str] = None


class StringField(_BaseField):
    kind: Literal["string"] = "string"
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None


class IntegerField(_BaseField):
    kind: Literal["integer"] = "integer"
    minimum: Optional[int] = None
    maximum: Optional[int] = None


class NumberField(_BaseField):
    kind: Literal["number"] = "number"
    minimum: Optional[float] = None
    maximum: Optional[float] = None


class BooleanField(_BaseField):
    kind: Literal["boolean"] = "boolean"


class EnumField(_BaseField):
    kind: Literal["enum"] = "enum"
    values: List[Any]


class ArrayField(_BaseField):
    kind: Literal["array"] = "array"
    items: Optional["FieldSpec"] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None


class ObjectField(_BaseField):
    kind: Literal["object"] = "object"
    properties: Dict[str, "FieldSpec"] = Field(default_factory=dict)
    allow_extra: bool = True


FieldSpec = Annotated[
    Union[StringField, IntegerField, NumberField, BooleanField, EnumField, ArrayField, ObjectField],
    Field(discriminator="kind"),
]

ArrayField.model_rebuild()
ObjectField.model_rebuild()


_TYPE_ALIASES = {
    "string": "string",
    "str": "string",
    "integer": "integer",
    "int": "integer",
    "number": "number",
    "float": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "array": "array",
    "list": "array",
    "object": "object",
    "dict": "object",
    "enum": "enum",
}


def field_from_dict(spec: Dict[str, Any]) -> FieldSpec:
    """Build a field spec from the compact ``{"type": ..., "required": ...}`` form"""

    spec = dict(spec)
    if "enum" in spec:
        spec["values"] = spec.pop("enum")
        spec.pop("type", None)
        return EnumField(**spec)

    type_name = spec.pop("type", "string")
    kind = _TYPE_ALIASES.get(str(type_name).lower())
    if kind is None:
        raise ValueError(f"Unsupported field type: {type_name!r}")

    if kind == "array" and isinstance(spec.get("items"), dict):
        spec["items"] = field_from_dict(spec["items"])
    if kind == "object" and isinstance(spec.get("properties"), dict):
        spec["properties"] = {
            name: field_from_dict(sub) for name, sub in spec["properties"].items()
        }

    return _KIND_TO_MODEL[kind](**spec)


_KIND_TO_MODEL = {
    "string": StringField,
    "integer": IntegerField,
    "number": NumberField,
    "boolean": BooleanField,
    "enum": EnumField,
    "array": ArrayField,
    "object": ObjectField,
}


class ActionSchema(BaseModel):
    """Structural description of an action payload"""
    properties: Dict[str, FieldSpec] = Field(default_factory=dict)
    allow_extra: bool = Field(default=False, description="Drop undeclared keys instead of rejecting them")

    @classmethod
    def from_dict(cls, spec: Dict[str, Dict[str, Any]], allow_extra: bool = False) -> "ActionSchema":
        """Create a schema from ``{"field": {"type": "string", "required": True}}``"""

        return cls(
            properties={name: field_from_dict(sub) for name, sub in spec.items()},
            allow_extra=allow_extra,
        )

    @property
    def required_fields(self) -> List[str]:
        return [name for name, spec in self.properties.items() if spec.required]


def validate_payload(
    schema: ActionSchema,
    payload: Any,
    action_type: Optional[str] = None,
) -> Dict[str, Any]:
    """Validate a payload against a schema and return the normalized payload"""

    violations: List[SchemaViolation] = []

    if not isinstance(payload, dict):
        violations.append(SchemaViolation("$", f"expected object, got {_type_name(payload)}"))
        raise SchemaValidationError(action_type, violations)

    normalized = _check_object(schema.properties, schema.allow_extra, payload, "", violations)

    if violations:
        raise SchemaValidationError(action_type, violations)

    return normalized


def _check_object(
    properties: Dict[str, FieldSpec],
    allow_extra: bool,
    value: Dict[str, Any],
    path: str,
    violations: List[SchemaViolation],
) -> Dict[str, Any]:
    normalized: Dict[str, Any] = {}

    for name, spec in properties.items():
        field_path = f"{path}.{name}" if path else name
        if name not in value:
            if spec.required:
                violations.append(SchemaViolation(field_path, "required field is missing"))
            elif spec.default is not None:
                normalized[name] = copy.deepcopy(spec.default)
            continue
        normalized[name] = _check_value(spec, value[name], field_path, violations)

    for name in value:
        if name in properties:
            continue
        if not allow_extra:
            field_path = f"{path}.{name}" if path else name
            violations.append(SchemaViolation(field_path, "unexpected field"))

    return normalized


def _check_value(spec: FieldSpec, value: Any, path: str, violations: List[SchemaViolation]) -> Any:
    if isinstance(spec, StringField):
        if not isinstance(value, str):
            violations.append(SchemaViolation(path, f"expected string, got {_type_name(value)}"))
            return value
        if spec.min_length is not None and len(value) < spec.min_length:
            violations.append(SchemaViolation(path, f"shorter than {spec.min_length} characters"))
        if spec.max_length is not None and len(value) > spec.max_length:
            violations.append(SchemaViolation(path, f"longer than {spec.max_length} characters"))
        if spec.pattern is not None and re.fullmatch(spec.pattern, value) is None:
            violations.append(SchemaViolation(path, f"does not match pattern {spec.pattern!r}"))
        return value

    if isinstance(spec, (IntegerField, NumberField)):
        if isinstance(spec, IntegerField):
            valid = isinstance(value, int) and not isinstance(value, bool)
            expected = "integer"
        else:
            valid = isinstance(value, (int, float)) and not isinstance(value, bool)
            expected = "number"
        if not valid:
            violations.append(SchemaViolation(path, f"expected {expected}, got {_type_name(value)}"))
            return value
        if spec.minimum is not None and value < spec.minimum:
            violations.append(SchemaViolation(path, f"less than minimum {spec.minimum}"))
        if spec.maximum is not None and value > spec.maximum:
            violations.append(SchemaViolation(path, f"greater than maximum {spec.maximum}"))
        return value

    if isinstance(spec, BooleanField):
        if not isinstance(value, bool):
            violations.append(SchemaViolation(path, f"expected boolean, got {_type_name(value)}"))
        return value

    if isinstance(spec, EnumField):
        if value not in spec.values:
            allowed = ", ".join(repr(v) for v in spec.values)
            violations.append(SchemaViolation(path, f"must be one of {allowed}"))
        return value

    if isinstance(spec, ArrayField):
        if not isinstance(value, list):
            violations.append(SchemaViolation(path, f"expected array, got {_type_name(value)}"))
            return value
        if spec.min_items is not None and len(value) < spec.min_items:
            violations.append(SchemaViolation(path, f"fewer than {spec.min_items} items"))
        if spec.max_items is not None and len(value) > spec.max_items:
            violations.append(SchemaViolation(path, f"more than {spec.max_items} items"))
        if spec.items is None:
            return list(value)
        return [
            _check_value(spec.items, item, f"{path}[{index}]", violations)
            for index, item in enumerate(value)
        ]

    if isinstance(spec, ObjectField):
        if not isinstance(value, dict):
            violations.append(SchemaViolation(path, f"expected object, got {_type_name(value)}"))
            return value
        if not spec.properties:
            return dict(value)
        return _check_object(spec.properties, spec.allow_extra, value, path, violations)

    raise TypeError(f"Unsupported field spec: {spec!r}")


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (int, float)):
        return "number"
    return type(value).__name__
