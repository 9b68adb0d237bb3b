"""
Field validation & coercion for entity create/patch payloads.

Each entity declares a field schema; FieldValidator checks a payload
against it the same way for creates (required fields enforced) and
patches (only the provided fields are touched).
"""
from typing import Any, Dict

from .errors import ValidationError
from .schema import ProjectStatus, TaskStatus, Priority, to_utc, unique

# Fields no payload may set; the store owns them.
IMMUTABLE_FIELDS = ("id", "created_at", "updated_at")

PROJECT_FIELDS: Dict[str, Dict[str, Any]] = {
    "name": {"type": "string", "required": True, "non_empty": True},
    "description": {"type": "string", "default": ""},
    "status": {"type": "enum", "enum": ProjectStatus, "default": ProjectStatus.ACTIVE},
    "priority": {"type": "enum", "enum": Priority, "default": Priority.MEDIUM},
    "start_date": {"type": "datetime"},
    "end_date": {"type": "datetime", "nullable": True},
    "progress": {"type": "integer", "min": 0, "max": 100, "default": 0},
    "owner_id": {"type": "string", "default": ""},
    "team_members": {"type": "set", "default": ()},
}

TASK_FIELDS: Dict[str, Dict[str, Any]] = {
    "title": {"type": "string", "required": True, "non_empty": True},
    "project_id": {"type": "string", "required": True, "non_empty": True},
    "description": {"type": "string", "default": ""},
    "status": {"type": "enum", "enum": TaskStatus, "default": TaskStatus.TODO},
    "priority": {"type": "enum", "enum": Priority, "default": Priority.MEDIUM},
    "assignee_id": {"type": "string", "nullable": True},
    "due_date": {"type": "datetime", "nullable": True},
    "tags": {"type": "set", "default": ()},
}


class FieldValidator:
    """
    Validates and coerces entity payloads against a field schema.

    Supports:
        - required fields and defaults (creates only)
        - non-empty strings
        - enum parsing by wire value
        - integer bounds
        - datetime coercion (datetime, date, ISO string)
        - set-valued fields as de-duplicated tuples
        - rejection of unknown and store-owned fields
    """

    def validate(self, data: Dict[str, Any], schema: Dict[str, Dict[str, Any]],
                 partial: bool = False) -> Dict[str, Any]:
        """
        Validate and coerce data against schema.

        With partial=True (patches) missing fields are left out instead of
        defaulted, and required fields are only checked when present.

        Raises:
            ValidationError with a user-facing message on failure.
        """
        if not isinstance(data, dict):
            raise ValidationError(f"Expected a mapping, got {type(data).__name__}")

        owned = sorted(set(data) & set(IMMUTABLE_FIELDS))
        if owned:
            raise ValidationError(f"Fields cannot be set by callers: {', '.join(owned)}")

        unknown = set(data) - set(schema)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        result: Dict[str, Any] = {}
        for name, rules in schema.items():
            if name not in data:
                if partial:
                    continue
                if rules.get("required"):
                    raise ValidationError(f"Missing required field: {name}")
                if "default" in rules:
                    result[name] = rules["default"]
                continue
            result[name] = self._coerce(name, data[name], rules)
        return result

    def _coerce(self, name: str, value: Any, rules: Dict[str, Any]) -> Any:
        field_type = rules.get("type", "string")

        if value is None:
            if rules.get("nullable"):
                return None
            raise ValidationError(f"Field {name} cannot be empty")

        # ── Type: string ──
        if field_type == "string":
            value = str(value)
            if rules.get("non_empty") and not value.strip():
                raise ValidationError(f"Field {name} cannot be empty")
            return value

        # ── Type: enum ──
        if field_type == "enum":
            return rules["enum"].parse(value)

        # ── Type: integer ──
        if field_type == "integer":
            if isinstance(value, bool):
                raise ValidationError(f"Field {name} must be an integer, got: {value!r}")
            try:
                number = int(value)
            except (ValueError, TypeError):
                raise ValidationError(f"Field {name} must be an integer, got: {value!r}")
            if isinstance(value, float) and number != value:
                raise ValidationError(f"Field {name} must be an integer, got: {value!r}")
            min_val = rules.get("min")
            max_val = rules.get("max")
            if min_val is not None and number < min_val:
                raise ValidationError(f"Field {name} must be >= {min_val}, got: {number}")
            if max_val is not None and number > max_val:
                raise ValidationError(f"Field {name} must be <= {max_val}, got: {number}")
            return number

        # ── Type: datetime ──
        if field_type == "datetime":
            dt = to_utc(value, name)
            if dt is None and not rules.get("nullable"):
                raise ValidationError(f"Field {name} cannot be empty")
            return dt

        # ── Type: set ──
        if field_type == "set":
            if isinstance(value, (str, bytes)):
                raise ValidationError(f"Field {name} must be a collection of strings")
            try:
                return unique(value)
            except TypeError:
                raise ValidationError(f"Field {name} must be a collection of strings")

        raise ValidationError(f"Unknown field type in schema: {field_type}")


def check_date_range(start, end) -> None:
    """end_date may not precede start_date."""
    if start is not None and end is not None and start > end:
        raise ValidationError(
            f"start_date {start.isoformat()} is after end_date {end.isoformat()}"
        )
