"""Field validation for account payloads.

Rules are table-driven: each whitelisted field declares its pattern, whether
it is required on create, and whether the owner may change it later. Any key
not in the table rejects the whole payload.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from accounts.app.core.config import settings
from accounts.app.core.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_PATTERN = re.compile(r"^[A-Za-z]+$")


@dataclass(frozen=True)
class FieldRule:
    pattern: Optional[re.Pattern] = None
    required: bool = True
    mutable: bool = False
    min_length: int = 1


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    field: Optional[str] = None
    reason: Optional[str] = None

    def raise_for_error(self) -> None:
        if not self.ok:
            raise ValidationError(f"{self.field}: {self.reason}", field=self.field)


FIELD_RULES: dict[str, FieldRule] = {
    "email": FieldRule(pattern=EMAIL_PATTERN, required=True, mutable=False),
    "first_name": FieldRule(pattern=NAME_PATTERN, required=True, mutable=True),
    "last_name": FieldRule(pattern=NAME_PATTERN, required=True, mutable=True),
    "password": FieldRule(required=True, mutable=True, min_length=settings.password_min_length),
}

PASS = ValidationResult(ok=True)


def _check_value(name: str, value: Any) -> ValidationResult:
    rule = FIELD_RULES[name]
    if not isinstance(value, str) or not value:
        return ValidationResult(False, name, "missing or not a string")
    if len(value) < rule.min_length:
        return ValidationResult(False, name, f"shorter than {rule.min_length}")
    if rule.pattern is not None and not rule.pattern.fullmatch(value):
        return ValidationResult(False, name, "does not match pattern")
    return PASS


def _first_unknown(payload: dict, allowed: set[str]) -> Optional[str]:
    for key in payload:
        if key not in allowed:
            return key
    return None


def validate_create(payload: Any) -> ValidationResult:
    """Validate a registration payload.

    Every key must be whitelisted and every required field present and valid.
    """
    if not isinstance(payload, dict):
        return ValidationResult(False, None, "payload is not an object")

    unknown = _first_unknown(payload, set(FIELD_RULES))
    if unknown is not None:
        return ValidationResult(False, unknown, "field not allowed")

    for name, rule in FIELD_RULES.items():
        if name not in payload:
            if rule.required:
                return ValidationResult(False, name, "required")
            continue
        result = _check_value(name, payload[name])
        if not result.ok:
            return result
    return PASS


def validate_update(payload: Any) -> ValidationResult:
    """Validate a self-update payload.

    Only mutable fields may appear. A restricted field rejects the request
    even if its value equals the stored one.
    """
    if not isinstance(payload, dict):
        return ValidationResult(False, None, "payload is not an object")
    if not payload:
        return ValidationResult(False, None, "nothing to update")

    mutable = {name for name, rule in FIELD_RULES.items() if rule.mutable}
    unknown = _first_unknown(payload, mutable)
    if unknown is not None:
        return ValidationResult(False, unknown, "field not allowed")

    for name, value in payload.items():
        result = _check_value(name, value)
        if not result.ok:
            return result
    return PASS
