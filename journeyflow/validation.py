"""Boundary validation for API inputs.

Each validator is a pure function returning a :class:`ValidationResult`;
``combine`` folds several results into one.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-'.]+$")


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(True)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(False, error)


def combine(*results: ValidationResult) -> ValidationResult:
    """Merge results, joining every error message with ``", "``."""
    errors = [r.error for r in results if not r.is_valid and r.error]
    return ValidationResult.fail(", ".join(errors)) if errors else ValidationResult.ok()


def validate_string(
    value: Any,
    field: str,
    min_length: int = 1,
    max_length: Optional[int] = None,
    required: bool = True,
) -> ValidationResult:
    if value is None or value == "":
        return ValidationResult.fail(f"{field} is required") if required else ValidationResult.ok()
    if not isinstance(value, str):
        return ValidationResult.fail(f"{field} must be a string")
    if len(value) < min_length:
        return ValidationResult.fail(f"{field} must be at least {min_length} characters long")
    if max_length is not None and len(value) > max_length:
        return ValidationResult.fail(f"{field} must not exceed {max_length} characters")
    return ValidationResult.ok()


def validate_name(value: Any) -> ValidationResult:
    result = validate_string(value, "Name", min_length=2, max_length=100)
    if result.is_valid and not NAME_PATTERN.match(value):
        return ValidationResult.fail(
            "Name can only contain letters, spaces, hyphens, apostrophes, and periods"
        )
    return result


def validate_email(value: Any) -> ValidationResult:
    result = validate_string(value, "Email", max_length=254)
    if result.is_valid and not EMAIL_PATTERN.match(value):
        return ValidationResult.fail("Invalid email format")
    return result


def validate_preferences(value: Any) -> ValidationResult:
    if value is None:
        return ValidationResult.ok()
    if not isinstance(value, Mapping):
        return ValidationResult.fail("Preferences must be an object")
    checks = [
        validate_string(
            value.get("category"), "Category preference", max_length=50, required=False
        )
    ]
    notifications = value.get("notifications")
    if notifications is not None and not isinstance(notifications, bool):
        checks.append(ValidationResult.fail("Notifications preference must be a boolean"))
    return combine(*checks)


def validate_customer_id(value: Any) -> ValidationResult:
    if not value:
        return ValidationResult.fail("Customer ID is required")
    try:
        uuid.UUID(str(value))
    except ValueError:
        return ValidationResult.fail("Invalid customer ID format")
    return ValidationResult.ok()


def validate_customer_signup(data: Mapping[str, Any]) -> ValidationResult:
    return combine(
        validate_name(data.get("name")),
        validate_email(data.get("email")),
        validate_preferences(data.get("preferences")),
    )


def validate_product_visit(data: Mapping[str, Any]) -> ValidationResult:
    return combine(
        validate_string(data.get("product_id"), "Product ID"),
        validate_string(data.get("product_name"), "Product name", min_length=2, max_length=200),
        validate_string(data.get("category"), "Category", max_length=50, required=False),
    )
