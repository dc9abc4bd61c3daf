"""SQL Validator: read-only keyword filter applied before anything executes.

This is a heuristic, not a parser: keywords hidden inside comments, string
literals or after whitespace following a ';' are not detected. The database
role should still be read-only.
"""
from dataclasses import dataclass

# Statements that write, change schema/privileges or control transactions.
# Matched as prefixes of the statement or of the text right after a ';'.
MUTATING_KEYWORDS: tuple[str, ...] = (
    "insert",
    "update",
    "delete",
    "drop",
    "create",
    "alter",
    "truncate",
    "rename",
    "grant",
    "revoke",
    "commit",
    "rollback",
    "begin",
    "start",
)


@dataclass
class ValidationResult:
    is_valid: bool
    error: str | None = None


def is_mutating(sql: str) -> bool:
    """Return True if the SQL starts with, or has right after a ';', a mutating keyword."""
    normalized = sql.strip().lower()
    for keyword in MUTATING_KEYWORDS:
        if normalized.startswith(keyword) or f";{keyword}" in normalized:
            return True
    return False


def validate_sql(sql: str) -> ValidationResult:
    if not sql or not sql.strip():
        return ValidationResult(is_valid=False, error="SQL query cannot be empty")

    if is_mutating(sql):
        return ValidationResult(is_valid=False, error="Only SELECT queries are allowed")

    return ValidationResult(is_valid=True)
