"""
Input validation for values crossing a trust boundary.

Two kinds of untrusted text reach this package: the configured product
table name, which is interpolated into SQL as an identifier, and the names
of uploaded files.
"""

import re

# PostgreSQL truncates identifiers beyond NAMEDATALEN - 1 bytes
MAX_IDENTIFIER_LENGTH = 63
MAX_FILE_NAME_LENGTH = 255

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Keywords that would make a confusing (or, unquoted, invalid) table name
RESERVED_IDENTIFIERS = frozenset(
    {
        "alter", "create", "database", "delete", "drop", "from", "grant",
        "index", "insert", "revoke", "select", "table", "update", "user",
        "view", "where",
    }
)


class ValidationError(ValueError):
    """Raised when an untrusted value is refused."""


def _require_text(value, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must be a non-empty string")
    return value.strip()


def sanitize_sql_identifier(identifier: str, field_name: str = "identifier") -> str:
    """
    Validate a table or column name destined for dynamic SQL.

    Only plain identifiers are accepted: a letter or underscore followed by
    letters, digits or underscores, at most 63 characters, and not a
    reserved keyword.

    Args:
        identifier: Candidate identifier
        field_name: Name used in error messages

    Returns:
        The identifier with surrounding whitespace removed

    Raises:
        ValidationError: If the identifier is unsafe

    Examples:
        >>> sanitize_sql_identifier(" pim_product ")
        'pim_product'
        >>> sanitize_sql_identifier("pim_product; DROP TABLE x")  # doctest: +SKIP
        ValidationError: table contains invalid characters ...
    """
    identifier = _require_text(identifier, field_name)

    if not _IDENTIFIER_PATTERN.match(identifier):
        raise ValidationError(
            f"{field_name} contains invalid characters. Use a letter or underscore "
            "followed by letters, digits and underscores."
        )

    if len(identifier) > MAX_IDENTIFIER_LENGTH:
        raise ValidationError(
            f"{field_name} is longer than the PostgreSQL limit of {MAX_IDENTIFIER_LENGTH} characters"
        )

    if identifier.lower() in RESERVED_IDENTIFIERS:
        raise ValidationError(f"{field_name} '{identifier}' is a reserved SQL keyword")

    return identifier


def validate_file_name(file_name: str, field_name: str = "file_name") -> str:
    """
    Validate the name of an uploaded file.

    Names carrying directory traversal, path separators or NUL bytes are
    refused rather than cleaned up.

    Args:
        file_name: Name as sent by the client
        field_name: Name used in error messages

    Returns:
        The name with surrounding whitespace removed

    Raises:
        ValidationError: If the name is unsafe
    """
    file_name = _require_text(file_name, field_name)

    if ".." in file_name:
        raise ValidationError(f"{field_name} contains path traversal characters (..)")

    if "/" in file_name or "\\" in file_name:
        raise ValidationError(f"{field_name} must be a base name without directories")

    if "\x00" in file_name:
        raise ValidationError(f"{field_name} contains null bytes")

    if len(file_name) > MAX_FILE_NAME_LENGTH:
        raise ValidationError(f"{field_name} exceeds maximum length of {MAX_FILE_NAME_LENGTH} characters")

    return file_name
