import logging
from enum import Enum

from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class IntegrityKind(str, Enum):
    """What a database integrity failure was about."""
    UNIQUE = "unique"
    NOT_NULL = "not_null"
    FOREIGN_KEY = "foreign_key"
    CHECK = "check"
    UNKNOWN = "unknown"


# https://www.postgresql.org/docs/current/errcodes-appendix.html
class PostgresErrorCodes(str, Enum):
    UNIQUE_VIOLATION = "23505"
    NOT_NULL_VIOLATION = "23502"
    FOREIGN_KEY_VIOLATION = "23503"
    CHECK_VIOLATION = "23514"


PGCODE_KIND_MAP = {
    PostgresErrorCodes.UNIQUE_VIOLATION.value: IntegrityKind.UNIQUE,
    PostgresErrorCodes.NOT_NULL_VIOLATION.value: IntegrityKind.NOT_NULL,
    PostgresErrorCodes.FOREIGN_KEY_VIOLATION.value: IntegrityKind.FOREIGN_KEY,
    PostgresErrorCodes.CHECK_VIOLATION.value: IntegrityKind.CHECK,
}


def _match_any(msg: str, keywords: list[str]) -> bool:
    return any(keyword in msg for keyword in keywords)


def _classify_from_postgres_diag(orig) -> tuple[IntegrityKind | None, str | None]:
    """
    Classify using the driver's SQLSTATE (`pgcode`, or `sqlstate` for asyncpg)
    and constraint diagnostics when present.
    """
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if not pgcode:
        return None, None

    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None) if diag else None
    constraint_name = constraint_name or getattr(orig, "constraint_name", None)

    kind = PGCODE_KIND_MAP.get(str(pgcode))
    if kind:
        logger.debug(
            "integrity.postgres_diagnostic",
            extra={"pgcode": pgcode, "constraint_name": constraint_name},
        )
        return kind, constraint_name

    logger.warning(
        "integrity.unknown_pgcode",
        extra={"pgcode": pgcode, "constraint_name": constraint_name},
    )
    return IntegrityKind.UNKNOWN, constraint_name


def _classify_from_generic_message(msg: str) -> IntegrityKind:
    """Fallback for SQLite, MySQL and drivers without SQLSTATE attributes."""
    normalized = msg.lower()

    if _match_any(normalized, ["unique constraint", "unique failed", "unique violation", "duplicate"]):
        return IntegrityKind.UNIQUE

    if _match_any(normalized, ["not null constraint", "not null", "null value in column"]):
        return IntegrityKind.NOT_NULL

    if _match_any(normalized, ["foreign key constraint", "foreign key", "is not present in table"]):
        return IntegrityKind.FOREIGN_KEY

    if _match_any(normalized, ["check constraint", "check failed"]):
        return IntegrityKind.CHECK

    logger.debug("integrity.unknown_message", extra={"message_snippet": (msg or "")[:200]})
    return IntegrityKind.UNKNOWN


def classify_integrity_error(exc: IntegrityError) -> tuple[IntegrityKind, str | None]:
    """
    Heuristically classify a SQLAlchemy IntegrityError.

    Returns:
        (IntegrityKind, constraint name if the driver reported one)
    """
    orig = exc.orig

    kind, constraint_name = _classify_from_postgres_diag(orig)
    if kind is not None:
        return kind, constraint_name

    return _classify_from_generic_message(str(orig) if orig is not None else str(exc)), None
