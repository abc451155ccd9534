"""
Map raw storage failures onto the ApiSaveError taxonomy.

`classify_error` is applied once, at the outer boundary of the save process.
Everything inside (main writer, reconciler, hooks, storage handles) raises
raw exceptions and leaves the decision to this module:

  - duplicate keys (document-store E11000 messages or SQL unique violations)
    become DUPLICATED_KEY_ERROR naming the offending field(s);
  - anything else becomes INTERNAL_ERROR with the raw error kept as
    `previous_error`;
  - an ApiSaveError is already classified and passes through unchanged.
"""
import re
import json
import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError

from api_save.config.settings import get_settings
from .integrity_classifier import classify_integrity_error, IntegrityKind
from .base import ApiSaveError, DuplicatedKeyError, InternalSaveError

logger = logging.getLogger(__name__)

DUPLICATED_KEY_MARKER = re.compile(r"E11000 duplicate key error")
_FIELD_SET_FRAGMENT = re.compile(r"{.*}")
_RELAXED_KEY = re.compile(r"""(['"])?([a-z0-9A-Z_]+)(['"])?:""")

GENERIC_DUPLICATE_MESSAGE = "A document already exists"


# -----------------------
# Field extraction helpers
# -----------------------

def sanitize_relaxed_json(fragment: str) -> str:
    """
    Quote the keys of a relaxed JSON object (`{ name: "x", 'code': 1 }`) so it
    can be parsed as strict JSON. Values are left as they are.
    """
    return _RELAXED_KEY.sub(r'"\2": ', fragment)


def _extract_fields_document_store(msg: str) -> list[str] | None:
    """
    'E11000 duplicate key error collection: db.products index: code_1 dup key: { code: "X1" }'
    -> ['code']
    """
    m = _FIELD_SET_FRAGMENT.search(msg)
    if not m:
        return None

    try:
        parsed = json.loads(sanitize_relaxed_json(m.group(0)))
    except ValueError:
        logger.debug("classifier.unparsable_key_fragment", extra={"fragment": m.group(0)[:200]})
        return None

    if not isinstance(parsed, dict) or not parsed:
        return None
    return list(parsed.keys())


def _extract_fields_postgres(msg: str) -> list[str] | None:
    # 'DETAIL:  Key (email, username)=(a@b.com, u) already exists.'
    m = re.search(r'key \((?P<cols>[^)]+)\)=', msg, flags=re.IGNORECASE)
    if m:
        return [c.strip().strip('"') for c in m.group("cols").split(",")]
    return None


def _extract_fields_sqlite(msg: str) -> list[str] | None:
    # 'UNIQUE constraint failed: products.code, products.store_id'
    m = re.search(r'UNIQUE constraint failed: (?P<cols>[^\n\[]+)', msg, flags=re.IGNORECASE)
    if m:
        return [c.split('.')[-1].strip() for c in re.split(r',\s*', m.group("cols").strip())]
    return None


def _extract_fields_mysql(msg: str) -> list[str] | None:
    # "Duplicate entry 'foo' for key 'products.code'"
    m = re.search(r"Duplicate entry .* for key '([^']+)'", msg, flags=re.IGNORECASE)
    if m:
        return [m.group(1).split('.')[-1]]
    return None


def extract_fields_from_integrity(exc: IntegrityError) -> list[str] | None:
    """Best-effort column extraction from a SQL unique violation (Postgres, SQLite, MySQL)."""
    msg = str(exc.orig) if exc.orig is not None else str(exc)
    for extractor in (_extract_fields_postgres, _extract_fields_sqlite, _extract_fields_mysql):
        fields = extractor(msg)
        if fields:
            return fields
    return None


def duplicated_key_message(fields: list[str] | None) -> str:
    if not fields:
        return GENERIC_DUPLICATE_MESSAGE
    quoted = ", ".join(f"'{field}'" for field in fields)
    return f"A document for field or fields: {quoted} already exists"


def _duplicate_fields(exc: BaseException) -> tuple[bool, list[str] | None, str | None]:
    """
    Return (is_duplicate, fields, constraint). Fields are None when the failure
    is a duplicate but the offending fields could not be read from it; the
    constraint name is only known for SQL drivers reporting diagnostics.
    """
    if isinstance(exc, IntegrityError):
        kind, constraint = classify_integrity_error(exc)
        if kind is IntegrityKind.UNIQUE:
            return True, extract_fields_from_integrity(exc), constraint
        return False, None, None

    msg = str(exc)
    if DUPLICATED_KEY_MARKER.search(msg):
        return True, _extract_fields_document_store(msg), None

    return False, None, None


# -----------------------
# Classifier
# -----------------------

def classify_error(exc: BaseException, entity: str | None = None) -> ApiSaveError:
    """
    Return the ApiSaveError for a failure raised while processing a save.
    """
    if isinstance(exc, ApiSaveError):
        return exc

    settings = get_settings()
    is_duplicate, fields, constraint = _duplicate_fields(exc)

    if is_duplicate:
        # expected client-level scenario, INFO without the raw store message
        logger.info(
            "classifier.duplicate_detected",
            extra={"entity": entity, "fields": fields, "constraint": constraint},
        )
        return DuplicatedKeyError(
            duplicated_key_message(fields),
            fields=fields,
            previous_error=exc,
            status_code=settings.DUPLICATED_KEY_STATUS_CODE,
        )

    logger.error(
        "classifier.internal_error",
        extra={"entity": entity, "error_type": type(exc).__name__},
        exc_info=exc,
    )
    return InternalSaveError(
        str(exc) or type(exc).__name__,
        previous_error=exc,
        status_code=settings.INTERNAL_ERROR_STATUS_CODE,
    )


@asynccontextmanager
async def save_error_handler(entity: str | None = None):
    """
    Usage:
        async with save_error_handler(config.entity):
            ... write main record, reconcile relationships, run hooks ...
    Any failure leaves the block as a classified ApiSaveError.
    """
    try:
        yield
    except ApiSaveError:
        raise
    except Exception as exc:
        raise classify_error(exc, entity) from exc
