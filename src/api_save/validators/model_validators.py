from typing import Any, Iterable

from sqlalchemy import inspect as sa_inspect


def get_column_keys(model) -> set[str]:
    """Attribute names of the columns mapped by an ORM model class."""
    return {attr.key for attr in sa_inspect(model).column_attrs}


def find_unknown_model_kwargs(model, keys: Iterable[str]) -> list[str]:
    """
    Return the keys that are not mapped columns of `model`.
    - model: the SQLAlchemy model class (not instance)
    - keys: field names of an incoming record, patch or filter
    """
    allowed = get_column_keys(model)
    return [k for k in keys if k not in allowed]


def get_primary_key_names(model) -> list[str]:
    mapper = sa_inspect(model)
    return [mapper.get_property_by_column(col).key for col in mapper.primary_key]


def entity_to_dict(entity) -> dict[str, Any]:
    """Plain mapping of an ORM instance's column attributes."""
    return {attr.key: getattr(entity, attr.key) for attr in sa_inspect(entity).mapper.column_attrs}
