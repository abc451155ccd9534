"""
Declarative base for the ORM models persisted through the save pipeline
(primary entities and association tables).

Constraint names are deterministic: Postgres reports them in unique-violation
diagnostics, which the error classifier logs next to the offending fields.
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    def __repr__(self) -> str:
        keys = ", ".join(f"{col.key}={getattr(self, col.key, None)!r}" for col in self.__table__.primary_key)
        return f"<{type(self).__name__} {keys}>"
