from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase

from golfdraw.db.metadata import metadata_obj

# Primary and foreign keys: BigInteger, except on SQLite where only INTEGER
# primary keys autoincrement.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Declarative base sharing the draw engine's naming convention."""

    metadata = metadata_obj
