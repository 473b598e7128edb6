"""Declarative base and type-map for the distcron tables.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map``
so ``Mapped[...]`` annotations resolve to portable column types.
"""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import DeclarativeBase


class DistcronBase(DeclarativeBase):
    """Shared declarative base for every distcron table.

    * ``str``  → ``Text``
    * ``int``  → ``Integer``
    * ``datetime.datetime`` → ``DateTime(timezone=True)``  (TIMESTAMPTZ on PostgreSQL)
    """

    type_annotation_map = {
        str: Text,
        int: Integer,
        datetime.datetime: DateTime(timezone=True),
    }
