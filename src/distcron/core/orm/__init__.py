"""SQLAlchemy ORM layer for the job store.

Public API::

    from distcron.core.orm import (
        DistcronBase,
        JobTable,
        JobHistoryTable,
        create_distcron_engine,
        session_factory,
        init_schema,
        is_memory_url,
        wait_for_database,
    )
"""

from distcron.core.orm.base import DistcronBase
from distcron.core.orm.session import (
    DistcronSession,
    create_distcron_engine,
    init_schema,
    is_memory_url,
    session_factory,
    wait_for_database,
)
from distcron.core.orm.tables import JobHistoryTable, JobTable

__all__ = [
    "DistcronBase",
    "DistcronSession",
    "JobHistoryTable",
    "JobTable",
    "create_distcron_engine",
    "init_schema",
    "is_memory_url",
    "session_factory",
    "wait_for_database",
]
