"""RTM database model: enums, requirements, the Database aggregate and CSV I/O.

Usage:
    from rtmx.database import Database, Requirement, Status, Priority

    db = Database.load(".rtmx/database.csv")
    print(db.completion_percentage())
"""

from rtmx.database.enums import Priority, Status
from rtmx.database.string_set import StringSet
from rtmx.database.requirement import (
    Requirement,
    is_cross_db_ref,
    is_valid_req_id,
)
from rtmx.database.database import Database, completion_of
from rtmx.database.csv_store import (
    STANDARD_COLUMNS,
    load_database,
    save_database,
)

__all__ = [
    "Database",
    "Priority",
    "Requirement",
    "STANDARD_COLUMNS",
    "Status",
    "StringSet",
    "completion_of",
    "is_cross_db_ref",
    "is_valid_req_id",
    "load_database",
    "save_database",
]
