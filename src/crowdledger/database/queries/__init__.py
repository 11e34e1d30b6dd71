"""Database query functions for crowdledger."""

from crowdledger.database.queries.state import (
    delete_instance,
    list_instances,
    load_entries,
    replace_entries,
)

__all__ = [
    "load_entries",
    "replace_entries",
    "delete_instance",
    "list_instances",
]
