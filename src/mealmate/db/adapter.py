"""
Database Adapter Protocol.

The meal store talks to the document database through this thin,
PostgREST-shaped interface: table() returns a fluent query builder.
The Supabase client satisfies it directly; tests substitute an
in-memory table with the same builder methods.

Only single-document writes are issued. No multi-document
transactions are used or required.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DatabaseAdapter(Protocol):
    """
    Abstract database access for the meal store.

    The returned builder must support the subset of the PostgREST fluent
    API the store uses: .select(), .insert(), .update(), .delete(),
    .eq(), .gte(), .lte(), .is_(), .limit(), .order() and .execute(),
    where .execute() yields an object with a .data list of row dicts.
    """

    def table(self, name: str) -> Any:
        """Return a query builder for the given table."""
        ...
