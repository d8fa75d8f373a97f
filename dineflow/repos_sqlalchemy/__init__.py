"""SQLAlchemy-backed storage collaborator.

The helpers in this package are the query and CRUD primitives consumed by
the services. They operate on ``AsyncSession`` instances and never commit;
the calling service owns the transaction so that a whole operation is
written or rolled back as one unit.
"""

from . import (
    audit_repo_sql,
    menu_repo_sql,
    orders_repo_sql,
    payments_repo_sql,
    reservations_repo_sql,
    tables_repo_sql,
)

__all__ = [
    "audit_repo_sql",
    "menu_repo_sql",
    "orders_repo_sql",
    "payments_repo_sql",
    "reservations_repo_sql",
    "tables_repo_sql",
]
