"""Stored-procedure data sources.

Architecture::

    ProcedureSource (base.py)        Abstract base: parameters, result shaping,
        |                            async twins, call logging
        |-- MySqlSource (mysql.py)   mysql.connector, one connection per call

Guardrails:
    ❌ ``db.get_table("SELECT * FROM users")``
    ✅ ``db.get_table("sp_list_users")`` -- procedure names only, never SQL
    ❌ Sharing a driver connection between calls
    ✅ One ``MySqlSource`` per connection string, shared freely
"""

from .base import ProcedureSource
from .mysql import MySqlSource

__all__ = [
    "ProcedureSource",
    "MySqlSource",
]
