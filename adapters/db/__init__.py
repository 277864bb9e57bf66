"""
원장 저장소 어댑터

거래 그룹/계정과목 DB 접근은 SQLiteAdapter 하나로 통일.
"""

from adapters.db.sqlite_adapter import SQLiteAdapter, create_connection, get_db_path

__all__ = ["SQLiteAdapter", "create_connection", "get_db_path"]
