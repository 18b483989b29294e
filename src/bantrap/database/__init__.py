"""
Database package for Bantrap.

Public API:
    - db_connection: ConnectionManager class wrapping one aiosqlite connection
    - db_schema: SchemaManager creating the trap settings tables
"""
