from .plugin import PostgreSQLConnector  # noqa: F401
