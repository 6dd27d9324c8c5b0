from .plugin import MySQLConnector  # noqa: F401
