from .plugin import LocalStorageConnector  # noqa: F401
