from .plugin import S3StorageConnector  # noqa: F401
