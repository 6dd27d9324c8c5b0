from .plugin import GoogleCloudStorageConnector  # noqa: F401
