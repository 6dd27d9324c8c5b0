from .plugin import AzureBlobStorageConnector  # noqa: F401
