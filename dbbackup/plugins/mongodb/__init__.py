from .plugin import MongoDBConnector  # noqa: F401
