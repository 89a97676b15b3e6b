from dal.pocketbase.client import PocketBaseClient, escape_filter_value
from dal.pocketbase.errors import PocketBaseConnectionError, PocketBaseError

__all__ = [
    "PocketBaseClient",
    "PocketBaseConnectionError",
    "PocketBaseError",
    "escape_filter_value",
]
