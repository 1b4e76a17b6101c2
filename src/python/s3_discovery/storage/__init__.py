# Storage subpackage

from .credentials import create_session
from .memory_store_gateway import MemoryStoreGateway
from .s3_store_gateway import S3StoreGateway
from .store_gateway import StoreGateway

__all__ = [
    "MemoryStoreGateway",
    "S3StoreGateway",
    "StoreGateway",
    "create_session",
]
