"""Database access for LocalPulse."""

from .connection import Database, DatabaseConfig
from .init import init_database, validate_connection
from .items import ItemRepository
from .runs import RunManager
from .sources import SourceManager
from .stories import StoryRepository
from .writer import AdaptiveWriter, TableSchema, WriteOutcome, WriteResult

__all__ = [
    "AdaptiveWriter",
    "Database",
    "DatabaseConfig",
    "ItemRepository",
    "RunManager",
    "SourceManager",
    "StoryRepository",
    "TableSchema",
    "WriteOutcome",
    "WriteResult",
    "init_database",
    "validate_connection",
]
