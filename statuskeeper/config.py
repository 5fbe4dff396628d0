"""Storage configuration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

SQL_STORAGE_REQUIRES_PATH = "sql storage requires a non-empty path to be defined"
MEMORY_STORAGE_DOES_NOT_SUPPORT_PATH = (
    "memory storage does not support persistence, use sqlite if you want persistence on file"
)


class StorageType(str, Enum):
    """The kind of store backing the application."""

    MEMORY = "memory"
    SQLITE = "sqlite"
    POSTGRES = "postgres"


class StorageConfigError(ValueError):
    """The storage configuration is invalid."""


@dataclass
class StorageConfig:
    """Where and how results are stored.

    ``path`` enables persistence for the SQL stores; ``caching`` turns on a
    write-through cache for those stores.
    """

    path: str = ""
    type: str = ""
    caching: bool = False

    def validate_and_set_defaults(self) -> None:
        """Fill in the default type and raise StorageConfigError if invalid."""
        if not self.type:
            self.type = StorageType.MEMORY
        else:
            try:
                self.type = StorageType(self.type)
            except ValueError:
                pass
        if self.type in (StorageType.POSTGRES, StorageType.SQLITE) and not self.path:
            raise StorageConfigError(SQL_STORAGE_REQUIRES_PATH)
        if self.type == StorageType.MEMORY and self.path:
            raise StorageConfigError(MEMORY_STORAGE_DOES_NOT_SUPPORT_PATH)