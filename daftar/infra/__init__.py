"""لایهٔ زیرساختی: SQLite، Excel، مدل زبانی، نشست و خط فرمان."""

from daftar.infra.errors import (
    DatabaseOperationError,
    InfraError,
    SchemaVersionMismatchError,
)
from daftar.infra.sqlite_config import configure_connection

__all__ = [
    "DatabaseOperationError",
    "InfraError",
    "SchemaVersionMismatchError",
    "configure_connection",
]
