"""SQLite-backed persistence layer for the caging service."""

from __future__ import annotations

from typing import Any

from . import migrations
from .admin import AdminOperations
from .batches import BatchOperations
from .clients import ClientOperations
from .donations import DonationOperations
from .imports import ImportOperations
from .journal import JournalOperations
from .logging_config import get_logger
from .people import PeopleOperations
from .reconciliation import ReconciliationOperations
from .reports import ReportOperations

logger = get_logger(__name__)


class CagingStore(
    ClientOperations,
    AdminOperations,
    PeopleOperations,
    BatchOperations,
    DonationOperations,
    ReconciliationOperations,
    ImportOperations,
    JournalOperations,
    ReportOperations,
):
    """Persistence operations for clients, batches, donors, reconciliation and imports."""

    def init_db(self) -> dict[str, object]:
        """Upgrade the database to the latest revision and seed the default policy."""
        result = migrations.run_pending(self.db_path)
        with self._connect() as connection:
            self._seed_default_policy(connection)
        if result["applied"]:
            logger.info("Database %s migrated through %s", self.db_path, result["applied"][-1])
        return result

    def migration_status(self) -> list[dict[str, object]]:
        return migrations.migration_status(self.db_path)

    def apply_migrations(self, dry_run: bool = False) -> dict[str, object]:
        return migrations.run_pending(self.db_path, dry_run=dry_run)

    def describe_schema(self) -> list[dict[str, Any]]:
        with self._connect() as connection:
            return migrations.describe_schema(connection)
