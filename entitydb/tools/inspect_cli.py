"""
Inspection CLI for EntityDB databases.

Read-only commands for browsing entity tables from a terminal:
- count: Number of documents (rows, or names for versioned entities)
- list: Paginated ids or names
- show: Pretty-printed content of one document
- history: Versions of a versioned document

Usage:
    entitydb --db app.db --entity User count
    entitydb --db app.db --entity Config --versioned list --page 2
    entitydb --db app.db --entity Config --versioned show limits --version 3
    entitydb --db app.db --entity Config --versioned history limits

Invariants:
    - Nothing is created: a missing database or entity table exits with
      code 1 instead of being created empty
    - Missing documents exit with code 1 and a message on stderr
    - Content is printed as indented JSON
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from collections.abc import Sequence

import json_log_formatter

from ..config import StoreSettings
from ..database import Database
from ..errors import DatabaseNotFoundError, SchemaError
from ..schema import table_columns, table_name
from ..store import EntityStore, VersionedEntityStore

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 10
PACKAGE_LOGGER = "entitydb"


def setup_logging(settings: StoreSettings) -> None:
    """Configure logging based on settings.

    The configured level applies to the ``entitydb`` loggers; anything else
    logging through the root logger is held at WARNING.

    Args:
        settings: Store settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING)
    root_logger.handlers = [handler]

    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


class InspectCLI:
    """Commands over one entity store.

    Example:
        >>> cli = InspectCLI(VersionedEntityStore(db, "Config"))
        >>> print(cli.count())
    """

    def __init__(self, store: EntityStore | VersionedEntityStore) -> None:
        self.store = store

    @property
    def versioned(self) -> bool:
        return isinstance(self.store, VersionedEntityStore)

    def count(self) -> int:
        return self.store.count()

    def list_page(self, page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> tuple[list[str], int]:
        """Ids (or names) on one page.

        Args:
            page: 1-based page number
            per_page: Items per page

        Returns:
            Tuple of (items, total_pages)
        """
        page = max(page, 1)
        items = self.store.get_all(per_page, (page - 1) * per_page)
        total_pages = max(math.ceil(self.store.count() / per_page), 1)
        return items, total_pages

    def show(self, key: str, version: int | None = None) -> str | None:
        """Indented JSON content of a document, or None if it is missing."""
        if version is not None:
            if not isinstance(self.store, VersionedEntityStore):
                raise ValueError("--version requires a versioned entity")
            record = self.store.get_version(key, version)
        else:
            record = self.store.get(key)

        if record is None:
            return None
        return json.dumps(record.content, indent=2, sort_keys=True)

    def history(self, name: str, limit: int = DEFAULT_PER_PAGE, offset: int = 0) -> list[str]:
        """One line per version, newest first."""
        if not isinstance(self.store, VersionedEntityStore):
            raise ValueError("history requires a versioned entity")
        return [
            f"v{record.version}  {record.created_at}  {record.id}"
            for record in self.store.get_versions(name, limit, offset)
        ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="entitydb", description="EntityDB inspection tool")
    parser.add_argument("--db", help="Path to the SQLite database (default: ENTITYDB_DATABASE_PATH)")
    parser.add_argument("--entity", "-e", required=True, help="Entity type to inspect")
    parser.add_argument(
        "--versioned", action="store_true", help="Entity is stored with versions"
    )
    parser.add_argument(
        "--foreign-key",
        "-k",
        action="append",
        default=[],
        dest="foreign_keys",
        help="Declared foreign key column (repeatable)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("count", help="Count documents")

    list_parser = subparsers.add_parser("list", help="List ids or names")
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.add_argument("--per-page", type=int, default=DEFAULT_PER_PAGE)

    show_parser = subparsers.add_parser("show", help="Show document content")
    show_parser.add_argument("key", help="Document id, or name for versioned entities")
    show_parser.add_argument("--version", type=int, help="Specific version to show")

    history_parser = subparsers.add_parser("history", help="List versions of a document")
    history_parser.add_argument("name")
    history_parser.add_argument("--limit", type=int, default=DEFAULT_PER_PAGE)
    history_parser.add_argument("--offset", type=int, default=0)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point for the inspection tool."""
    args = build_parser().parse_args(argv)
    settings = StoreSettings()
    setup_logging(settings)
    settings.log_config()

    db_path = args.db or settings.database_path
    try:
        table = table_name(settings.table_prefix, args.entity)
        # Journal mode stays whatever the writers configured
        db = Database(db_path, wal_mode=False, busy_timeout_ms=settings.busy_timeout_ms, create=False)
    except SchemaError as e:
        print(str(e), file=sys.stderr)
        return 2
    except DatabaseNotFoundError as e:
        print(str(e), file=sys.stderr)
        return 1

    with db:
        columns = {column.lower() for column in table_columns(db, table)}
        if not columns:
            print(f"Entity table not found: {table}", file=sys.stderr)
            return 1
        if args.versioned and "version" not in columns:
            print(f"Entity table is not versioned: {table}", file=sys.stderr)
            return 2
        unknown = [key for key in args.foreign_keys if key.lower() not in columns]
        if unknown:
            print(f"Unknown foreign key column: {unknown[0]}", file=sys.stderr)
            return 2

        store: EntityStore | VersionedEntityStore
        if args.versioned:
            store = VersionedEntityStore(
                db,
                args.entity,
                args.foreign_keys,
                max_retries=settings.max_retries,
                retry_delay_ms=settings.retry_delay_ms,
                table_prefix=settings.table_prefix,
            )
        else:
            store = EntityStore(db, args.entity, args.foreign_keys, table_prefix=settings.table_prefix)
        cli = InspectCLI(store)

        if args.command == "count":
            print(cli.count())

        elif args.command == "list":
            items, total_pages = cli.list_page(args.page, args.per_page)
            for item in items:
                print(item)
            print(f"Page {max(args.page, 1)} of {total_pages}", file=sys.stderr)

        elif args.command == "show":
            try:
                output = cli.show(args.key, args.version)
            except ValueError as e:
                print(str(e), file=sys.stderr)
                return 2
            if output is None:
                print(f"Document not found: {args.key}", file=sys.stderr)
                return 1
            print(output)

        elif args.command == "history":
            try:
                lines = cli.history(args.name, args.limit, args.offset)
            except ValueError as e:
                print(str(e), file=sys.stderr)
                return 2
            if not lines:
                print(f"Document not found: {args.name}", file=sys.stderr)
                return 1
            for line in lines:
                print(line)

    return 0


if __name__ == "__main__":
    sys.exit(main())
