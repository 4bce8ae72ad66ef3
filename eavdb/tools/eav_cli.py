"""
Admin CLI for eavdb databases.

Commands:
- init: Create the EAV schema
- attributes: List the attribute registry
- entity: Print one entity as JSON
- list: Print all entities of a type as JSON
- stats: Print row counts

Usage:
    eav-admin --database campus.db init
    eav-admin attributes --format json
    eav-admin entity 12
    eav-admin list room --active

The database path comes from EAV_DATABASE_PATH unless --database is given.

Invariants:
    - Read commands never create a database file
    - JSON output is deterministic (sorted keys)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional

from ..config import Settings, setup_logging
from ..errors import EavError
from ..schema.registry import AttributeRegistry
from ..store.database import Database
from ..store.entity_store import EntityStore

logger = logging.getLogger(__name__)


def _dumps(data: Any) -> str:
    return json.dumps(data, indent=2, sort_keys=True, default=str)


class EavAdminCLI:
    """Administrative commands over one database.

    Example:
        >>> cli = EavAdminCLI(Settings(database_path="campus.db"))
        >>> print(await cli.stats())
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.db = Database.from_settings(settings)
        self.store = EntityStore(
            self.db,
            AttributeRegistry(self.db, type_policy=settings.attribute_type_policy),
        )

    async def init(self) -> str:
        await self.store.initialize()
        return f"Initialized {self.db.path}"

    async def attributes(self, output_format: str = "text") -> str:
        """Render the attribute registry as a table or JSON."""
        definitions = await self.store.registry.list_attributes()

        if output_format == "json":
            return _dumps([d.to_dict() for d in definitions])

        if not definitions:
            return "No attributes registered"

        width = max(len(d.name) for d in definitions)
        lines = [f"{'ID':>5}  {'NAME':<{width}}  {'TYPE':<8}  DESCRIPTION"]
        for d in definitions:
            lines.append(
                f"{d.attribute_id:>5}  {d.name:<{width}}  {d.data_type.value:<8}  {d.description}"
            )
        return "\n".join(lines)

    async def entity(self, entity_id: int) -> Optional[str]:
        entity = await self.store.get_entity_by_id(entity_id)
        return _dumps(entity) if entity is not None else None

    async def list_entities(self, entity_type: str, is_active: Optional[bool] = None) -> str:
        entities = await self.store.get_entities_by_type(entity_type, is_active=is_active)
        return _dumps(entities)

    async def stats(self) -> str:
        return _dumps(await self.store.get_stats())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eav-admin", description="eavdb admin tool")
    parser.add_argument("--database", "-d", help="SQLite database file (overrides EAV_DATABASE_PATH)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the EAV schema")

    attributes_parser = subparsers.add_parser("attributes", help="List registered attributes")
    attributes_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )

    entity_parser = subparsers.add_parser("entity", help="Print one entity as JSON")
    entity_parser.add_argument("entity_id", type=int, help="Entity id")

    list_parser = subparsers.add_parser("list", help="Print all entities of a type")
    list_parser.add_argument("entity_type", help="Entity type tag")
    active_group = list_parser.add_mutually_exclusive_group()
    active_group.add_argument(
        "--active", dest="is_active", action="store_const", const=True, help="Only active entities"
    )
    active_group.add_argument(
        "--inactive",
        dest="is_active",
        action="store_const",
        const=False,
        help="Only inactive entities",
    )

    subparsers.add_parser("stats", help="Show entity, attribute and value counts")
    return parser


async def _run(cli: EavAdminCLI, args: argparse.Namespace) -> int:
    if args.command == "init":
        print(await cli.init())
        return 0

    if not await cli.db.is_initialized():
        print(f"Database not initialized: {cli.db.path} (run 'eav-admin init')", file=sys.stderr)
        return 1

    if args.command == "attributes":
        print(await cli.attributes(args.format))
    elif args.command == "entity":
        output = await cli.entity(args.entity_id)
        if output is None:
            print(f"Entity {args.entity_id} not found", file=sys.stderr)
            return 1
        print(output)
    elif args.command == "list":
        print(await cli.list_entities(args.entity_type, args.is_active))
    elif args.command == "stats":
        print(await cli.stats())
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point for eav-admin."""
    args = build_parser().parse_args(argv)

    settings = Settings()
    if args.database:
        settings = settings.model_copy(update={"database_path": args.database})
    setup_logging(settings)

    try:
        return asyncio.run(_run(EavAdminCLI(settings), args))
    except EavError as e:
        logger.error(f"{e.code}: {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
