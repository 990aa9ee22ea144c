#!/usr/bin/env python3
"""
Infolock CLI Commands

Command-line access to the document vault. Exposed as the ``infolock``
console script via pyproject.toml.
"""

import argparse
import asyncio
import getpass
import json
import sys
from typing import Any, Dict, List, Optional

from loguru import logger

from .config import VaultConfig, load_config, setup_logging
from .exceptions import ConfigurationError, VaultError
from .models import Category, DocumentRecord
from ..infolock import Infolock

CATEGORY_CHOICES = [c.value for c in Category]


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per vault operation."""
    parser = argparse.ArgumentParser(
        prog="infolock",
        description="Manage documents in an Infolock vault"
    )
    parser.add_argument("--base-url", help="Backend API base URL (overrides config)")
    parser.add_argument("--token", help="Bearer token (overrides INFOLOCK_API_TOKEN)")
    parser.add_argument("--env-file", help="Path to a .env file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--json", action="store_true", help="Output results in JSON format")

    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="Log in and print a bearer token")
    login.add_argument("email")
    login.add_argument("--password", help="Password (prompted if omitted)")

    register = commands.add_parser("register", help="Create an account")
    register.add_argument("username")
    register.add_argument("email")
    register.add_argument("--password", help="Password (prompted if omitted)")

    listing = commands.add_parser("list", help="List documents")
    listing.add_argument("--search", help="Case-insensitive filter on name, category and tags")
    listing.add_argument("--category", choices=CATEGORY_CHOICES, help="Only list one category")

    upload = commands.add_parser("upload", help="Upload a file")
    upload.add_argument("path")
    upload.add_argument("--category", choices=CATEGORY_CHOICES, default=Category.PERSONAL.value)
    upload.add_argument("--name", help="Display name (defaults to the file name)")

    edit = commands.add_parser("edit", help="Edit a document's metadata or file")
    edit.add_argument("doc_id")
    edit.add_argument("--file", help="Replacement file")
    edit.add_argument("--category", choices=CATEGORY_CHOICES)
    edit.add_argument("--name", help="New display name")

    delete = commands.add_parser("delete", help="Delete a document")
    delete.add_argument("doc_id")

    download = commands.add_parser("download", help="Download a document")
    download.add_argument("doc_id")
    download.add_argument("--name", help="File name to use if the server sends none")
    download.add_argument("--dest", help="Download directory (overrides config)")

    return parser


def _build_config(args: argparse.Namespace) -> VaultConfig:
    config = load_config(args.env_file)
    overrides: Dict[str, Any] = {}
    if args.base_url:
        overrides["api_base_url"] = args.base_url
    if args.token:
        overrides["api_token"] = args.token
    if getattr(args, "dest", None):
        overrides["download_dir"] = args.dest
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    if not overrides:
        return config
    try:
        return VaultConfig(**{**config.model_dump(), **overrides})
    except Exception as e:
        raise ConfigurationError(f"Invalid command-line settings: {str(e)}")


def _print_records(records: List[DocumentRecord], as_json: bool, summary: Optional[Dict[str, Any]] = None):
    """Print documents as a table or JSON."""
    if as_json:
        print(json.dumps([r.to_payload() for r in records], indent=2))
        return

    if summary is not None:
        print(f"{summary['total']} documents • {summary['matching']} matching search")
    if not records:
        print("No documents found")
        return

    print(f"{'ID':<8} {'TYPE':<6} {'CATEGORY':<13} {'SIZE':<13} {'UPLOADED':<13} NAME")
    print("-" * 72)
    for record in records:
        card = Infolock.describe(record)
        print(f"{card['id']:<8} {card['type']:<6} {card['category']:<13} {card['size']:<13} "
              f"{card['uploaded']:<13} {card['name']}")


def _print_result(payload: Dict[str, Any], as_json: bool):
    if as_json:
        print(json.dumps(payload, indent=2, default=str))
    else:
        for key, value in payload.items():
            print(f"{key}: {value}")


async def _run(args: argparse.Namespace, config: VaultConfig) -> None:
    async with Infolock(config=config) as vault:
        if args.command == "login":
            password = args.password or getpass.getpass("Password: ")
            token = await vault.login(args.email, password)
            _print_result({"token": token}, args.json)

        elif args.command == "register":
            password = args.password or getpass.getpass("Password: ")
            result = await vault.register(args.username, args.email, password)
            _print_result(result, args.json)

        elif args.command == "list":
            if args.category:
                vault.store.replace_all(await vault.repository.list_by_category(args.category))
            else:
                await vault.refresh()
            records = vault.search(args.search)
            _print_records(records, args.json, vault.store.summary())

        elif args.command == "upload":
            record = await vault.upload_file(args.path, args.category, args.name)
            _print_records([record], args.json)

        elif args.command == "edit":
            record = await vault.edit(args.doc_id, category=args.category, name=args.name, file=args.file)
            if record is not None:
                _print_records([record], args.json)

        elif args.command == "delete":
            await vault.delete(args.doc_id)
            _print_result({"deleted": args.doc_id}, args.json)

        elif args.command == "download":
            path = await vault.download(args.doc_id, args.name)
            _print_result({"saved": str(path)}, args.json)


def main(argv: Optional[List[str]] = None) -> int:
    """Console script entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = _build_config(args)
        setup_logging(config)
        asyncio.run(_run(args, config))
        return 0
    except VaultError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
