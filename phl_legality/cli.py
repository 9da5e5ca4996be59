"""CLI interface for the Pioneer Highlander legality checker."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from phl_legality.config import AppConfig, load_config
from phl_legality.decklist import parse_decklist_text
from phl_legality.errors import PhlLegalityError
from phl_legality.models import ValidationResult
from phl_legality.service import LegalityService

console = Console()


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # Set up logging
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        args.func(args)
    except (PhlLegalityError, ValueError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="phl-legality",
        description="Pioneer Highlander card catalog and deck legality checker",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug)",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (default: config.yaml)",
    )
    parser.add_argument(
        "--build",
        action="store_true",
        help="Build-time invocation: a missing card cache is fatal",
    )
    parser.add_argument(
        "--cache-file",
        type=str,
        default=None,
        help="Override the card cache path",
    )

    subparsers = parser.add_subparsers(title="commands", dest="command")

    # download
    download_parser = subparsers.add_parser("download", help="Download and cache the card catalog")
    download_parser.set_defaults(func=_cmd_download)

    # check
    check_parser = subparsers.add_parser("check", help="Check a decklist file")
    check_parser.add_argument(
        "decklist",
        type=Path,
        help="Text file: '<qty> <name>' lines, a blank line, then the commander",
    )
    check_parser.add_argument("--json", action="store_true", help="Print the raw JSON result")
    check_parser.set_defaults(func=_cmd_check)

    # card
    card_parser = subparsers.add_parser("card", help="Look up a card and its legality")
    card_parser.add_argument("name", type=str, help="Card name or face name")
    card_parser.set_defaults(func=_cmd_card)

    # random
    random_parser = subparsers.add_parser("random", help="Show random legal cards")
    random_parser.add_argument("--count", type=int, default=6)
    random_parser.set_defaults(func=_cmd_random)

    # status
    status_parser = subparsers.add_parser("status", help="Show card cache status")
    status_parser.set_defaults(func=_cmd_status)

    return parser


def _load_app_config(args: argparse.Namespace) -> AppConfig:
    """Load config, applying CLI overrides."""
    return load_config(
        args.config,
        build_mode=True if args.build else None,
        cache_file=args.cache_file,
    )


async def _with_service(config: AppConfig, action):
    service = LegalityService(config)
    try:
        return await action(service)
    finally:
        await service.close()


# ------------------------------------------------------------------
# Command handlers
# ------------------------------------------------------------------


def _cmd_download(args: argparse.Namespace) -> None:
    config = _load_app_config(args)
    # Downloading is how the cache gets built, so it never runs in build mode
    config.build_mode = False

    async def action(service: LegalityService):
        await service.refresh()
        return service.downloader.last_stats

    stats = asyncio.run(_with_service(config, action))
    console.print(f"[green]Card catalog cached to {config.cache_path}[/green]")
    if stats is not None:
        table = Table(title="Catalog")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green", justify="right")
        table.add_row("Cards kept", str(stats.total_cards))
        table.add_row(f"{config.catalog.format.capitalize()} legal", str(stats.format_legal))
        table.add_row("Banned", str(stats.banned))
        table.add_row("Allowed list additions", str(stats.allowed))
        console.print(table)


def _cmd_check(args: argparse.Namespace) -> None:
    config = _load_app_config(args)
    decklist = parse_decklist_text(args.decklist.read_text(encoding="utf-8"))

    async def action(service: LegalityService) -> ValidationResult:
        return await service.check_legality(decklist)

    result = asyncio.run(_with_service(config, action))
    if args.json:
        console.print_json(json.dumps(result.to_dict()))
    else:
        _print_result(result)
    if not result.legal:
        sys.exit(1)


def _cmd_card(args: argparse.Namespace) -> None:
    config = _load_app_config(args)

    async def action(service: LegalityService):
        return await service.lookup_card(args.name)

    record = asyncio.run(_with_service(config, action))
    if record is None:
        console.print(f"[red]Card not found: {args.name}[/red]")
        sys.exit(1)
    console.print_json(json.dumps(record.to_dict()))


def _cmd_random(args: argparse.Namespace) -> None:
    config = _load_app_config(args)

    async def action(service: LegalityService):
        return await service.random_cards(args.count)

    cards = asyncio.run(_with_service(config, action))
    if not cards:
        console.print("[yellow]No cards available[/yellow]")
        return
    table = Table(title="Random legal cards")
    table.add_column("Name", style="cyan")
    table.add_column("Scryfall")
    for card in cards:
        table.add_row(card["name"], card["uri"] or "")
    console.print(table)


def _cmd_status(args: argparse.Namespace) -> None:
    config = _load_app_config(args)
    cache = config.cache_path

    table = Table(title="Card cache")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Path", str(cache))
    if cache.exists():
        stat = cache.stat()
        table.add_row("Size", f"{stat.st_size / (1024 * 1024):.1f} MB")
        table.add_row("Updated", datetime.fromtimestamp(stat.st_mtime).isoformat(timespec="seconds"))
        try:
            cards = json.loads(cache.read_text(encoding="utf-8"))
            table.add_row("Cards", str(len(cards)) if isinstance(cards, list) else "invalid")
        except ValueError:
            table.add_row("Cards", "[red]invalid JSON[/red]")
    else:
        table.add_row("Cards", "[yellow]not downloaded[/yellow]")
    table.add_row("Format", config.catalog.format)
    table.add_row("Lists", str(config.data_dir))
    console.print(table)


def _print_result(result: ValidationResult) -> None:
    verdict = "[bold green]LEGAL[/bold green]" if result.legal else "[bold red]NOT LEGAL[/bold red]"
    identity = "".join(result.color_identity) or "colorless"
    console.print(f"\n{verdict}  {result.commander_name} ({identity})")
    console.print(f"Deck size: {result.deck_size}/{result.required_size}\n")

    issues = [(key, msg) for key, msg in result.legal_issues.items() if msg]
    if issues:
        table = Table(title="Issues")
        table.add_column("Rule", style="cyan")
        table.add_column("Problem", style="red")
        for key, msg in issues:
            table.add_row(key.replace("_", " "), msg)
        console.print(table)

    for title, names in (
        ("Illegal cards", result.illegal_cards),
        ("Outside color identity", result.color_identity_violations),
        ("Non-singleton cards", result.non_singleton_cards),
    ):
        if names:
            console.print(f"[bold]{title}:[/bold] {', '.join(names)}")


if __name__ == "__main__":
    main()
