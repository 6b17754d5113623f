#!/usr/bin/env python3
"""
Semantic Notes CLI - store notes locally and find them again by meaning.

Usage:
    # Add a note
    python main.py add "Buy milk and eggs" --category Personal

    # Search by meaning
    python main.py search "grocery shopping"

    # List and delete
    python main.py list
    python main.py delete 3

    # Interactive session (model is loaded once)
    python main.py shell
"""

import argparse
import asyncio
import shlex
import sys
from dataclasses import replace
from typing import Dict

from tqdm import tqdm

from semantic_notes.config import Settings, configure_logging
from semantic_notes.core.domain.note import DEFAULT_CATEGORIES
from semantic_notes.host.client import NoteClient, RequestFailed
from semantic_notes.worker.protocol import Progress


class ProgressBars:
    """Renders model download progress as one tqdm bar per file."""

    def __init__(self):
        self.bars: Dict[str, tqdm] = {}

    def __call__(self, event: Progress) -> None:
        bar = self.bars.get(event.file)
        if bar is None:
            bar = tqdm(total=event.bytes_total or None, desc=event.file, unit="B", unit_scale=True, leave=False)
            self.bars[event.file] = bar
        bar.update(event.bytes_loaded - bar.n)
        if event.percent >= 100:
            bar.close()

    def close(self) -> None:
        for bar in self.bars.values():
            bar.close()


def print_notes(notes: list):
    if not notes:
        print("No notes yet.")
        return
    for note in notes:
        print(f"  #{note['id']:<4} [{note['category']}] {note['text']}  ({note['created_at']})")


def print_results(results: list):
    if not results:
        print("No matching notes.")
        return
    for result in results:
        match = (1.0 - result["distance"]) * 100
        print(f"  {match:5.1f}%  [{result['category']}] {result['text']}")


async def run_command(client: NoteClient, args: argparse.Namespace):
    if args.command == "add":
        await client.add_note(args.text, args.category)
        print(f"Added note: {args.text}")
        if client.refresh_after_add:
            print_notes(client.notes)
    elif args.command == "search":
        print_results(await client.search(args.query))
    elif args.command == "list":
        print_notes(await client.list_notes())
    elif args.command == "delete":
        await client.delete_note(args.id)
        print(f"Deleted note #{args.id}")


async def shell(client: NoteClient, parser: argparse.ArgumentParser):
    print("Type a command (add/search/list/delete), or 'quit' to exit.")
    loop = asyncio.get_running_loop()
    while True:
        try:
            line = await loop.run_in_executor(None, input, "notes> ")
        except EOFError:
            break
        line = line.strip()
        if line in ("quit", "exit"):
            break
        if not line:
            continue
        try:
            args = parser.parse_args(shlex.split(line))
        except SystemExit:
            continue
        if args.command == "shell":
            continue
        try:
            await run_command(client, args)
        except RequestFailed as e:
            print(f"Error: {e}")


async def run(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    settings = Settings.from_env()
    if args.memory:
        settings = replace(settings, durable=False)

    bars = ProgressBars()
    client = NoteClient(settings=settings, on_progress=bars)
    print(f"Loading embedding model ({settings.model_name})...")
    try:
        await client.start()
    except RequestFailed as e:
        print(f"Initialization failed: {e}")
        await client.close()
        return 1
    finally:
        bars.close()

    try:
        if args.command == "shell":
            await shell(client, parser)
        else:
            await run_command(client, args)
    except RequestFailed as e:
        print(f"Error: {e}")
        return 1
    finally:
        await client.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Local semantic note store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Use a throwaway in-memory store instead of the database file"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add", help="Add a note")
    add.add_argument("text", type=str)
    add.add_argument(
        "--category", "-c",
        type=str,
        default=DEFAULT_CATEGORIES[0],
        help=f"Note category (usually one of: {', '.join(DEFAULT_CATEGORIES)})"
    )

    search = commands.add_parser("search", help="Find notes by meaning")
    search.add_argument("query", type=str)

    commands.add_parser("list", help="List all notes, newest first")

    delete = commands.add_parser("delete", help="Delete a note by id")
    delete.add_argument("id", type=int)

    commands.add_parser("shell", help="Interactive session")
    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    return asyncio.run(run(args, parser))


if __name__ == "__main__":
    sys.exit(main())
