#!/usr/bin/env python3
"""Seed a reference snippet for a user.

Usage examples:
    uv run python scripts/add_snippet.py user_123 "Debounce hook" "React hook that debounces a value"

    # List what the chat will see as retrieval context
    uv run python scripts/add_snippet.py user_123 --list
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.config import settings
from src.db import Database
from src.store.snippets import SnippetStore


async def _run(args: argparse.Namespace) -> None:
    db = Database.get()
    store = SnippetStore(db)
    try:
        if args.list:
            snippets = await store.list_by_user(args.user_id, limit=settings.snippet_context_limit)
            if not snippets:
                print("(no snippets)")
            for s in snippets:
                print(f"{s.id}  {s.title}: {s.description}")
            return

        if not args.title:
            print("ERROR: title is required unless --list is given", file=sys.stderr)
            sys.exit(1)
        snippet = await store.add(args.user_id, args.title, args.description or "")
        print(f"Added snippet {snippet.id}")
    finally:
        await db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed or list snippets for a user")
    parser.add_argument("user_id", help="Owner user ID")
    parser.add_argument("title", nargs="?", help="Snippet title")
    parser.add_argument("description", nargs="?", help="Snippet description")
    parser.add_argument("--list", action="store_true", help="List the user's snippets")
    asyncio.run(_run(parser.parse_args()))


if __name__ == "__main__":
    main()
