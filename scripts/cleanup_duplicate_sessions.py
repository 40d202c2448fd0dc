"""
Delete duplicated chat sessions of one user from the hosted database.

Sessions are grouped by normalized title; the most recently updated session
of each group is kept and the others are deleted with their messages.

Usage:
    python -m scripts.cleanup_duplicate_sessions --user dev_user            # Dry-run
    python -m scripts.cleanup_duplicate_sessions --user dev_user --confirm  # Delete
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Suppress noisy SQLAlchemy logs
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

# Ensure project root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chatsync.core.exceptions import ChatSyncError
from chatsync.infrastructure.local.database import init_db
from chatsync.infrastructure.local.remote_session_store import SqliteRemoteSessionStore
from chatsync.models.chat_session import ms_to_datetime
from chatsync.services.chat_history_utils import find_duplicate_sessions


async def cleanup(user_id: str, dry_run: bool = True) -> int:
    await init_db()
    store = SqliteRemoteSessionStore()

    sessions = await store.list_sessions(user_id)
    print(f"Total sessions: {len(sessions)}")

    deleted = 0
    for kept, duplicates in find_duplicate_sessions(sessions):
        print(f'\n"{kept.title}": {len(duplicates) + 1} copies')
        print(f"  keep    {kept.id} (updated {ms_to_datetime(kept.updated_at).isoformat()})")
        for duplicate in duplicates:
            print(f"  delete  {duplicate.id} (updated {ms_to_datetime(duplicate.updated_at).isoformat()})")
            if dry_run:
                continue
            try:
                await store.delete_session(duplicate.id, user_id)
                deleted += 1
            except ChatSyncError as e:
                print(f"  failed  {duplicate.id}: {e}")

    if dry_run:
        print("\nDry-run only. Re-run with --confirm to delete.")
    else:
        print(f"\nDeleted {deleted} duplicate sessions.")
    return deleted


def main() -> None:
    parser = argparse.ArgumentParser(description="Delete duplicated chat sessions of a user.")
    parser.add_argument("--user", required=True, help="Owner user id")
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Actually delete. Default is dry-run.",
    )
    args = parser.parse_args()
    asyncio.run(cleanup(args.user, dry_run=not args.confirm))


if __name__ == "__main__":
    main()
