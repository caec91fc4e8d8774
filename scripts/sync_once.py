"""
Run a single Zotero sync cycle from the command line.

Usage:
    python scripts/sync_once.py            # Sync with stored credentials
    python scripts/sync_once.py --env      # Use ZOTERO_API_KEY / ZOTERO_USER_ID from the environment (not stored)
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from threadmed.config.settings import get_settings
from threadmed.db.library_store import LibraryStore
from threadmed.models.sync import SyncProgress
from threadmed.services.credentials import MetaSecretProvider, SettingsSecretProvider
from threadmed.services.sync_engine import SyncEngine


def print_progress(progress: SyncProgress):
    if progress.phase in ("downloading", "extracting"):
        print(f"  [{progress.phase}] {progress.current}/{progress.total} {progress.paper_title or ''}")
    elif progress.phase == "error":
        print(f"  [error] {progress.error}")
    else:
        print(f"  [{progress.phase}]")


async def main(use_env: bool):
    load_dotenv()
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level))

    with LibraryStore(settings.db_path) as store:
        user_id = None
        if use_env:
            secrets = SettingsSecretProvider()
            user_id = os.getenv("ZOTERO_USER_ID")
            if not user_id:
                print("ZOTERO_USER_ID is not set")
                return 1
        else:
            secrets = MetaSecretProvider(store)

        # The environment account is used for this run only; the stored
        # connection is left as it is
        engine = SyncEngine(store=store, secrets=secrets, pdf_dir=settings.pdf_dir, user_id=user_id)
        engine.add_progress_listener(print_progress)
        result = await engine.sync_library()

    print("=" * 70)
    print(f"Imported: {result.imported}")
    print(f"Updated: {result.updated}")
    print(f"PDFs downloaded: {result.pdfs_downloaded}")
    print(f"Library version: {result.library_version}")
    for error in result.errors:
        print(f"  ! {error}")
    return 1 if result.errors else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run one Zotero sync cycle")
    parser.add_argument("--env", action="store_true", help="Read credentials from the environment")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.env)))
