"""
Quick script to check Zotero Web API credentials and the local sync state.

Reads ZOTERO_API_KEY and ZOTERO_USER_ID from the environment (or .env),
falling back to the credentials stored in the library database.
"""

import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from threadmed.config.settings import get_settings
from threadmed.db.library_store import LibraryStore, USER_ID_KEY
from threadmed.services.credentials import MetaSecretProvider
from threadmed.zotero.web_api import ZoteroWebAPI


async def main():
    """Check Zotero credentials and print the local sync cursor."""
    load_dotenv()
    settings = get_settings()

    print("=" * 70)
    print("Zotero Web API Check")
    print("=" * 70)

    with LibraryStore(settings.db_path) as store:
        api_key = os.getenv("ZOTERO_API_KEY") or MetaSecretProvider(store).retrieve()
        user_id = os.getenv("ZOTERO_USER_ID") or store.get_meta(USER_ID_KEY)
        cursor = store.get_cursor()
        paper_count = store.count_papers()

    print("\n1. Checking credentials...")
    if not api_key or not user_id:
        print("   [FAIL] No credentials found")
        print("   -> Set ZOTERO_API_KEY and ZOTERO_USER_ID, or connect through the API")
        return

    async with ZoteroWebAPI(api_key, user_id) as client:
        info = await client.validate_credentials()

    if info.valid:
        print(f"   [PASS] Connected as user {user_id}")
        print(f"   Remote library holds {info.total_items} items")
        print(f"   Remote library version: {client.last_library_version}")
    else:
        print(f"   [FAIL] Credentials rejected: {info.error}")
        return

    print("\n2. Local library...")
    print(f"   Database: {settings.db_path}")
    print(f"   Papers: {paper_count}")
    print(f"   Synced up to version: {cursor.library_version}")
    print(f"   Last sync: {cursor.last_sync or 'never'}")

    if client.last_library_version > cursor.library_version:
        print("\n   -> Remote library has changes; run scripts/sync_once.py")
    else:
        print("\n   -> Local library is up to date")


if __name__ == "__main__":
    asyncio.run(main())
