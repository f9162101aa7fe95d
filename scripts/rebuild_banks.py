#!/usr/bin/env python3
"""
Bank Rebuild Utility
Re-synchronizes cached bank embeddings with current bank content, optionally
dropping the cache first so every bank is regenerated.
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from membank.core.banks import BankNotFoundError
from membank.core.memory_service import MemoryBankService


async def rebuild(bank_names, force: bool) -> int:
    service = MemoryBankService()

    try:
        results = await service.rebuild(bank_names, force=force)
    except BankNotFoundError as e:
        print(f"ERROR: {e}")
        return 1

    failed = 0
    for name, result in results.items():
        if result.ready:
            print(f"✓ {name}: {result.status} ({len(result.records)} records)")
        else:
            failed += 1
            print(f"✗ {name}: {result.status} {result.error or ''}".rstrip())

    print(f"Rebuild complete: {len(results) - failed}/{len(results)} banks ready")
    return 1 if failed else 0


def main():
    parser = argparse.ArgumentParser(description="Rebuild cached memory bank embeddings")
    parser.add_argument("--bank", action="append", dest="banks",
                        help="Bank to rebuild (repeatable, default: all banks)")
    parser.add_argument("--force", action="store_true",
                        help="Drop cached records before synchronizing")
    args = parser.parse_args()

    sys.exit(asyncio.run(rebuild(args.banks, args.force)))


if __name__ == "__main__":
    main()
