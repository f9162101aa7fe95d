#!/usr/bin/env python3
"""
Query a memory bank from the command line and print the ranked entries.
The bank must have been cached (run rebuild_banks.py or start the API first).
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from membank.core.banks import BankError
from membank.core.memory_service import MemoryBankService


async def query(text: str, bank: str, top: int) -> int:
    service = MemoryBankService()

    try:
        results = await service.search(text, bank)
    except BankError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Search results for {text!r} in bank {bank!r}:")
    for result in results[:top]:
        print(f"  {result.score:.4f}  {result.relevance:<6}  {result.text}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Semantic search over a memory bank")
    parser.add_argument("query", help="Search query")
    parser.add_argument("--bank", default="General", help="Bank to search (default: General)")
    parser.add_argument("--top", type=int, default=10, help="Number of results to show")
    args = parser.parse_args()

    sys.exit(asyncio.run(query(args.query, args.bank, args.top)))


if __name__ == "__main__":
    main()
