#!/usr/bin/env python3
"""
Cleanup Old Snapshots

Cron script to prune scraper snapshot files, keeping the best few per source.
Run via cron: 0 4 * * * /opt/festifind/venv/bin/python /opt/festifind/backend/cleanup.py
"""

import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from dotenv import load_dotenv

from scraper.config import read_non_negative_int_env, get_data_dir
from scraper.storage import cleanup_snapshots

# Load environment variables
load_dotenv()

SOURCES = ("festivalinfo", "eblive")

# Snapshots to keep per source
KEEP_COUNT = read_non_negative_int_env("SNAPSHOT_KEEP_COUNT", 5)


def cleanup_old_snapshots(data_dir: Path = None, keep_count: int = KEEP_COUNT) -> int:
    """Delete all but the best `keep_count` snapshots of every source. Returns files deleted."""
    data_dir = data_dir or get_data_dir()

    print(f"\n{'='*60}")
    print(f"[cleanup] Starting at {datetime.now().isoformat()}")
    print(f"{'='*60}\n")

    if not data_dir.exists():
        print(f"[cleanup] Data directory {data_dir} does not exist, nothing to do")
        return 0

    total_deleted = 0
    for source in SOURCES:
        deleted, kept = cleanup_snapshots(data_dir, source, keep_count)
        total_deleted += len(deleted)
        print(f"[cleanup] {source}: kept {len(kept)}, deleted {len(deleted)}")
        for name in deleted:
            print(f"    - {name}")

    print(f"\n[cleanup] Complete at {datetime.now().isoformat()}")
    print(f"{'='*60}\n")
    return total_deleted


if __name__ == "__main__":
    cleanup_old_snapshots()
