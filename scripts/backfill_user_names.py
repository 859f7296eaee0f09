"""
Backfill attributed user names on existing posts.

Older posts were saved with an empty name or the placeholder "Unknown User".
This rewrites those to "Anonymous" so every post carries a display name.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from postboard.config import get_settings
from postboard.dependencies import build_post_store
from postboard.maintenance import backfill_user_names


logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill post user names")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report how many posts would be updated without saving",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    store = build_post_store(get_settings())
    store.connect()
    try:
        updated = backfill_user_names(store, dry_run=args.dry_run)
    finally:
        store.close()

    logger.info("Updated %d posts", updated)
    return 0


if __name__ == "__main__":
    sys.exit(main())
