"""Print a one-off analytics summary of the profile store as JSON."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from typing import List, Optional

from nvc_backend.analytics import build_summary
from nvc_backend.config import get_settings
from nvc_backend.profile_store import ProfileStore

LOGGER = logging.getLogger("nvc.analytics_snapshot")


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--as-of",
        type=datetime.fromisoformat,
        default=None,
        help="ISO-8601 reference time for the 7-day activity window (defaults to now).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = _parse_args(argv)
    as_of = args.as_of or datetime.now(timezone.utc)
    try:
        with ProfileStore.from_settings(get_settings()) as store:
            if not store.is_configured():
                LOGGER.error("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set.")
                return 2
            summary = build_summary(store, now=as_of)
        payload = {
            "timestamp": as_of.isoformat(),
            "summary": asdict(summary),
        }
        print(json.dumps(payload))
        return 0
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Failed to build analytics snapshot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
