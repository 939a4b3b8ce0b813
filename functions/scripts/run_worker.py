"""
Runs the outbound email worker until interrupted.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from writory.worker import run_loop


def main() -> int:
    parser = argparse.ArgumentParser(description="Writory email worker")
    parser.add_argument(
        "-i",
        "--poll-interval",
        type=float,
        default=2.0,
        help="Seconds to wait on an empty queue",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    try:
        run_loop(poll_interval_seconds=args.poll_interval)
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
