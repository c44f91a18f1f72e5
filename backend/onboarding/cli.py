"""Management CLI for onboarding maintenance.

Usage:
    python -m onboarding.cli cleanup-stale-progress   # Complete stale progress rows now
"""

import asyncio
import sys

from onboarding.services.scheduler import run_daily_cleanup


def cleanup_stale_progress():
    cleaned = asyncio.run(run_daily_cleanup())
    print(f"Cleaned up {cleaned} stale progress row(s)")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "cleanup-stale-progress":
        cleanup_stale_progress()
    else:
        print("Usage: python -m onboarding.cli [cleanup-stale-progress]")
