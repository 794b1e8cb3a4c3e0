"""
Run the missed-checkout sweep once, outside the server.

Useful when the server was down at the cutoff. Sessions are only closed if
they started on the current day in the configured zone.

Usage:
    python scripts/run_missed_checkout.py
"""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from timeclock.config import get_settings
from timeclock.http_client import build_http_client
from timeclock.logging_config import setup_logging
from timeclock.services.attendance import create_attendance_service


async def main() -> int:
    settings = get_settings()
    setup_logging(settings.log_level)

    async with build_http_client(settings) as client:
        service = create_attendance_service(settings, client)
        report = await service.run_missed_checkout_sweep()
        await service.shutdown()

    print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
