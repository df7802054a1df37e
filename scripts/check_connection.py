#!/usr/bin/env python3
"""
Check which backend the portal will use and whether the data is consistent.

Probes the remote store, runs a connection test, then reads units and tenants through
the data service and reports any unit whose status disagrees with tenant assignments.

Usage:
    python scripts/check_connection.py
"""

import asyncio
import sys

from immogest.config import configure_logging, get_config
from immogest.data.integrity import check_occupancy
from immogest.data.service import get_data_service


async def run() -> int:
    cfg = get_config()
    configure_logging(cfg)

    service = get_data_service(cfg)
    try:
        status = service.connection_status()
        print(f"Backend: {status.connection_type}")

        result = await service.test_connection()
        print(f"Connection test: {'OK' if result.success else 'FAILED'} - {result.message}")

        units = await service.get_units()
        tenants = await service.get_tenants()
        print(f"  Units: {len(units)}")
        print(f"  Tenants: {len(tenants)}")

        bad = check_occupancy(units, tenants)
        if bad:
            print(f"ERROR: unit status disagrees with tenant assignment for: {', '.join(bad)}")
            return 1

        status = service.connection_status()
        if status.fallback_count:
            print(f"WARNING: {status.fallback_count} operation(s) fell back to local data ({status.last_fallback})")
        print("Occupancy consistent.")
        return 0
    finally:
        await service.aclose()


def main():
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
