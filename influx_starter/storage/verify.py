#!/usr/bin/env python
"""
Connection Verification Script — InfluxDB Health Check

Verifies InfluxDB connectivity by:
1. Connecting to the database
2. Writing a dummy point
3. Reading back the point

Run this after configuring the environment to verify the setup.

Usage:
    python -m influx_starter.storage.verify

Exit codes:
    0: Success
    1: Connection failed
    2: Write failed
    3: Read failed
"""

import sys
from typing import Optional

from .client import InfluxStore, build_user_point
from .config import InfluxDBConfig, USER_TAG, load_config
from .errors import InfluxDBClientError
from .flux import flux_string


VERIFY_MEASUREMENT = "verify"
VERIFY_USER = "verify-user"

EXIT_OK = 0
EXIT_CONNECT = 1
EXIT_WRITE = 2
EXIT_READ = 3


def verify_query(bucket: str) -> str:
    return (
        f"from(bucket: {flux_string(bucket)})\n"
        f"    |> range(start: -5m)\n"
        f"    |> filter(fn: (r) => r._measurement == {flux_string(VERIFY_MEASUREMENT)})\n"
        f"    |> filter(fn: (r) => r.{USER_TAG} == {flux_string(VERIFY_USER)})\n"
        f"    |> last()"
    )


def verify_connection(config: Optional[InfluxDBConfig] = None) -> int:
    """
    Verify InfluxDB connection and basic operations.

    Returns:
        Exit code (see module docstring)
    """
    config = config or load_config()
    print("InfluxDB Verification Script")
    print("=" * 50)
    print(f"URL: {config.url}")
    print(f"Org: {config.org}")
    print(f"Bucket: {config.bucket}")
    print("=" * 50)

    store = InfluxStore(config)

    # Step 1: Connect
    print("\n[1/3] Connecting to InfluxDB...")
    try:
        store.connect(verify=True)
        print("      ✓ Connection successful")
    except InfluxDBClientError as e:
        print(f"      ✗ Connection failed: {e}")
        return EXIT_CONNECT

    try:
        # Step 2: Write test point
        print("\n[2/3] Writing test point...")
        try:
            store.write_point(build_user_point(VERIFY_USER, VERIFY_MEASUREMENT, 1.0))
            print("      ✓ Write successful")
        except InfluxDBClientError as e:
            print(f"      ✗ Write failed ({e.kind.value}): {e}")
            return EXIT_WRITE

        # Step 3: Read back
        print("\n[3/3] Reading back test point...")
        try:
            rows = store.query_rows(verify_query(config.bucket))
        except InfluxDBClientError as e:
            print(f"      ✗ Read failed ({e.kind.value}): {e}")
            return EXIT_READ

        if rows:
            print(f"      ✓ Read successful ({len(rows)} row(s))")
        else:
            print("      ⚠ No rows found (write may be delayed)")
    finally:
        store.disconnect()

    print("\n" + "=" * 50)
    print("✓ All verification checks passed!")
    print("=" * 50)
    return EXIT_OK


def main():
    """Main entry point."""
    try:
        sys.exit(verify_connection())
    except KeyboardInterrupt:
        print("\n\nAborted by user.")
        sys.exit(130)


if __name__ == "__main__":
    main()
