#!/usr/bin/env python3
"""
Warm the catalog cache from the upstream catalog API.

Discovers entries changed since the last run, caches their details and
streams, then verifies every processed entry. Exits non-zero when
verification fails. Configuration comes from CATALOG_* environment variables.
"""

import sys
import os

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from service_catalog.app.main import main  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main())
