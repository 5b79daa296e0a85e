#!/usr/bin/env python3
"""
Crypto Ledger Sync - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Runs one sync: every configured exchange account and wallet
is fetched, reconciled against the ledger and written.

- Safe to schedule (cron, PM2 cron_restart): runs are idempotent
  on transaction ids
- Exit code 0 when the pipeline completed, 1 otherwise

============================================================
USAGE
============================================================
Direct execution:
    python app.py
    python app.py --start-date 2025-01-01 --json

With PM2 (hourly):
    pm2 start app.py --interpreter python --name ledger-sync \
        --cron-restart "0 * * * *" --no-autorestart

The API server (ledger read endpoints and POST /sync):
    uvicorn dashboard.main:app --port 8000

============================================================
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.absolute()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from orchestrator.cli import main


if __name__ == "__main__":
    sys.exit(main())
