#!/usr/bin/env python3
import logging
import os

from app import app


HOST = os.environ.get("ITAM_SYNC_HOST", "127.0.0.1")
PORT = int(os.environ.get("ITAM_SYNC_PORT", "5050"))

logging.basicConfig(
    level=os.environ.get("ITAM_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

print("=" * 56)
print("   ITAM Open-AudIT Sync Service Started")
print("=" * 56)
print(f"Syncing every {app.config['OA_SYNC_INTERVAL_SECONDS']} seconds")
print(f"Sync status on http://{HOST}:{PORT}/api/sync/status\n")

# The heartbeat lives in this process, so the worker and the status
# endpoint must be served together.
worker = app.extensions["itam_sync_worker"]
if app.config["OA_SYNC_ENABLED"]:
    worker.start()
else:
    print("Sync scheduler disabled (set OA_SYNC_ENABLED=true to enable)")

try:
    app.run(host=HOST, port=PORT, use_reloader=False)
except KeyboardInterrupt:
    print("\n[ITAM Sync] Stopped by user")
finally:
    worker.stop(timeout=5)
