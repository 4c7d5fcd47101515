"""
Vercel Serverless Function: exposes the FastAPI app under /api.

Serverless instances are short-lived, so the live reading and its logs
only survive as long as the warm instance does. The archive poller does
not run here; the first /api/archive read on an instance loads the sheet
and /api/archive/refresh re-reads it on demand.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

os.environ.setdefault("ARCHIVE_POLL_ENABLED", "false")

from airwatch.main import app  # noqa: E402,F401
