"""Configuration constants for the execution web backend."""

import os

DEFAULT_PORT = 8001
HOST = os.environ.get("EXECWS_HOST", "0.0.0.0")
CORS_ORIGINS = [o.strip() for o in os.environ.get("EXECWS_CORS_ORIGINS", "*").split(",") if o.strip()]

# Seconds to wait for the output pump of a closed socket to unwind
OUTPUT_PUMP_GRACE_SEC = 5.0
