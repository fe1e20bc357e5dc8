"""
Gunicorn Configuration for Production

Run with: gunicorn main:app -c gunicorn.conf.py

Each worker runs its own connection supervisor and pool, so the store
must accept ``workers x pool size`` connections.

RECOMMENDED SETTINGS BY INSTANCE:
- 1GB RAM:  GUNICORN_WORKERS=2
- 2GB RAM:  GUNICORN_WORKERS=4
"""

import multiprocessing
import os

# =============================================================================
# Server Socket
# =============================================================================

bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# =============================================================================
# Worker Processes
# =============================================================================

workers = int(os.getenv("GUNICORN_WORKERS", min(2 * multiprocessing.cpu_count() + 1, 4)))

# Use Uvicorn worker for async support
worker_class = "uvicorn.workers.UvicornWorker"

timeout = 60
graceful_timeout = 30
keepalive = 5

# Max requests per worker before restart
max_requests = 1000
max_requests_jitter = 100

# Engines are created in the lifespan, after fork
preload_app = False

# =============================================================================
# Logging
# =============================================================================

accesslog = "-"  # stdout
errorlog = "-"   # stderr
loglevel = os.getenv("LOG_LEVEL", "info")

access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# =============================================================================
# Process Naming
# =============================================================================

proc_name = "formforge-api"

daemon = False
pidfile = None
