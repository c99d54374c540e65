"""
Gunicorn configuration for the Metrics API production server.

Env vars that override defaults:
  PORT     TCP port to bind
  WORKERS  number of worker processes (default: 2)

Each worker owns its own SQLAlchemy connection pool (DB_POOL_SIZE +
DB_MAX_OVERFLOW connections at most) and its own rate-limit windows.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "2"))

# Each worker runs Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Kill a worker that hasn't responded in 120 s.
timeout = 120

# stdout only; application logs go through app.core.logging.
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs %({x-request-id}o)s'

# Graceful shutdown: wait up to 10 s for in-flight requests to finish.
graceful_timeout = 10
