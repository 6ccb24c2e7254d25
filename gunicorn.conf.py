"""Gunicorn production configuration for the Bolsas Portal API."""
import multiprocessing
import os

chdir = "backend"
wsgi_app = "app.main:app"

bind = os.getenv("BIND", "0.0.0.0:8000")
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
# spreadsheet uploads are parsed in-request
timeout = 90
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
preload_app = True
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
