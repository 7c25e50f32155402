# backend/gunicorn_conf.py

# Gunicorn config file: gunicorn -c gunicorn_conf.py botengine.main:app

# Basic configuration
bind = "0.0.0.0:8000"
workers = 2
worker_class = "uvicorn.workers.UvicornWorker"

# Settings for running behind a reverse proxy like Nginx
forwarded_allow_ips = "*"
proxy_allow_ips = "*"

# Bot engine passes are short; a stuck worker is recycled.
timeout = 30
graceful_timeout = 10

# --- Logging ---
# Send access and error logs to stdout and stderr
accesslog = "-"
errorlog = "-"
loglevel = "info"
