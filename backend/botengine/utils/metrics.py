# /botengine/utils/metrics.py

from prometheus_client import Counter, Histogram

# All Prometheus metrics used by the bot engine live here.

# Engine Metrics
intercept_counter = Counter('bot_intercepts_total', 'Inbound messages handled by the bot engine', ['outcome'])
session_lock_counter = Counter('bot_session_locks_total', 'Session lock acquisition attempts', ['status'])
resolution_counter = Counter('bot_resolutions_total', 'How a message was resolved', ['source'])
database_operations_counter = Counter('database_operations_total', 'Database operations', ['operation', 'status'])

# Performance Metrics
response_time_histogram = Histogram('response_time_seconds', 'Response time in seconds', ['endpoint'])
cache_operations = Counter('cache_operations_total', 'Cache operations', ['operation', 'status'])
