"""Celery configuration for async task processing."""

from kombu import Exchange, Queue

from core.config import settings

# Broker configuration (Redis)
broker_url = settings.redis_url

# Notifications are fire-and-forget
task_ignore_result = True

# Task routing and serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"
timezone = "UTC"
enable_utc = True

# Run tasks in-process (tests, local development without a broker)
task_always_eager = settings.celery_task_always_eager

# Task execution settings
task_acks_late = True
task_time_limit = 2 * 60
task_soft_time_limit = 90

# Worker settings
worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000

# Queue configuration with routing
default_exchange = Exchange("dental_staffing", type="direct")
task_default_queue = "default"
task_queues = (
    Queue("default", exchange=default_exchange, routing_key="default"),
    Queue("notifications", exchange=default_exchange, routing_key="notifications"),
)

task_routes = {
    "workers.tasks.notifications.*": {"queue": "notifications"},
}
