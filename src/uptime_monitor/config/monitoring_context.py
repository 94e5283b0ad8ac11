"""
Configuration context for the uptime monitoring system.

This module defines the immutable data structure holding every configuration
parameter of a monitoring instance. It is the single object passed around at
startup to build stores, clients, the scheduler and the workers.
"""

from typing import NamedTuple


class MonitoringContext(NamedTuple):
    """
    All configuration parameters of a monitoring instance.

    Attributes:
        dsn: Database connection string for PostgreSQL.
        redis_url: Connection url of the Redis coordination store.
        coordination: Coordination backend, 'redis' or 'memory'.
        worker_id: Unique identifier for this instance; used as lock owner.
        logging_type: Type of logging configuration to use (dev, prod, or custom).
        logging_config_file: Path to custom logging configuration file (if logging_type is 'custom').
        queue_size: Maximum size of the check queue before backpressure is applied.
        worker_number: Number of concurrent check executors.
        db_pool_size: Maximum number of connections in the database connection pool.
        tick_seconds: Seconds between two scheduler ticks.
        lock_ttl: Lifetime in seconds of a monitor lock in the coordination store.
        sync_every: Number of ticks between two registry synchronizations.
        max_delivery_attempts: Delivery attempts before a notification is given up.
        delivery_interval: Seconds between two notification delivery passes.
        retention_days: Days processed notifications are kept in the queue.
        notification_service_url: Base url of the notification service; empty
            disables delivery.
    """

    dsn: str
    redis_url: str
    coordination: str
    worker_id: str
    logging_type: str
    logging_config_file: str
    queue_size: int
    worker_number: int
    db_pool_size: int
    tick_seconds: int
    lock_ttl: int
    sync_every: int
    max_delivery_attempts: int
    delivery_interval: int
    retention_days: int
    notification_service_url: str
