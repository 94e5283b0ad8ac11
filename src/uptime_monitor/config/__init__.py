"""
Configuration module for the uptime monitoring system.

This module provides functionality to parse command-line arguments and environment
variables to create a configuration context for the monitoring system. It defines
default values and help text for all configurable parameters.
"""

import argparse
import os
from typing import Any, List, Optional
from uuid import uuid4

from uptime_monitor.config.constants import (
    COORDINATION_BACKENDS,
    DEFAULT_COORDINATION,
    DEFAULT_DB_POOL_SIZE,
    DEFAULT_DELIVERY_INTERVAL,
    DEFAULT_DSN,
    DEFAULT_LOCK_TTL,
    DEFAULT_LOGGING_CONFIG_FILE,
    DEFAULT_LOGGING_TYPE,
    DEFAULT_MAX_DELIVERY_ATTEMPTS,
    DEFAULT_NOTIFICATION_SERVICE_URL,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_REDIS_URL,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_SYNC_EVERY,
    DEFAULT_TICK_SECONDS,
    DEFAULT_WORKER_ID_PREFIX,
    DEFAULT_WORKER_NUMBER,
    ENV_PREFIX,
)
from uptime_monitor.config.monitoring_context import MonitoringContext


def _env(name: str, default: Any) -> Any:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def get_context(argv: Optional[List[str]] = None) -> MonitoringContext:
    """
    Parse command-line arguments and environment variables to create a configuration context.

    For each option, the command-line argument wins, then the environment
    variable (UPTIME_MONITOR_<NAME>), and finally the default value.

    Args:
        argv: Arguments to parse; defaults to the process arguments.

    Returns:
        MonitoringContext: A configuration context object containing all parsed settings.
    """
    parser = argparse.ArgumentParser(
        description="Uptime monitoring engine: schedules checks, records events and dispatches notifications."
    )

    parser.add_argument(
        "-dsn",
        type=str,
        default=_env("DSN", DEFAULT_DSN),
        help="Specifies the DSN (connection string) for the PostgreSQL database.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}DSN environment variable.\n"
        f"If that is also absent, a default value for a local database is used: {DEFAULT_DSN}",
    )

    parser.add_argument(
        "-ru",
        "--redis-url",
        type=str,
        default=_env("REDIS_URL", DEFAULT_REDIS_URL),
        help="Specifies the url of the Redis server shared by all scheduler instances.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}REDIS_URL environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_REDIS_URL} is used.",
    )

    parser.add_argument(
        "-co",
        "--coordination",
        type=str,
        choices=COORDINATION_BACKENDS,
        default=_env("COORDINATION", DEFAULT_COORDINATION),
        help="Specifies the coordination store: 'redis' for a fleet of instances,\n"
        "'memory' for a single instance.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}COORDINATION environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_COORDINATION} is used.",
    )

    parser.add_argument(
        "-wid",
        "--worker-id",
        type=str,
        default=_env("WORKER_ID", f"{DEFAULT_WORKER_ID_PREFIX}{uuid4()}"),
        help="Specifies the identifier of this instance.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}WORKER_ID environment variable.\n"
        f"If that is also absent, the default value will be {DEFAULT_WORKER_ID_PREFIX}uuid4().",
    )

    parser.add_argument(
        "-ps",
        "--db-pool-size",
        type=int,
        default=int(_env("DB_POOL_SIZE", DEFAULT_DB_POOL_SIZE)),
        help="Specifies the maximum number of connections in the database connection pool.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}DB_POOL_SIZE environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_DB_POOL_SIZE} is used.",
    )

    parser.add_argument(
        "-wn",
        "--worker-number",
        type=int,
        default=int(_env("WORKER_NUMBER", DEFAULT_WORKER_NUMBER)),
        help="Specifies the maximum number of concurrent checks.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}WORKER_NUMBER environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_WORKER_NUMBER} is used.",
    )

    parser.add_argument(
        "-qs",
        "--queue-size",
        type=int,
        default=int(_env("QUEUE_SIZE", DEFAULT_QUEUE_SIZE)),
        help="Specifies the maximum number of claimed monitors waiting for an executor.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}QUEUE_SIZE environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_QUEUE_SIZE} is used.",
    )

    parser.add_argument(
        "-ts",
        "--tick-seconds",
        type=int,
        default=int(_env("TICK_SECONDS", DEFAULT_TICK_SECONDS)),
        help="Specifies the number of seconds between two scheduler ticks.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}TICK_SECONDS environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_TICK_SECONDS} is used.",
    )

    parser.add_argument(
        "-ltl",
        "--lock-ttl",
        type=int,
        default=int(_env("LOCK_TTL", DEFAULT_LOCK_TTL)),
        help="Specifies the lifetime in seconds of a monitor lock in the coordination store.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}LOCK_TTL environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_LOCK_TTL} is used.",
    )

    parser.add_argument(
        "-se",
        "--sync-every",
        type=int,
        default=int(_env("SYNC_EVERY", DEFAULT_SYNC_EVERY)),
        help="Specifies after how many ticks the scheduler reloads the active monitors.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}SYNC_EVERY environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_SYNC_EVERY} is used.",
    )

    parser.add_argument(
        "-mda",
        "--max-delivery-attempts",
        type=int,
        default=int(_env("MAX_DELIVERY_ATTEMPTS", DEFAULT_MAX_DELIVERY_ATTEMPTS)),
        help="Specifies how many times a notification delivery is attempted.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}MAX_DELIVERY_ATTEMPTS environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_MAX_DELIVERY_ATTEMPTS} is used.",
    )

    parser.add_argument(
        "-di",
        "--delivery-interval",
        type=int,
        default=int(_env("DELIVERY_INTERVAL", DEFAULT_DELIVERY_INTERVAL)),
        help="Specifies the number of seconds between two notification delivery passes.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}DELIVERY_INTERVAL environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_DELIVERY_INTERVAL} is used.",
    )

    parser.add_argument(
        "-rd",
        "--retention-days",
        type=int,
        default=int(_env("RETENTION_DAYS", DEFAULT_RETENTION_DAYS)),
        help="Specifies how many days processed notifications are kept.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}RETENTION_DAYS environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_RETENTION_DAYS} is used.",
    )

    parser.add_argument(
        "-nsu",
        "--notification-service-url",
        type=str,
        default=_env("NOTIFICATION_SERVICE_URL", DEFAULT_NOTIFICATION_SERVICE_URL),
        help="Specifies the base url of the notification service receiving status changes.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}NOTIFICATION_SERVICE_URL environment variable.\n"
        "If that is also absent, notifications are queued but not delivered.",
    )

    parser.add_argument(
        "-lt",
        "--logging-type",
        type=str,
        default=_env("LOGGING_TYPE", DEFAULT_LOGGING_TYPE),
        help="Specifies the logging configuration type to use.\n"
        "Allowed values: dev, prod, custom (case insensitive).\n"
        "For 'dev' and 'prod', system will use built-in configurations.\n"
        "For 'custom', the --logging-config-file argument is required.",
    )

    parser.add_argument(
        "-lcf",
        "--logging-config-file",
        type=str,
        default=_env("LOGGING_CONFIG_FILE", DEFAULT_LOGGING_CONFIG_FILE),
        help="Path to custom logging configuration file.\n"
        "Required when --logging-type is set to 'custom'.",
    )

    # Parse the command-line arguments
    args: Any = parser.parse_args(argv)

    return MonitoringContext(
        dsn=args.dsn,
        redis_url=args.redis_url,
        coordination=args.coordination,
        worker_id=args.worker_id,
        logging_type=args.logging_type,
        logging_config_file=args.logging_config_file,
        queue_size=args.queue_size,
        worker_number=args.worker_number,
        db_pool_size=args.db_pool_size,
        tick_seconds=args.tick_seconds,
        lock_ttl=args.lock_ttl,
        sync_every=args.sync_every,
        max_delivery_attempts=args.max_delivery_attempts,
        delivery_interval=args.delivery_interval,
        retention_days=args.retention_days,
        notification_service_url=args.notification_service_url,
    )
