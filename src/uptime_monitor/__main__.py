"""
Main entry point for the uptime monitoring application.

This module initializes and runs one monitoring instance. It sets up logging,
creates the database, coordination and HTTP clients, wires the scheduler,
checkers, status pipeline and notification delivery, and handles graceful
shutdown when the application is terminated.
"""

import asyncio
import logging
from typing import Dict

import aiohttp
import asyncpg

from uptime_monitor.checker.registry import CheckerRegistry
from uptime_monitor.config import MonitoringContext, get_context
from uptime_monitor.config.db_config import apply_schema, initiate_db_pool
from uptime_monitor.config.http_config import get_http_session
from uptime_monitor.config.logging_config import configure_logging
from uptime_monitor.config.redis_config import initiate_redis_client
from uptime_monitor.contracts import ChannelStore, CoordinationStore, NotificationChannel
from uptime_monitor.coordination.memory_store import InMemoryCoordinationStore
from uptime_monitor.coordination.redis_store import RedisCoordinationStore
from uptime_monitor.notification.channel_store import (
    RELAY_CHANNEL_TYPE,
    WEBHOOK_CHANNEL_TYPE,
    InMemoryChannelStore,
    StaticChannelStore,
)
from uptime_monitor.notification.delivery_worker import DeliveryWorker
from uptime_monitor.notification.dispatcher import NotificationDispatcher
from uptime_monitor.notification.http_relay import HttpRelayChannel
from uptime_monitor.processor.status_pipeline import StatusPipeline
from uptime_monitor.scheduler.slot_claim import SlotClaimer
from uptime_monitor.scheduler.tick_scheduler import TickScheduler
from uptime_monitor.storage.postgres_event_store import PostgresEventStore
from uptime_monitor.storage.postgres_monitor_store import PostgresMonitorStore
from uptime_monitor.storage.postgres_queue import PostgresNotificationQueue
from uptime_monitor.worker import MonitoringWorker


async def create_coordination_store(context: MonitoringContext) -> CoordinationStore:
    if context.coordination == "memory":
        return InMemoryCoordinationStore()
    return RedisCoordinationStore(await initiate_redis_client(context))


def create_channel_store(context: MonitoringContext) -> ChannelStore:
    if context.notification_service_url:
        return StaticChannelStore(context.notification_service_url)
    # Without a notification service, queued notifications are marked sent with no channel.
    return InMemoryChannelStore()


async def main(context: MonitoringContext) -> None:
    """
    Set up and run the uptime monitoring application.

    This function initializes all components of the monitoring system:
    1. Creates an HTTP session for checks and notification delivery
    2. Establishes the database connection pool and applies the schema
    3. Connects to the coordination store
    4. Creates the scheduler, checker registry, pipeline and dispatcher
    5. Runs the monitoring worker and the delivery worker until cancelled

    Args:
        context: Configuration context containing all application settings.
    """
    logger: logging.Logger = logging.getLogger(__name__)
    logger.info("Starting application...")
    worker_id: str = context.worker_id

    # Initialize HTTP session for checks and notification delivery
    http_session: aiohttp.ClientSession = get_http_session(context)
    logger.info("configured: http_session")

    # Initialize the database connection pool
    db_pool: asyncpg.pool.Pool = await initiate_db_pool(context)
    await apply_schema(db_pool)
    logger.info("initialized: db_pool")

    coordination: CoordinationStore = await create_coordination_store(context)
    logger.info(f"initialized: coordination store ({context.coordination})")

    monitors = PostgresMonitorStore(db_pool)
    events = PostgresEventStore(db_pool)

    relay = HttpRelayChannel(http_session)
    transports: Dict[str, NotificationChannel] = {
        RELAY_CHANNEL_TYPE: relay,
        WEBHOOK_CHANNEL_TYPE: relay,
    }
    dispatcher = NotificationDispatcher(
        queue=PostgresNotificationQueue(db_pool),
        monitors=monitors,
        channels=create_channel_store(context),
        transports=transports,
        max_attempts=context.max_delivery_attempts,
    )
    delivery_worker = DeliveryWorker(
        dispatcher,
        delivery_interval=context.delivery_interval,
        retention_days=context.retention_days,
    )

    claimer = SlotClaimer(coordination, owner_id=worker_id, lock_ttl=context.lock_ttl)

    # Initialize the monitoring worker with all its components
    worker: MonitoringWorker = MonitoringWorker(
        worker_id=worker_id,
        num_workers=context.worker_number,
        queue_size=context.queue_size,
        scheduler=TickScheduler(
            worker_id=worker_id,
            claimer=claimer,
            monitor_store=monitors,
            tick_seconds=context.tick_seconds,
            sync_every=context.sync_every,
        ),
        registry=CheckerRegistry.create_default(http_session),
        processor=StatusPipeline(monitors=monitors, events=events, dispatcher=dispatcher),
    )

    try:
        logger.info("Worker initialized. Starting monitoring loop...")
        delivery_worker.start()
        await worker.start()

    except asyncio.CancelledError:
        logger.info("Application shutdown requested.")
    finally:
        # Ensure all resources are properly closed during shutdown
        logger.info("Shutting down resources...")
        await worker.stop()
        await delivery_worker.stop()
        await http_session.close()
        await coordination.close()
        await db_pool.close()
        logger.info("Shutdown complete.")


def run() -> None:
    try:
        # Parse command-line arguments and environment variables
        uptime_monitor_context: MonitoringContext = get_context()

        # Configure logging based on the context
        configure_logging(uptime_monitor_context)

        # Run the main application
        asyncio.run(main(uptime_monitor_context))
    except KeyboardInterrupt:
        logging.info("Shutdown initiated by user (Ctrl+C).")


if __name__ == "__main__":
    run()
