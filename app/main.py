import signal
import threading

from dotenv import load_dotenv

from infrastructure.events import shutdown_event_executor, start_event_executor
from infrastructure.logging import configure_logging, get_module_logger
from infrastructure.services import get_settings
from modules.notifications import DeliveryEngine, build_delivery_engine

load_dotenv()

logger = get_module_logger()


def list_configs():
    """Log the delivery configuration the process is running with."""
    settings = get_settings()
    notifications = settings.notifications
    logger.info(
        "delivery_configuration",
        prefix=settings.PREFIX,
        git_sha=settings.GIT_SHA,
        store_backend=notifications.store_backend,
        queue_backend=notifications.queue_backend,
        batch_size=notifications.batch_size,
        worker_concurrency=notifications.worker_concurrency,
        max_attempts=notifications.max_attempts,
        tenant_filter_disabled=notifications.disable_tenant_filter,
        allowed_tenants=notifications.allowed_tenant_ids,
    )


def main(stop_event: threading.Event) -> DeliveryEngine:
    """Start the delivery workers and block until ``stop_event`` is set."""
    configure_logging()
    logger.info("application_startup")
    list_configs()

    start_event_executor()
    engine = build_delivery_engine()
    engine.pool.start()

    try:
        stop_event.wait()
    finally:
        logger.info("application_shutdown", pending=engine.queue.pending())
        engine.pool.stop(wait=True, timeout=30)
        shutdown_event_executor(wait=True)
    return engine


if __name__ == "__main__":
    stop = threading.Event()

    def _request_stop(signum, _frame):
        logger.info("shutdown_signal_received", signal=signum)
        stop.set()

    signal.signal(signal.SIGTERM, _request_stop)
    signal.signal(signal.SIGINT, _request_stop)
    main(stop)
