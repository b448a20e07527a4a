"""farm-alert — weather-risk alert pipeline.

This is the application entry point.  create_app() wires the stores,
RuleEvaluator, AlertLifecycleManager, NotificationDispatcher and
AlertScheduler together and returns a FastAPI app whose lifespan starts
and stops the scheduler.  The site directory and snapshot source are
supplied by the embedding application.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI

from farm_alert.adapters.base import SiteDirectory, SnapshotSource
from farm_alert.config import Settings, settings as default_settings
from farm_alert.core.lifecycle import AlertLifecycleManager
from farm_alert.core.rule_evaluator import RuleEvaluator, RuleThresholds
from farm_alert.notify.dispatcher import NotificationDispatcher
from farm_alert.notify.transport import PushTransport, WebPushTransport
from farm_alert.scheduler.alert_scheduler import AlertScheduler
from farm_alert.store.alert_store import AlertStore, InMemoryAlertStore
from farm_alert.store.snapshot_store import InMemorySnapshotStore
from farm_alert.store.sqlite_store import SqliteAlertStore
from farm_alert.store.subscription_store import InMemorySubscriptionStore

logger = logging.getLogger(__name__)


def configure_logging(cfg: Settings) -> None:
    logging.basicConfig(
        level=cfg.log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def thresholds_from_settings(cfg: Settings) -> RuleThresholds:
    return RuleThresholds(
        frost_trigger=cfg.frost_trigger_c,
        frost_high=cfg.frost_high_c,
        frost_critical=cfg.frost_critical_c,
        drought_humidity=cfg.drought_humidity_pct,
        drought_humidity_high=cfg.drought_humidity_high_pct,
        drought_temperature=cfg.drought_temperature_c,
        fungal_temperature_min=cfg.fungal_temperature_min_c,
        fungal_temperature_max=cfg.fungal_temperature_max_c,
        fungal_humidity=cfg.fungal_humidity_pct,
        rain_total=cfg.rain_total_mm,
        rain_high=cfg.rain_high_mm,
        wind_speed=cfg.wind_speed_ms,
        wind_high=cfg.wind_high_ms,
        heat_wave=cfg.heat_wave_c,
    )


def build_alert_store(cfg: Settings) -> AlertStore:
    if cfg.database_path:
        logger.info("Using SQLite alert store at %s", cfg.database_path)
        return SqliteAlertStore(cfg.database_path)
    logger.warning("No database_path configured; alerts are kept in memory only")
    return InMemoryAlertStore()


def build_push_transport(cfg: Settings) -> PushTransport | None:
    if not cfg.vapid_private_key or not cfg.vapid_public_key:
        logger.warning("Missing VAPID keys; push notifications disabled")
        return None
    return WebPushTransport(
        vapid_private_key=cfg.vapid_private_key,
        vapid_email=cfg.vapid_email,
        timeout=cfg.push_timeout_seconds,
    )


def build_scheduler(
    site_directory: SiteDirectory,
    snapshot_source: SnapshotSource,
    cfg: Settings,
    *,
    alert_store: AlertStore | None = None,
    subscriptions: InMemorySubscriptionStore | None = None,
    transport: PushTransport | None = None,
) -> AlertScheduler:
    store = alert_store or build_alert_store(cfg)
    lifecycle = AlertLifecycleManager(
        store,
        suppression_window=timedelta(hours=cfg.suppression_window_hours),
        alert_ttl=timedelta(days=cfg.alert_ttl_days),
    )
    evaluator = RuleEvaluator(
        thresholds=thresholds_from_settings(cfg),
        window_points=cfg.forecast_window_points,
    )

    push = transport or build_push_transport(cfg)
    dispatcher = None
    if push is not None:
        dispatcher = NotificationDispatcher(subscriptions or InMemorySubscriptionStore(), push)

    return AlertScheduler(
        site_directory,
        snapshot_source,
        evaluator,
        lifecycle,
        dispatcher=dispatcher,
        snapshot_store=InMemorySnapshotStore(),
        cycle_interval=timedelta(minutes=cfg.cycle_interval_minutes),
        cleanup_interval=timedelta(hours=cfg.cleanup_interval_hours),
        concurrency=cfg.worker_concurrency,
        pacing_seconds=cfg.pacing_seconds,
        snapshot_retention=timedelta(days=cfg.snapshot_retention_days),
    )


def create_app(
    site_directory: SiteDirectory,
    snapshot_source: SnapshotSource,
    cfg: Settings | None = None,
    *,
    scheduler: AlertScheduler | None = None,
) -> FastAPI:
    """Build the FastAPI app hosting the scheduler.

    Args:
        site_directory: Lists sites to monitor.
        snapshot_source: Fetches weather per site.
        cfg: Settings; module defaults from the environment if omitted.
        scheduler: Pre-built scheduler, mainly for tests.
    """
    cfg = cfg or default_settings
    configure_logging(cfg)
    sched = scheduler or build_scheduler(site_directory, snapshot_source, cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sched.start()
        logger.info("Scheduler started")
        try:
            yield
        finally:
            await sched.stop(wait=True)
            logger.info("Scheduler stopped")
            close = getattr(sched.alert_store, "close", None)
            if close is not None:
                close()
                logger.info("Alert store closed")

    app = FastAPI(
        title=cfg.app_name,
        description="Weather-risk alerts for farms",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.scheduler = sched

    # ── Health ───────────────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "scheduler": sched.status()}

    return app
