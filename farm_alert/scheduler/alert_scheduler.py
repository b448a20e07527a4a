"""AlertScheduler — drives the alert-generation cycle and the cleanup sweep.

Per cycle:
    1. List active sites.
    2. Process sites with a bounded worker pool, pacing each worker between
       sites.  Per site, strictly in order:
       fetch → evaluate → record snapshot (with matched rules) → reconcile →
       dispatch.
    3. The cycle completes whatever happens to individual sites.

Failure containment:
    - A failed fetch skips the site for this cycle.  No retry.
    - Dispatch failures never affect the site or the cycle.
    - StoreUnavailable aborts the whole cycle; the next interval retries.

Two independent PeriodicTasks (cycle and cleanup) give each job its own
single-flight guard and cadence.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from farm_alert.adapters.base import SiteDirectory, SnapshotSource
from farm_alert.core.lifecycle import AlertLifecycleManager
from farm_alert.core.rule_evaluator import RuleEvaluator
from farm_alert.domain.alert import Alert
from farm_alert.domain.errors import SiteNotFoundError, StoreUnavailable, TransientFetchError
from farm_alert.domain.weather import Site
from farm_alert.foundation.clock import Clock, utc_now
from farm_alert.notify.dispatcher import NotificationDispatcher
from farm_alert.scheduler.periodic import PeriodicTask, Sleep
from farm_alert.store.alert_store import AlertStore
from farm_alert.store.snapshot_store import InMemorySnapshotStore

logger = logging.getLogger(__name__)


# ── Reports ──────────────────────────────────────────────────────────────────

class SiteResult(BaseModel):
    """Outcome of processing one site within a cycle."""

    site_id: str
    ok: bool
    error: Optional[str] = None
    matches: int = 0
    alerts: list[Alert] = Field(default_factory=list)
    notifications_delivered: int = 0


class CycleReport(BaseModel):
    """Outcome of one alert-generation cycle.

    A cycle that completes is successful even if some sites failed.
    """

    started_at: datetime
    finished_at: Optional[datetime] = None
    sites_total: int = 0
    sites_succeeded: int = 0
    failed_sites: list[str] = Field(default_factory=list)
    alerts_created: list[Alert] = Field(default_factory=list)
    notifications_delivered: int = 0
    aborted: bool = False
    abort_reason: Optional[str] = None

    def record(self, result: SiteResult) -> None:
        if result.ok:
            self.sites_succeeded += 1
            self.alerts_created.extend(result.alerts)
            self.notifications_delivered += result.notifications_delivered
        else:
            self.failed_sites.append(result.site_id)

    def summary(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "sites_total": self.sites_total,
            "sites_succeeded": self.sites_succeeded,
            "sites_failed": len(self.failed_sites),
            "alerts_created": len(self.alerts_created),
            "notifications_delivered": self.notifications_delivered,
            "aborted": self.aborted,
            "abort_reason": self.abort_reason,
        }


class CleanupReport(BaseModel):
    alerts_deactivated: int = 0
    snapshots_purged: int = 0
    aborted: bool = False
    abort_reason: Optional[str] = None


# ── Scheduler ────────────────────────────────────────────────────────────────

class AlertScheduler:
    """Explicitly constructed scheduler with start/stop/run_once lifecycle.

    Args:
        site_directory: Lists the sites to monitor.
        snapshot_source: Fetches weather per site.
        evaluator: Pure rule evaluator.
        lifecycle: Alert dedup/creation/expiry.
        dispatcher: Push notifications for new alerts; None disables push.
        snapshot_store: Snapshot retention; None skips recording.
        cycle_interval: Cadence of the alert-generation cycle.
        cleanup_interval: Cadence of the cleanup sweep.
        concurrency: Worker pool size within a cycle.
        pacing_seconds: Delay between sites for each worker.
        snapshot_retention: Age beyond which snapshots are purged.
        sleep: Awaitable delay for tickers and pacing.
        clock: Source of "now" for reports.
    """

    def __init__(
        self,
        site_directory: SiteDirectory,
        snapshot_source: SnapshotSource,
        evaluator: RuleEvaluator,
        lifecycle: AlertLifecycleManager,
        dispatcher: NotificationDispatcher | None = None,
        snapshot_store: InMemorySnapshotStore | None = None,
        *,
        cycle_interval: timedelta = timedelta(hours=1),
        cleanup_interval: timedelta = timedelta(days=1),
        concurrency: int = 3,
        pacing_seconds: float = 1.0,
        snapshot_retention: timedelta = timedelta(days=30),
        sleep: Sleep = asyncio.sleep,
        clock: Clock = utc_now,
        run_on_start: bool = True,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._sites = site_directory
        self._source = snapshot_source
        self._evaluator = evaluator
        self._lifecycle = lifecycle
        self._dispatcher = dispatcher
        self._snapshots = snapshot_store
        self._concurrency = concurrency
        self._pacing = pacing_seconds
        self._snapshot_retention = snapshot_retention
        self._sleep = sleep
        self._clock = clock

        self._cycle_task: PeriodicTask[CycleReport] = PeriodicTask(
            "alert-cycle", self._run_cycle, cycle_interval, sleep=sleep,
            run_on_start=run_on_start,
        )
        self._cleanup_task: PeriodicTask[CleanupReport] = PeriodicTask(
            "cleanup-sweep", self._run_cleanup, cleanup_interval, sleep=sleep,
        )

    # ── Lifecycle ────────────────────────────────────────────────────────

    def start(self) -> None:
        self._cycle_task.start()
        self._cleanup_task.start()

    async def stop(self, wait: bool = True) -> None:
        await self._cycle_task.stop(wait=wait)
        await self._cleanup_task.stop(wait=wait)

    async def run_once(self) -> CycleReport | None:
        """Run one alert-generation cycle now.  None if one is already running."""
        return await self._cycle_task.trigger()

    async def run_cleanup_once(self) -> CleanupReport | None:
        """Run one cleanup sweep now.  None if one is already running."""
        return await self._cleanup_task.trigger()

    async def check_site(self, site_id: str) -> SiteResult:
        """On-demand check of a single active site, outside the cycle cadence."""
        sites = await self._sites.list_active_sites()
        site = next((s for s in sites if s.site_id == site_id), None)
        if site is None:
            raise SiteNotFoundError(f"No active site with id '{site_id}'")
        return await self._process_site(site)

    @property
    def alert_store(self) -> AlertStore:
        return self._lifecycle.store

    @property
    def last_cycle(self) -> CycleReport | None:
        return self._cycle_task.last_result

    def status(self) -> dict:
        last = self.last_cycle
        return {
            "cycle": self._cycle_task.status(),
            "cleanup": self._cleanup_task.status(),
            "last_cycle": last.summary() if last else None,
        }

    # ── Cycle ────────────────────────────────────────────────────────────

    async def _run_cycle(self) -> CycleReport:
        report = CycleReport(started_at=self._clock())
        logger.info("Alert cycle started")

        try:
            sites = await self._sites.list_active_sites()
        except Exception as exc:
            logger.error("Cannot list active sites, aborting cycle: %s", exc)
            report.aborted = True
            report.abort_reason = f"site directory unavailable: {exc}"
            report.finished_at = self._clock()
            return report

        report.sites_total = len(sites)
        if not sites:
            logger.info("No active sites to check")
            report.finished_at = self._clock()
            return report

        queue: asyncio.Queue[Site] = asyncio.Queue()
        for site in sites:
            queue.put_nowait(site)

        workers = [
            asyncio.create_task(self._worker(queue, report), name=f"alert-worker-{i}")
            for i in range(min(self._concurrency, len(sites)))
        ]
        try:
            await asyncio.gather(*workers)
        except StoreUnavailable as exc:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            logger.error("Alert store unavailable, aborting cycle: %s", exc)
            report.aborted = True
            report.abort_reason = str(exc)

        report.finished_at = self._clock()
        logger.info(
            "Alert cycle finished: %d/%d sites ok, %d failed, %d new alert(s)",
            report.sites_succeeded, report.sites_total,
            len(report.failed_sites), len(report.alerts_created),
        )
        return report

    async def _worker(self, queue: asyncio.Queue[Site], report: CycleReport) -> None:
        while True:
            try:
                site = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            try:
                result = await self._process_site(site)
            except StoreUnavailable:
                raise
            except Exception as exc:
                logger.exception("Unexpected error while processing site %s", site.site_id)
                result = SiteResult(site_id=site.site_id, ok=False, error=str(exc))
            report.record(result)

            if self._pacing > 0 and not queue.empty():
                await self._sleep(self._pacing)

    async def _process_site(self, site: Site) -> SiteResult:
        try:
            snapshot = await self._source.fetch(site)
        except TransientFetchError as exc:
            logger.warning("Skipping site %s: %s", site.site_id, exc)
            return SiteResult(site_id=site.site_id, ok=False, error=str(exc))
        except Exception as exc:
            logger.warning(
                "Skipping site %s after unexpected fetch error: %s",
                site.site_id, exc, exc_info=True,
            )
            return SiteResult(site_id=site.site_id, ok=False, error=str(exc))

        if snapshot.site_id != site.site_id:
            logger.warning(
                "Snapshot source %s returned site %s for %s, skipping",
                self._source.source_name, snapshot.site_id, site.site_id,
            )
            return SiteResult(site_id=site.site_id, ok=False, error="snapshot for wrong site")

        matches = self._evaluator.evaluate(snapshot)

        snapshot_id = None
        if self._snapshots is not None:
            stored = await self._snapshots.record(snapshot, [m.rule_type for m in matches])
            snapshot_id = stored.snapshot_id

        created = await self._lifecycle.reconcile(
            site.site_id, site.owner_id, matches, snapshot_id,
        )

        delivered = 0
        for alert in created:
            delivered += await self._notify(site.owner_id, alert)

        return SiteResult(
            site_id=site.site_id,
            ok=True,
            matches=len(matches),
            alerts=created,
            notifications_delivered=delivered,
        )

    async def _notify(self, owner_id: str, alert: Alert) -> int:
        if self._dispatcher is None:
            return 0
        try:
            result = await self._dispatcher.dispatch(owner_id, alert)
        except Exception:
            logger.exception("Dispatch of alert %s failed", alert.alert_id)
            return 0
        return result.delivered

    # ── Cleanup ──────────────────────────────────────────────────────────

    async def _run_cleanup(self) -> CleanupReport:
        report = CleanupReport()
        try:
            report.alerts_deactivated = await self._lifecycle.expire_stale()
            if self._snapshots is not None:
                report.snapshots_purged = await self._snapshots.purge_older_than(
                    self._snapshot_retention,
                )
        except StoreUnavailable as exc:
            logger.error("Alert store unavailable, aborting cleanup: %s", exc)
            report.aborted = True
            report.abort_reason = str(exc)
            return report

        logger.info(
            "Cleanup finished: %d alert(s) deactivated, %d snapshot(s) purged",
            report.alerts_deactivated, report.snapshots_purged,
        )
        return report
