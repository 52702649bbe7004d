"""The worker loop: reconcile when due, then balance, for every enabled repository.

Repositories are processed one after another. There is no parallelism
across repositories, which bounds the load on the host and means the
store's selection lock is never contended by this loop. Shutdown only stops
new cycles from being scheduled; a cycle in flight always runs to the end.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from revbalance_core.balancer import BalanceResult, ReviewBalancer
from revbalance_core.reconciler import ReconcileReport, Reconciler
from revbalance_store.base import BaseStore
from revbalance_store.models import Repository

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    repository: str
    reconcile: ReconcileReport | None = None
    results: list[BalanceResult] = field(default_factory=list)
    error: str | None = None


class Manager:
    def __init__(
        self,
        store: BaseStore,
        reconciler: Reconciler,
        balancer: ReviewBalancer,
        reconcile_interval: timedelta = timedelta(hours=24),
        poll_interval: float = 300,
    ):
        self._store = store
        self._reconciler = reconciler
        self._balancer = balancer
        self._reconcile_interval = reconcile_interval
        self._poll_interval = poll_interval

    def reconcile_due(self, repository: Repository, now: datetime) -> bool:
        if repository.last_reconciled_at is None or not repository.external_repo_id:
            return True
        return repository.last_reconciled_at + self._reconcile_interval <= now

    def run_once(self, now: datetime | None = None) -> list[CycleReport]:
        """Run one cycle over all enabled repositories.

        An error on one repository is logged and recorded in its report;
        the cycle moves on to the next repository.
        """
        now = now or self._store.now()
        reports = []
        for repository in self._store.list_repositories(enabled_only=True):
            report = CycleReport(repository=repository.full_name)
            try:
                if self.reconcile_due(repository, now):
                    report.reconcile = self._reconciler.reconcile(repository)
                logger.info("Starting balance cycle for %s", repository.full_name)
                report.results = self._balancer.run(repository)
                logger.info("Finished balance cycle for %s", repository.full_name)
            except Exception as e:
                logger.exception("Cycle failed for %s", repository.full_name)
                report.error = f"{type(e).__name__}: {e}"
            reports.append(report)
        return reports

    def run_forever(self, stop_event: threading.Event | None = None) -> None:
        """Run cycles every ``poll_interval`` seconds until ``stop_event`` is set."""
        stop_event = stop_event or threading.Event()
        logger.info("Balancer started; polling every %ss", self._poll_interval)
        while not stop_event.is_set():
            self.run_once()
            stop_event.wait(self._poll_interval)
        logger.info("Balancer stopped")
