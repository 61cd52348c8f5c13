"""Learning scheduler — periodic rule generation, review and cleanup."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from devpilot.learning.synthesizer import RuleSynthesizer
from devpilot.learning.tracker import PatternTracker
from devpilot.schemas.config import LearningConfig

logger = logging.getLogger(__name__)


class LearningScheduler:
    """Runs the learning jobs on fixed intervals inside the event loop.

    Jobs:
      generate — RuleSynthesizer.generate_rules   (default daily)
      review   — RuleSynthesizer.review_rules     (default weekly)
      cleanup  — PatternTracker.cleanup           (default every 30 days)

    A failing job is logged and keeps its schedule.
    """

    def __init__(
        self,
        synthesizer: RuleSynthesizer,
        tracker: PatternTracker,
        config: LearningConfig | None = None,
    ) -> None:
        self._synthesizer = synthesizer
        self._tracker = tracker
        self._config = config or LearningConfig()
        self._jobs: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._jobs)

    def start(self) -> None:
        """Schedule the three jobs. Must be called from a running event loop."""
        if self.running:
            logger.warning("Learning scheduler already running")
            return

        cfg = self._config
        self._jobs = [
            asyncio.create_task(
                self._every(cfg.generate_interval, "rule generation", self.trigger_rule_generation),
                name="devpilot-generate-rules",
            ),
            asyncio.create_task(
                self._every(cfg.review_interval, "rule review", self.trigger_rule_review),
                name="devpilot-review-rules",
            ),
            asyncio.create_task(
                self._every(cfg.cleanup_interval, "pattern cleanup", self.trigger_cleanup),
                name="devpilot-cleanup-patterns",
            ),
        ]
        logger.info("Learning scheduler started")

    async def stop(self) -> None:
        """Cancel all jobs and wait for them to finish."""
        jobs, self._jobs = self._jobs, []
        for job in jobs:
            job.cancel()
        await asyncio.gather(*jobs, return_exceptions=True)
        logger.info("Learning scheduler stopped")

    async def trigger_rule_generation(self) -> int:
        return await self._synthesizer.generate_rules(
            self._config.min_confidence, self._config.min_success_count,
        )

    async def trigger_rule_review(self) -> int:
        return await self._synthesizer.review_rules()

    async def trigger_cleanup(self) -> int:
        return await self._tracker.cleanup(self._config.cleanup_days)

    def get_status(self) -> dict:
        return {"running": self.running, "jobs": len(self._jobs)}

    @staticmethod
    async def _every(
        interval: float,
        label: str,
        job: Callable[[], Awaitable[int]],
    ) -> None:
        while True:
            await asyncio.sleep(interval)
            logger.info("Running scheduled %s", label)
            try:
                count = await job()
            except Exception:
                logger.exception("Scheduled %s failed", label)
                continue
            logger.info("Scheduled %s finished: %d", label, count)
