"""
Inventory Collector - snapshots the jobs and build histories of a CI system.

Listing jobs is all-or-nothing: if the job list cannot be fetched the run
fails and nothing is written. Fetching one job's build history is
best-effort: a failure leaves that job with no builds and the run goes on.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Iterator

from .config import AuditConfig, ensure_output_dir
from .github_client import GitHubActionsSource
from .jenkins_client import JenkinsSource
from .models import Build, Inventory, Job
from .report import render_inventory_summary
from .sources import CISource, SourceError
from .utils import now_iso, write_csv

logger = logging.getLogger(__name__)

JOBS_HEADER = ("name", "url", "status")
BUILDS_HEADER = ("job", "build_number", "result", "duration_ms", "timestamp")

TIMED_OUT = "timed out before build history was fetched"


class CollectorError(Exception):
    """Raised when the job list itself cannot be retrieved."""


class InventoryCollector:
    """
    Collects a Job/Build snapshot from a CISource.

    With workers > 1 the per-job history fetches run on a bounded thread
    pool. Results are always emitted in job-list order, and an optional
    overall timeout bounds the whole run.
    """

    def __init__(
        self,
        source: CISource,
        workers: int = 1,
        timeout: float | None = None,
    ):
        """
        Args:
            source: CI system to read from
            workers: Maximum concurrent build-history fetches
            timeout: Seconds allowed for all build-history fetches (None = no limit)
        """
        self.source = source
        self.workers = max(1, workers)
        self.timeout = timeout
        self._stop = threading.Event()

    def iter_jobs(self) -> Iterator[Job]:
        """Yield each job once, in source order. Re-fetches on every call."""
        seen: set[str] = set()
        for job in self.source.list_jobs():
            if job.name in seen:
                logger.debug(f"Skipping duplicate job entry: {job.name}")
                continue
            seen.add(job.name)
            yield job

    def iter_builds(self, job_name: str) -> Iterator[Build]:
        """
        Yield each build of a job once, in source order.

        Stops early once a timed-out collection has given up on the job.
        """
        stop = self._stop
        seen: set[int] = set()
        for build in self.source.list_builds(job_name):
            if stop.is_set():
                return
            if build.number in seen:
                continue
            seen.add(build.number)
            yield build

    def _fetch_builds(self, job_name: str) -> tuple[list[Build], str | None]:
        """Fetch one job's history; failures come back as (empty list, message)."""
        try:
            return list(self.iter_builds(job_name)), None
        except SourceError as e:
            logger.warning(f"Could not fetch build history for {job_name}: {e}", extra={"job": job_name})
            return [], str(e)

    def collect(self) -> Inventory:
        """
        Run the collection.

        Raises:
            CollectorError: The job list could not be retrieved
        """
        logger.info("Fetching job list...")
        try:
            jobs = list(self.iter_jobs())
        except SourceError as e:
            raise CollectorError(f"Failed to list jobs: {e}") from e
        logger.info(f"Found {len(jobs)} jobs")

        logger.info("Fetching build history...")
        if self.workers > 1 and len(jobs) > 1:
            histories = self._collect_parallel(jobs)
        else:
            histories = self._collect_sequential(jobs)

        inventory = Inventory(jobs=jobs)
        for job in jobs:
            builds, error = histories[job.name]
            inventory.builds.extend(builds)
            if error is not None:
                inventory.failures[job.name] = error

        logger.info(
            f"Collected {inventory.build_count} builds across {inventory.job_count} jobs "
            f"({len(inventory.failures)} history failures)"
        )
        return inventory

    def _collect_sequential(self, jobs: list[Job]) -> dict[str, tuple[list[Build], str | None]]:
        deadline = time.monotonic() + self.timeout if self.timeout is not None else None
        histories: dict[str, tuple[list[Build], str | None]] = {}

        for idx, job in enumerate(jobs, 1):
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning(f"Audit timeout reached, skipping {len(jobs) - idx + 1} remaining jobs")
                for remaining in jobs[idx - 1:]:
                    histories[remaining.name] = ([], TIMED_OUT)
                break

            logger.debug(f"[{idx}/{len(jobs)}] {job.name}")
            histories[job.name] = self._fetch_builds(job.name)

        return histories

    def _collect_parallel(self, jobs: list[Job]) -> dict[str, tuple[list[Build], str | None]]:
        logger.info(f"Fetching {len(jobs)} build histories with {self.workers} workers")
        histories: dict[str, tuple[list[Build], str | None]] = {}

        stop = self._stop = threading.Event()
        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="collector")
        futures = {executor.submit(self._fetch_builds, job.name): job.name for job in jobs}
        try:
            done, not_done = wait(futures, timeout=self.timeout)
        finally:
            # Unfinished fetches give up at their next build
            stop.set()
            executor.shutdown(wait=False, cancel_futures=True)

        for future in done:
            histories[futures[future]] = future.result()

        if not_done:
            logger.warning(f"Audit timeout reached with {len(not_done)} jobs unfinished")
            for future in not_done:
                histories[futures[future]] = ([], TIMED_OUT)

        return histories


def job_rows(inventory: Inventory) -> Iterator[tuple[str, str, str]]:
    for job in inventory.jobs:
        yield (job.name, job.url, job.color)


def build_rows(inventory: Inventory) -> Iterator[tuple[str, int, str, int, int]]:
    for build in inventory.builds:
        yield (build.job, build.number, build.result, build.duration_ms, build.timestamp)


def save_inventory(
    inventory: Inventory,
    output_dir: Path,
    base_url: str,
    generated_at: str | None = None,
    system: str = "jenkins",
) -> dict[str, Path]:
    """
    Write jobs.csv, builds.csv and, last, summary.md.

    The CSV files depend only on the inventory, so unchanged upstream data
    gives byte-identical files.

    Returns:
        Mapping of output name to written path
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = {
        "jobs": output_dir / "jobs.csv",
        "builds": output_dir / "builds.csv",
        "summary": output_dir / "summary.md",
    }

    write_csv(paths["jobs"], JOBS_HEADER, job_rows(inventory))
    write_csv(paths["builds"], BUILDS_HEADER, build_rows(inventory))

    summary = render_inventory_summary(inventory, base_url, generated_at or now_iso(), system=system)
    paths["summary"].write_text(summary, encoding="utf-8")

    return paths


def run_audit(config: AuditConfig) -> Inventory:
    """
    Run a full Jenkins audit and write its outputs.

    Raises:
        CollectorError: The Jenkins job list could not be retrieved
    """
    logger.info(f"Auditing Jenkins at {config.jenkins_url}")

    with JenkinsSource(
        config.jenkins_url,
        config.jenkins_user,
        config.jenkins_token,
        timeout=config.timeout,
        max_retries=config.max_retries,
        verify_ssl=config.verify_ssl,
        page_size=config.page_size,
        max_builds_per_job=config.max_builds_per_job,
    ) as source:
        collector = InventoryCollector(source, workers=config.workers, timeout=config.audit_timeout)
        inventory = collector.collect()

    output_dir = ensure_output_dir(config)
    paths = save_inventory(inventory, output_dir, config.jenkins_url)

    logger.info(f"Audit complete. Results in {output_dir}/")
    for name, path in paths.items():
        logger.info(f"  - {path.name}: {name}")

    return inventory


def run_workflow_audit(config: AuditConfig, repo: str, output_dir: Path) -> Inventory:
    """
    Snapshot the GitHub Actions workflows of one repository and their runs.

    Workflow state ends up in the status column ("blue" when active,
    "disabled" otherwise) so the files line up with a Jenkins audit.

    Raises:
        CollectorError: The workflow list could not be retrieved
    """
    logger.info(f"Auditing GitHub Actions workflows of {repo}")

    with GitHubActionsSource(
        config.require_github(),
        repo=repo,
        api_url=config.github_api_url,
        timeout=config.timeout,
        max_retries=config.max_retries,
        verify_ssl=config.verify_ssl,
        per_page=config.page_size,
        max_builds_per_job=config.max_builds_per_job,
    ) as source:
        collector = InventoryCollector(source, workers=config.workers, timeout=config.audit_timeout)
        inventory = collector.collect()

    save_inventory(inventory, output_dir, repo, system=source.system)
    logger.info(f"Workflow audit complete. Results in {output_dir}/")
    return inventory
