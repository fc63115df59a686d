"""
Artifact Comparator - checks that a migrated pipeline produces the same
artifacts as the Jenkins build it replaces.

Each side is retrieved best-effort. A side that cannot be retrieved counts
as zero files and turns the verdict into "incomplete"; a side that was
retrieved but holds no files is a real result and is compared normally.
"""

from __future__ import annotations

import csv
import logging
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from .config import AuditConfig
from .github_client import GitHubActionsSource
from .http_client import HTTPClientError
from .jenkins_client import JenkinsSource
from .logging_config import LogContext
from .models import ArtifactSet, ComparisonResult, decide_verdict
from .sources import CISource, SourceError
from .utils import ARCHIVE_ERRORS, count_files, is_repo_slug, tree_checksums

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparisonPair:
    """One (repository, Jenkins build, GitHub run) triple to validate."""
    repo: str
    legacy_build: str
    run_id: str


def validate_identifiers(legacy_build: str, run_id: str, repo: str) -> None:
    """Raise ValueError if any comparison identifier is missing or malformed."""
    if not str(legacy_build or "").strip():
        raise ValueError("Jenkins build number is required")
    if not str(run_id or "").strip():
        raise ValueError("GitHub Actions run id is required")
    if not repo or not is_repo_slug(repo):
        raise ValueError(f"Repository must be in 'org/name' form, got {repo!r}")


class ArtifactComparator:
    """
    Compares the artifact bundles of a legacy build and a new-system run.

    Usage:
        comparator = ArtifactComparator(jenkins, github)
        result = comparator.compare("42", "123456789", "acme/api")
    """

    def __init__(
        self,
        legacy: CISource,
        candidate: CISource,
        checksums: bool = False,
        concurrent: bool = True,
    ):
        """
        Args:
            legacy: Source for the legacy build (Jenkins)
            candidate: Source for the new-system run (GitHub Actions)
            checksums: Also compare SHA-256 digests of the files
            concurrent: Retrieve both sides at the same time
        """
        self.legacy = legacy
        self.candidate = candidate
        self.checksums = checksums
        self.concurrent = concurrent

    def _retrieve(self, source: CISource, ref: str, dest: Path) -> ArtifactSet:
        """Fetch one side; retrieval failures are captured, not raised."""
        artifacts = ArtifactSet(ref=ref, system=source.system)
        try:
            source.fetch_artifacts(ref, dest)
        except (SourceError, HTTPClientError, OSError, *ARCHIVE_ERRORS) as e:
            logger.warning(f"No {source.system} artifacts for {ref}: {e}")
            artifacts.error = str(e) or type(e).__name__
            return artifacts

        artifacts.file_count = count_files(dest)
        if self.checksums:
            artifacts.checksums = tree_checksums(dest)
        return artifacts

    def compare(self, legacy_build: str, run_id: str, repo: str) -> ComparisonResult:
        """
        Compare one Jenkins build with one GitHub Actions run.

        The temporary workspace is removed before this returns or raises.

        Raises:
            ValueError: Missing or malformed identifiers
        """
        validate_identifiers(legacy_build, run_id, repo)
        legacy_ref = self.legacy.artifact_ref(repo, str(legacy_build).strip())
        candidate_ref = self.candidate.artifact_ref(repo, str(run_id).strip())

        with LogContext(correlation_id=f"{repo}#{legacy_build}->{run_id}"):
            logger.info(f"Comparing Jenkins #{legacy_build} vs GHA #{run_id} for {repo}")

            with tempfile.TemporaryDirectory(prefix="migration-audit-") as work_dir:
                work = Path(work_dir)
                legacy_dir = work / "legacy"
                candidate_dir = work / "candidate"

                if self.concurrent:
                    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="artifacts") as executor:
                        legacy_future = executor.submit(self._retrieve, self.legacy, legacy_ref, legacy_dir)
                        candidate_future = executor.submit(
                            self._retrieve, self.candidate, candidate_ref, candidate_dir
                        )
                        legacy = legacy_future.result()
                        candidate = candidate_future.result()
                else:
                    legacy = self._retrieve(self.legacy, legacy_ref, legacy_dir)
                    candidate = self._retrieve(self.candidate, candidate_ref, candidate_dir)

            counts_match = legacy.file_count == candidate.file_count
            checksums_match = None
            if self.checksums and legacy.retrieved and candidate.retrieved:
                checksums_match = legacy.checksums == candidate.checksums

            verdict = decide_verdict(legacy, candidate, checksums_match)
            logger.info(
                f"Verdict {verdict.value}: jenkins={legacy.file_count} files, "
                f"gha={candidate.file_count} files"
            )

        return ComparisonResult(
            repo=repo,
            legacy=legacy,
            candidate=candidate,
            counts_match=counts_match,
            checksums_match=checksums_match,
            verdict=verdict,
        )

    def compare_batch(self, pairs: list[ComparisonPair]) -> list[ComparisonResult]:
        """
        Compare every pair in order.

        Mismatches and incomplete results never stop the batch; pairs with
        invalid identifiers are logged and skipped.
        """
        results = []
        for idx, pair in enumerate(pairs, 1):
            logger.info(f"[{idx}/{len(pairs)}] {pair.repo}")
            try:
                results.append(self.compare(pair.legacy_build, pair.run_id, pair.repo))
            except ValueError as e:
                logger.error(f"Skipping invalid pair {pair}: {e}")
        return results

    def close(self) -> None:
        self.legacy.close()
        self.candidate.close()

    def __enter__(self) -> "ArtifactComparator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def load_pairs(path: Path) -> list[ComparisonPair]:
    """
    Read comparison pairs from a CSV file.

    Expected header: repo,jenkins_build,gha_run. Blank rows and rows whose
    first cell starts with "#" are ignored.
    """
    pairs = []
    with open(path, "r", encoding="utf-8", newline="") as f:
        rows = (line for line in f if line.strip() and not line.lstrip().startswith("#"))
        reader = csv.DictReader(rows)
        missing = {"repo", "jenkins_build", "gha_run"} - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"{path}: missing column(s) {', '.join(sorted(missing))}")
        for row in reader:
            pairs.append(ComparisonPair(
                repo=(row["repo"] or "").strip(),
                legacy_build=(row["jenkins_build"] or "").strip(),
                run_id=(row["gha_run"] or "").strip(),
            ))
    return pairs


def build_comparator(config: AuditConfig, checksums: bool = False) -> ArtifactComparator:
    """
    Create a comparator wired to Jenkins and GitHub from configuration.

    Raises:
        ValueError: GitHub token missing
    """
    github_token = config.require_github()

    jenkins = JenkinsSource(
        config.jenkins_url,
        config.jenkins_user,
        config.jenkins_token,
        timeout=config.timeout,
        max_retries=config.max_retries,
        verify_ssl=config.verify_ssl,
    )
    github = GitHubActionsSource(
        github_token,
        api_url=config.github_api_url,
        timeout=config.timeout,
        max_retries=config.max_retries,
        verify_ssl=config.verify_ssl,
    )
    return ArtifactComparator(jenkins, github, checksums=checksums)
