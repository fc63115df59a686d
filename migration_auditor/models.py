"""
Data model for the migration audit.

Jobs and builds are immutable snapshots taken from the legacy CI system.
Artifact sets and comparison results live only for the duration of one
comparison run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Normalized last-known status of a job."""
    SUCCESS = "success"
    FAILURE = "failure"
    UNSTABLE = "unstable"
    DISABLED = "disabled"
    UNKNOWN = "unknown"


class BuildResult(str, Enum):
    """Normalized outcome of a single build."""
    SUCCESS = "success"
    FAILURE = "failure"
    ABORTED = "aborted"
    UNKNOWN = "unknown"


class Verdict(str, Enum):
    """Outcome of comparing two artifact bundles."""
    MATCH = "match"
    MISMATCH = "mismatch"
    INCOMPLETE = "incomplete"


# Jenkins ball colours; "_anime" suffix marks a build in progress
_COLOR_STATUS = {
    "blue": JobStatus.SUCCESS,
    "green": JobStatus.SUCCESS,
    "red": JobStatus.FAILURE,
    "yellow": JobStatus.UNSTABLE,
    "disabled": JobStatus.DISABLED,
}

_RESULT_OUTCOME = {
    # Jenkins
    "SUCCESS": BuildResult.SUCCESS,
    "FAILURE": BuildResult.FAILURE,
    "UNSTABLE": BuildResult.FAILURE,
    "ABORTED": BuildResult.ABORTED,
    # GitHub Actions run conclusions
    "success": BuildResult.SUCCESS,
    "failure": BuildResult.FAILURE,
    "timed_out": BuildResult.FAILURE,
    "startup_failure": BuildResult.FAILURE,
    "cancelled": BuildResult.ABORTED,
}


def status_from_color(color: str | None) -> JobStatus:
    """Map a Jenkins job colour to a JobStatus."""
    if not color:
        return JobStatus.UNKNOWN
    base = color.lower()
    if base.endswith("_anime"):
        base = base[: -len("_anime")]
    return _COLOR_STATUS.get(base, JobStatus.UNKNOWN)


def outcome_from_result(result: str | None) -> BuildResult:
    """Map a raw build result string to a BuildResult."""
    if not result:
        return BuildResult.UNKNOWN
    return _RESULT_OUTCOME.get(result, BuildResult.UNKNOWN)


@dataclass(frozen=True)
class Job:
    """A named unit of legacy CI configuration."""
    name: str
    url: str = ""
    color: str = ""

    @property
    def status(self) -> JobStatus:
        return status_from_color(self.color)


@dataclass(frozen=True)
class Build:
    """One execution of a job."""
    job: str
    number: int
    result: str = ""
    duration_ms: int = 0
    timestamp: int = 0

    def __post_init__(self):
        if self.duration_ms < 0:
            object.__setattr__(self, "duration_ms", 0)

    @property
    def outcome(self) -> BuildResult:
        return outcome_from_result(self.result)

    @property
    def key(self) -> tuple[str, int]:
        return (self.job, self.number)


@dataclass
class Inventory:
    """
    Snapshot produced by one collector run.

    Jobs keep the order the legacy system listed them in; builds are grouped
    by job in that same order.
    """
    jobs: list[Job] = field(default_factory=list)
    builds: list[Build] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def job_count(self) -> int:
        return len(self.jobs)

    @property
    def build_count(self) -> int:
        return len(self.builds)

    def builds_for(self, job_name: str) -> list[Build]:
        """Return the builds recorded for one job."""
        return [b for b in self.builds if b.job == job_name]


@dataclass
class ArtifactSet:
    """Artifacts retrieved for one build or run."""
    ref: str
    system: str
    file_count: int = 0
    checksums: list[str] | None = None
    error: str | None = None

    @property
    def retrieved(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ref": self.ref,
            "system": self.system,
            "file_count": self.file_count,
            "checksums": self.checksums,
            "error": self.error,
        }


@dataclass
class ComparisonResult:
    """Result of comparing a legacy build against a new-system run."""
    repo: str
    legacy: ArtifactSet
    candidate: ArtifactSet
    counts_match: bool
    verdict: Verdict
    checksums_match: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "repo": self.repo,
            "legacy": self.legacy.to_dict(),
            "candidate": self.candidate.to_dict(),
            "counts_match": self.counts_match,
            "checksums_match": self.checksums_match,
            "verdict": self.verdict.value,
        }


def decide_verdict(
    legacy: ArtifactSet,
    candidate: ArtifactSet,
    checksums_match: bool | None = None,
) -> Verdict:
    """
    Decide the verdict for a pair of artifact sets.

    A failed retrieval on either side always yields INCOMPLETE, regardless of
    the other side's count. A computed checksum difference is a mismatch even
    when the counts agree.
    """
    if not legacy.retrieved or not candidate.retrieved:
        return Verdict.INCOMPLETE
    if legacy.file_count != candidate.file_count:
        return Verdict.MISMATCH
    if checksums_match is False:
        return Verdict.MISMATCH
    return Verdict.MATCH
