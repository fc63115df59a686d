"""
Capability interface shared by the legacy and new CI systems.

The collector and comparator only talk to a CISource, so they can be run
against Jenkins, GitHub Actions, or an in-memory fake in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator

from .models import Build, Job


class SourceError(Exception):
    """Base exception for CI source errors."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SourceUnavailableError(SourceError):
    """The CI system could not be reached or refused the request."""


class ArtifactsNotFoundError(SourceError):
    """The referenced build/run or its artifact bundle does not exist."""


class CISource(ABC):
    """Read-only view of a CI system."""

    #: Short identifier used in reports ("jenkins", "github")
    system: str = "ci"

    @abstractmethod
    def list_jobs(self) -> Iterator[Job]:
        """Yield every job known to the system."""

    @abstractmethod
    def list_builds(self, job_name: str) -> Iterator[Build]:
        """Yield the recorded builds of one job."""

    def artifact_ref(self, repo: str, build_id: str) -> str:
        """Build the fetch_artifacts() reference for a build of a repository."""
        return f"{repo}/{build_id}"

    @abstractmethod
    def fetch_artifacts(self, ref: str, dest: Path) -> int:
        """
        Download and unpack the artifact bundle of one build into dest.

        Returns:
            Number of files written below dest

        Raises:
            ArtifactsNotFoundError: The build or its artifacts do not exist
            SourceUnavailableError: Transport or server failure
        """

    def close(self) -> None:
        """Release any held connections."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
