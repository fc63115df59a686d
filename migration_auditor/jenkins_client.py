"""
Jenkins JSON API source.

Lists jobs and build histories through the `tree` query parameter and
downloads build artifacts through the `*zip*/archive.zip` endpoint.
Only performs GET requests.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator
from urllib.parse import quote

from .http_client import HTTPClientError, RestClient
from .models import Build, Job
from .sources import ArtifactsNotFoundError, CISource, SourceUnavailableError
from .utils import ARCHIVE_ERRORS, extract_zip, job_name_for_repo

logger = logging.getLogger(__name__)

JOB_FIELDS = "name,url,color"
BUILD_FIELDS = "number,result,duration,timestamp"


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class JenkinsSource(CISource):
    """
    Read-only Jenkins client.

    Usage:
        with JenkinsSource("https://jenkins.example.com", "user", "token") as jenkins:
            for job in jenkins.list_jobs():
                print(job.name, job.status)
    """

    system = "jenkins"
    DEFAULT_PAGE_SIZE = 100

    def __init__(
        self,
        base_url: str,
        user: str,
        token: str,
        timeout: int = RestClient.DEFAULT_TIMEOUT,
        max_retries: int = RestClient.MAX_RETRIES,
        verify_ssl: bool = True,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_builds_per_job: int | None = None,
        client: RestClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.page_size = max(1, page_size)
        self.max_builds_per_job = max_builds_per_job
        self.client = client or RestClient(
            self.base_url,
            auth=(user, token),
            timeout=timeout,
            max_retries=max_retries,
            verify_ssl=verify_ssl,
        )

    def artifact_ref(self, repo: str, build_id: str) -> str:
        """Jenkins jobs are named after the repository with '/' replaced by '-'."""
        return f"{job_name_for_repo(repo)}/{build_id}"

    @staticmethod
    def job_path(job_name: str) -> str:
        """URL path of a top-level job."""
        return f"/job/{quote(job_name, safe='')}"

    def _tree_page(self, path: str, collection: str, fields: str, start: int) -> list[dict[str, Any]]:
        """Fetch one `{start,end}` window of a collection via the tree API."""
        end = start + self.page_size
        params = {"tree": f"{collection}[{fields}]{{{start},{end}}}"}

        try:
            status, data, _ = self.client.get(f"{path}/api/json", params)
        except HTTPClientError as e:
            raise SourceUnavailableError(f"Jenkins request failed: {e}") from e

        if status >= 400:
            raise SourceUnavailableError(
                f"Jenkins returned {status} for {path}/api/json",
                status_code=status,
            )
        if not isinstance(data, dict):
            raise SourceUnavailableError(f"Unexpected Jenkins payload for {path}/api/json")

        items = data.get(collection) or []
        if not isinstance(items, list):
            raise SourceUnavailableError(f"Unexpected '{collection}' field for {path}/api/json")
        return items

    def _paginate(
        self,
        path: str,
        collection: str,
        fields: str,
        max_items: int | None = None,
    ) -> Iterator[dict[str, Any]]:
        start = 0
        fetched = 0
        while True:
            items = self._tree_page(path, collection, fields, start)
            for item in items:
                yield item
                fetched += 1
                if max_items is not None and fetched >= max_items:
                    return
            # A short page is the last one
            if len(items) < self.page_size:
                return
            start += self.page_size

    def list_jobs(self) -> Iterator[Job]:
        for item in self._paginate("", "jobs", JOB_FIELDS):
            name = item.get("name")
            if not name:
                continue
            yield Job(
                name=str(name),
                url=str(item.get("url") or ""),
                color=str(item.get("color") or ""),
            )

    def list_builds(self, job_name: str) -> Iterator[Build]:
        for item in self._paginate(
            self.job_path(job_name),
            "allBuilds",
            BUILD_FIELDS,
            max_items=self.max_builds_per_job,
        ):
            if item.get("number") is None:
                continue
            yield Build(
                job=job_name,
                number=_as_int(item["number"]),
                result=str(item.get("result") or ""),
                duration_ms=_as_int(item.get("duration")),
                timestamp=_as_int(item.get("timestamp")),
            )

    def fetch_artifacts(self, ref: str, dest: Path) -> int:
        """
        Download `<job>/<number>` archive.zip and unpack it into dest.

        Jenkins answers 404 when the build does not exist or archived no
        artifacts.
        """
        job_name, _, number = ref.rpartition("/")
        if not job_name or not number:
            raise ValueError(f"Jenkins build reference must be '<job>/<number>', got {ref!r}")

        archive = dest.parent / f"{dest.name}.zip"
        path = f"{self.job_path(job_name)}/{quote(number, safe='')}/artifact/*zip*/archive.zip"

        try:
            status = self.client.download(path, archive)
        except HTTPClientError as e:
            raise SourceUnavailableError(f"Jenkins artifact download failed: {e}") from e

        if status == 404:
            raise ArtifactsNotFoundError(f"No artifacts for Jenkins build {ref}", status_code=404)
        if status >= 400:
            raise SourceUnavailableError(
                f"Jenkins returned {status} for artifacts of {ref}",
                status_code=status,
            )

        try:
            count = extract_zip(archive, dest)
        except ARCHIVE_ERRORS as e:
            raise SourceUnavailableError(f"Invalid artifact archive for {ref}: {e}") from e
        finally:
            archive.unlink(missing_ok=True)

        logger.debug(f"Extracted {count} Jenkins artifact(s) for {ref}")
        return count

    def close(self) -> None:
        self.client.close()
