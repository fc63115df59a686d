"""
GitHub Actions source.

Exposes workflows as jobs and workflow runs as builds so the same
collector can inventory either system, and downloads run artifacts the way
`gh run download -D <dir>` lays them out (one sub-directory per artifact).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Iterator

from requests.utils import parse_header_links

from .http_client import HTTPClientError, RestClient
from .models import Build, Job
from .sources import ArtifactsNotFoundError, CISource, SourceUnavailableError
from .utils import ARCHIVE_ERRORS, extract_zip, is_repo_slug, parse_iso

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"

# Workflow state -> Jenkins-style colour, so job tables look the same for both systems
_STATE_COLORS = {
    "active": "blue",
    "disabled_manually": "disabled",
    "disabled_inactivity": "disabled",
    "disabled_fork": "disabled",
}

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


def _epoch_ms(timestamp: str | None) -> int:
    if not timestamp:
        return 0
    return int(parse_iso(timestamp).timestamp() * 1000)


class GitHubActionsSource(CISource):
    """
    Read-only GitHub Actions client.

    Artifact references have the form "<org>/<repo>/<run_id>".
    """

    system = "github"
    DEFAULT_PER_PAGE = 100

    def __init__(
        self,
        token: str,
        repo: str | None = None,
        api_url: str = DEFAULT_API_URL,
        timeout: int = RestClient.DEFAULT_TIMEOUT,
        max_retries: int = RestClient.MAX_RETRIES,
        verify_ssl: bool = True,
        per_page: int = DEFAULT_PER_PAGE,
        max_builds_per_job: int | None = None,
        client: RestClient | None = None,
    ):
        self.repo = repo
        self.per_page = per_page
        self.max_builds_per_job = max_builds_per_job
        self._workflow_ids: dict[str, int] = {}
        self.client = client or RestClient(
            api_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            max_retries=max_retries,
            verify_ssl=verify_ssl,
        )

    def _require_repo(self) -> str:
        if not self.repo:
            raise ValueError("A repository ('org/name') is required to list workflows")
        return self.repo

    def _get(self, path: str, params: dict[str, Any] | None = None) -> tuple[int, Any, dict[str, str]]:
        try:
            return self.client.get(path, params)
        except HTTPClientError as e:
            raise SourceUnavailableError(f"GitHub request failed: {e}") from e

    def _paginate(
        self,
        path: str,
        collection: str,
        max_items: int | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Follow Link rel="next" headers through a list endpoint."""
        url: str | None = path
        params: dict[str, Any] | None = {"per_page": self.per_page}
        fetched = 0

        while url:
            status, data, headers = self._get(url, params)
            if status == 404:
                raise ArtifactsNotFoundError(f"GitHub resource not found: {path}", status_code=404)
            if status >= 400:
                raise SourceUnavailableError(f"GitHub returned {status} for {path}", status_code=status)

            items = data.get(collection) or [] if isinstance(data, dict) else []
            for item in items:
                yield item
                fetched += 1
                if max_items is not None and fetched >= max_items:
                    return

            url = None
            params = None  # the next link already carries the query string
            link = headers.get("Link") or headers.get("link")
            if link:
                for entry in parse_header_links(link):
                    if entry.get("rel") == "next":
                        url = entry.get("url")
                        break

    def list_jobs(self) -> Iterator[Job]:
        repo = self._require_repo()
        for workflow in self._paginate(f"/repos/{repo}/actions/workflows", "workflows"):
            name = workflow.get("name") or workflow.get("path") or str(workflow.get("id"))
            if workflow.get("id") is not None:
                self._workflow_ids[name] = workflow["id"]
            yield Job(
                name=name,
                url=str(workflow.get("html_url") or ""),
                color=_STATE_COLORS.get(workflow.get("state", ""), ""),
            )

    def list_builds(self, job_name: str) -> Iterator[Build]:
        """
        Yield the runs of one workflow.

        job_name is a workflow name seen by list_jobs(), or a workflow file
        name such as "ci.yml".
        """
        repo = self._require_repo()
        workflow_id = self._workflow_ids.get(job_name, job_name)

        for run in self._paginate(
            f"/repos/{repo}/actions/workflows/{workflow_id}/runs",
            "workflow_runs",
            max_items=self.max_builds_per_job,
        ):
            started = _epoch_ms(run.get("run_started_at") or run.get("created_at"))
            finished = _epoch_ms(run.get("updated_at"))
            yield Build(
                job=job_name,
                number=int(run.get("run_number") or 0),
                result=str(run.get("conclusion") or ""),
                duration_ms=max(0, finished - started) if started and finished else 0,
                timestamp=started,
            )

    def fetch_artifacts(self, ref: str, dest: Path) -> int:
        """
        Download every artifact of a run into dest/<artifact name>/.

        A run that produced no artifacts yields 0. A run that does not exist,
        or that has any expired artifact, raises ArtifactsNotFoundError.
        """
        repo, _, run_id = ref.rpartition("/")
        if not is_repo_slug(repo) or not run_id:
            raise ValueError(f"GitHub run reference must be '<org>/<repo>/<run_id>', got {ref!r}")

        dest.mkdir(parents=True, exist_ok=True)
        artifacts = list(self._paginate(f"/repos/{repo}/actions/runs/{run_id}/artifacts", "artifacts"))

        expired = [str(a.get("name") or a.get("id")) for a in artifacts if a.get("expired")]
        if expired:
            raise ArtifactsNotFoundError(
                f"{len(expired)} of {len(artifacts)} artifact(s) of run {run_id} have expired: "
                f"{', '.join(expired)}"
            )

        total = 0
        for artifact in artifacts:
            name = _UNSAFE_NAME.sub("_", str(artifact.get("name") or artifact.get("id")))
            archive = dest.parent / f"{dest.name}-{name}.zip"
            url = artifact.get("archive_download_url") or (
                f"/repos/{repo}/actions/artifacts/{artifact['id']}/zip"
            )

            try:
                status = self.client.download(url, archive)
            except HTTPClientError as e:
                raise SourceUnavailableError(f"GitHub artifact download failed: {e}") from e

            if status == 410 or status == 404:
                raise ArtifactsNotFoundError(
                    f"Artifact '{name}' of run {run_id} is no longer available",
                    status_code=status,
                )
            if status >= 400:
                raise SourceUnavailableError(
                    f"GitHub returned {status} downloading artifact '{name}'",
                    status_code=status,
                )

            try:
                total += extract_zip(archive, dest / name)
            except ARCHIVE_ERRORS as e:
                raise SourceUnavailableError(f"Invalid artifact archive '{name}': {e}") from e
            finally:
                archive.unlink(missing_ok=True)

        logger.debug(f"Extracted {total} GitHub artifact file(s) for run {run_id} ({len(artifacts)} artifacts)")
        return total

    def close(self) -> None:
        self.client.close()
