"""
Shared fixtures: an in-memory CISource and zip archive builders.
"""

import io
import zipfile
from pathlib import Path
from unittest.mock import patch

import pytest

from migration_auditor.models import Build, Job
from migration_auditor.sources import ArtifactsNotFoundError, CISource


class FakeSource(CISource):
    """
    In-memory CI system.

    builds and artifacts values may be exceptions, which are raised when
    the corresponding item is requested.
    """

    def __init__(self, system="fake", jobs=None, builds=None, artifacts=None):
        self.system = system
        self.jobs = jobs if jobs is not None else []
        self.builds = builds or {}
        self.artifacts = artifacts or {}
        self.list_jobs_calls = 0
        self.fetched_refs = []
        self.closed = False

    def list_jobs(self):
        self.list_jobs_calls += 1
        if isinstance(self.jobs, BaseException):
            raise self.jobs
        yield from self.jobs

    def list_builds(self, job_name):
        entry = self.builds.get(job_name, [])
        if isinstance(entry, BaseException):
            raise entry
        if callable(entry):
            entry = entry()
        yield from entry

    def fetch_artifacts(self, ref, dest):
        self.fetched_refs.append(ref)
        entry = self.artifacts.get(ref)
        if entry is None:
            raise ArtifactsNotFoundError(f"no artifacts for {ref}", status_code=404)
        if isinstance(entry, BaseException):
            raise entry
        dest.mkdir(parents=True, exist_ok=True)
        for name, content in entry.items():
            path = dest / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        return len(entry)

    def close(self):
        self.closed = True


def make_files(count, prefix="file"):
    """Artifact mapping of `count` distinct files."""
    return {f"{prefix}-{i}.txt": f"content {i}".encode() for i in range(count)}


def make_zip_bytes(files):
    """Build an in-memory zip archive from a {name: bytes} mapping."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def make_unsupported_zip_bytes(files, method=99):
    """Build a zip whose entries claim a compression method zipfile cannot read."""
    data = bytearray(make_zip_bytes(files))
    for signature, offset in ((b"PK\x03\x04", 8), (b"PK\x01\x02", 10)):
        pos = data.find(signature)
        while pos != -1:
            data[pos + offset:pos + offset + 2] = method.to_bytes(2, "little")
            pos = data.find(signature, pos + 4)
    return bytes(data)


ENV_VARS = (
    "JENKINS_URL", "JENKINS_USER", "JENKINS_TOKEN", "GITHUB_TOKEN", "GH_TOKEN",
    "GITHUB_API_URL", "OUTPUT_DIR", "AUDIT_PARALLEL_WORKERS", "AUDIT_TIMEOUT",
    "MAX_BUILDS_PER_JOB", "PAGE_SIZE", "VERIFY_SSL",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove auditor settings from the environment and skip .env loading."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    with patch("migration_auditor.config.load_dotenv"):
        yield monkeypatch


@pytest.fixture
def jenkins_env(clean_env):
    clean_env.setenv("JENKINS_URL", "https://jenkins.example.com/")
    clean_env.setenv("JENKINS_USER", "auditor")
    clean_env.setenv("JENKINS_TOKEN", "secret")
    return clean_env


@pytest.fixture
def github_env(jenkins_env):
    jenkins_env.setenv("GITHUB_TOKEN", "ghp_test")
    return jenkins_env


@pytest.fixture
def sample_jobs():
    return [
        Job("build-api", "url1", "blue"),
        Job("build-ui", "url2", "red"),
    ]


@pytest.fixture
def sample_builds():
    return {
        "build-api": [
            Build("build-api", 2, "SUCCESS", 1200, 1700000100000),
            Build("build-api", 1, "FAILURE", 900, 1700000000000),
        ],
        "build-ui": [
            Build("build-ui", 7, "ABORTED", 50, 1700000200000),
        ],
    }


@pytest.fixture
def fake_source(sample_jobs, sample_builds):
    return FakeSource(system="jenkins", jobs=sample_jobs, builds=sample_builds)


@pytest.fixture
def zip_file(tmp_path):
    """Factory writing a zip archive to disk and returning its path."""
    def _make(files, name="archive.zip") -> Path:
        path = tmp_path / name
        path.write_bytes(make_zip_bytes(files))
        return path
    return _make
