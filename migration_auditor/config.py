"""Configuration management for the Migration Auditor."""

import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .github_client import DEFAULT_API_URL


def default_output_dir() -> str:
    """Dated output directory used when none is configured."""
    return f"jenkins-audit-{date.today():%Y%m%d}"


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    return int(value)


@dataclass
class AuditConfig:
    """Configuration for the Jenkins audit and artifact comparison."""

    # Required settings
    jenkins_url: str
    jenkins_user: str
    jenkins_token: str

    # Only required for artifact comparison
    github_token: Optional[str] = None
    github_api_url: str = DEFAULT_API_URL

    # Optional settings with defaults
    output_dir: str = ""
    timeout: int = 30
    max_retries: int = 5
    verify_ssl: bool = True
    page_size: int = 100
    max_builds_per_job: Optional[int] = None
    log_level: str = "INFO"

    # Collector parallelism (1 = sequential)
    workers: int = 1
    # Overall bound on the inventory run in seconds (None = unbounded)
    audit_timeout: Optional[float] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.jenkins_url:
            raise ValueError("jenkins_url is required (set JENKINS_URL)")
        if not self.jenkins_user:
            raise ValueError("jenkins_user is required (set JENKINS_USER)")
        if not self.jenkins_token:
            raise ValueError("jenkins_token is required (set JENKINS_TOKEN)")

        self.jenkins_url = self.jenkins_url.rstrip("/")
        self.github_api_url = self.github_api_url.rstrip("/")

        if not self.output_dir:
            self.output_dir = default_output_dir()
        self.output_dir = os.path.expanduser(self.output_dir)

        if self.github_token == "":
            self.github_token = None

        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")
        if self.audit_timeout is not None and self.audit_timeout <= 0:
            raise ValueError("audit_timeout must be positive")

    def require_github(self) -> str:
        """Return the GitHub token or raise if it is not configured."""
        if not self.github_token:
            raise ValueError("github_token is required for artifact comparison (set GITHUB_TOKEN)")
        return self.github_token

    @classmethod
    def from_env(cls, **overrides) -> "AuditConfig":
        """Create configuration from environment variables with optional overrides."""
        load_dotenv()

        audit_timeout = os.getenv("AUDIT_TIMEOUT")
        config_dict = {
            "jenkins_url": os.getenv("JENKINS_URL", ""),
            "jenkins_user": os.getenv("JENKINS_USER", ""),
            "jenkins_token": os.getenv("JENKINS_TOKEN", ""),
            "github_token": os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN") or None,
            "github_api_url": os.getenv("GITHUB_API_URL", DEFAULT_API_URL),
            "output_dir": os.getenv("OUTPUT_DIR", ""),
            "timeout": int(os.getenv("TIMEOUT", "30")),
            "max_retries": int(os.getenv("MAX_RETRIES", "5")),
            "verify_ssl": os.getenv("VERIFY_SSL", "true").lower() == "true",
            "page_size": int(os.getenv("PAGE_SIZE", "100")),
            "max_builds_per_job": _optional_int(os.getenv("MAX_BUILDS_PER_JOB")),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "workers": int(os.getenv("AUDIT_PARALLEL_WORKERS", "1")),
            "audit_timeout": float(audit_timeout) if audit_timeout else None,
        }

        # Apply overrides (filter out None values from CLI)
        for key, value in overrides.items():
            if value is not None:
                config_dict[key] = value

        return cls(**config_dict)


def ensure_output_dir(config: AuditConfig) -> Path:
    """Ensure the output directory exists and return it as a Path."""
    output_path = Path(config.output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    return output_path
