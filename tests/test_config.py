"""
Tests for configuration loading.
"""

import pytest

from migration_auditor.config import AuditConfig, ensure_output_dir


class TestAuditConfig:
    """Tests for AuditConfig validation."""

    def test_missing_jenkins_url(self):
        with pytest.raises(ValueError, match="jenkins_url"):
            AuditConfig(jenkins_url="", jenkins_user="u", jenkins_token="t")

    def test_missing_token(self):
        with pytest.raises(ValueError, match="jenkins_token"):
            AuditConfig(jenkins_url="https://j", jenkins_user="u", jenkins_token="")

    def test_defaults(self):
        config = AuditConfig(jenkins_url="https://j/", jenkins_user="u", jenkins_token="t")

        assert config.jenkins_url == "https://j"
        assert config.output_dir.startswith("jenkins-audit-")
        assert config.workers == 1
        assert config.audit_timeout is None

    def test_require_github(self):
        config = AuditConfig(jenkins_url="https://j", jenkins_user="u", jenkins_token="t")

        with pytest.raises(ValueError, match="github_token"):
            config.require_github()

    def test_invalid_workers(self):
        with pytest.raises(ValueError):
            AuditConfig(jenkins_url="https://j", jenkins_user="u", jenkins_token="t", workers=0)


class TestFromEnv:
    """Tests for AuditConfig.from_env."""

    def test_reads_environment(self, jenkins_env):
        jenkins_env.setenv("GH_TOKEN", "ghp_x")
        jenkins_env.setenv("AUDIT_PARALLEL_WORKERS", "4")
        jenkins_env.setenv("AUDIT_TIMEOUT", "120")
        jenkins_env.setenv("MAX_BUILDS_PER_JOB", "50")

        config = AuditConfig.from_env()

        assert config.jenkins_url == "https://jenkins.example.com"
        assert config.github_token == "ghp_x"
        assert config.workers == 4
        assert config.audit_timeout == 120.0
        assert config.max_builds_per_job == 50

    def test_overrides_win_and_none_ignored(self, jenkins_env):
        config = AuditConfig.from_env(jenkins_user="override", output_dir=None, workers=3)

        assert config.jenkins_user == "override"
        assert config.workers == 3
        assert config.output_dir.startswith("jenkins-audit-")

    def test_missing_credentials(self, clean_env):
        with pytest.raises(ValueError):
            AuditConfig.from_env()

    def test_ensure_output_dir(self, jenkins_env, tmp_path):
        config = AuditConfig.from_env(output_dir=str(tmp_path / "out"))

        path = ensure_output_dir(config)

        assert path.is_dir()
