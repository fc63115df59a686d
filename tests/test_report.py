"""
Tests for the report emitter.
"""

from migration_auditor.models import ArtifactSet, Build, ComparisonResult, Inventory, Job, Verdict
from migration_auditor.report import (
    normalized_status_histogram,
    render_comparison,
    render_comparison_report,
    render_inventory_summary,
    result_histogram,
    status_histogram,
    verdict_tally,
)

GENERATED_AT = "2024-01-15T10:00:00+00:00"


def make_result(repo="acme/api", legacy_count=3, candidate_count=3, candidate_error=None, verdict=Verdict.MATCH):
    return ComparisonResult(
        repo=repo,
        legacy=ArtifactSet(ref=f"{repo.replace('/', '-')}/42", system="jenkins", file_count=legacy_count),
        candidate=ArtifactSet(
            ref=f"{repo}/99",
            system="github",
            file_count=candidate_count,
            error=candidate_error,
        ),
        counts_match=legacy_count == candidate_count,
        verdict=verdict,
    )


class TestHistograms:
    """Tests for histogram helpers."""

    def test_status_histogram(self):
        """Test one blue and one red job."""
        jobs = [Job("build-api", "url1", "blue"), Job("build-ui", "url2", "red")]

        assert status_histogram(jobs) == [("blue", 1), ("red", 1)]

    def test_histogram_sorted_by_count(self):
        """Test most common first, ties by name."""
        jobs = [Job("a", color="red"), Job("b", color="blue"), Job("c", color="red"), Job("d", color="")]

        assert status_histogram(jobs) == [("red", 2), ("(none)", 1), ("blue", 1)]

    def test_normalized_status(self):
        """Test that colours are folded into statuses."""
        jobs = [Job("a", color="blue"), Job("b", color="blue_anime"), Job("c", color="notbuilt")]

        assert normalized_status_histogram(jobs) == [("success", 2), ("unknown", 1)]

    def test_result_histogram(self):
        builds = [Build("a", 1, "SUCCESS"), Build("a", 2, "SUCCESS"), Build("a", 3, "FAILURE")]

        assert result_histogram(builds) == [("SUCCESS", 2), ("FAILURE", 1)]


class TestInventorySummary:
    """Tests for render_inventory_summary."""

    def test_summary_contents(self):
        inventory = Inventory(
            jobs=[Job("build-api", "url1", "blue"), Job("build-ui", "url2", "red")],
            builds=[Build("build-api", 1, "SUCCESS", 65000, 1)],
        )

        summary = render_inventory_summary(inventory, "https://jenkins.example.com", GENERATED_AT)

        assert summary.startswith("# Jenkins Audit Summary")
        assert "**Jenkins URL**: https://jenkins.example.com" in summary
        assert f"**Date**: {GENERATED_AT}" in summary
        assert "Total jobs: 2" in summary
        assert "- 1 blue\n- 1 red" in summary
        assert "- 1 SUCCESS" in summary
        assert "Average duration: 1m 05s" in summary
        assert "gh actions-importer audit jenkins" in summary

    def test_empty_inventory(self):
        """Test that zero jobs still renders a complete document."""
        summary = render_inventory_summary(Inventory(), "https://jenkins.example.com", GENERATED_AT)

        assert "Total jobs: 0" in summary
        assert "_No jobs found._" in summary
        assert "_No builds recorded._" in summary
        assert "## Next Steps" in summary

    def test_failures_listed(self):
        inventory = Inventory(jobs=[Job("stale")], failures={"stale": "404 Not Found"})

        summary = render_inventory_summary(inventory, "u", GENERATED_AT)

        assert "## Build History Failures" in summary
        assert "- `stale`: 404 Not Found" in summary

    def test_github_workflow_summary(self):
        """Test that a workflow snapshot lists workflows that will not trigger."""
        inventory = Inventory(jobs=[Job("CI", "u1", "blue"), Job("Nightly", "u2", "disabled")])

        summary = render_inventory_summary(inventory, "acme/api", GENERATED_AT, system="github")

        assert summary.startswith("# GitHub Actions Workflow Summary")
        assert "**Repository**: acme/api" in summary
        assert "- `Nightly`: disabled" in summary
        assert "`CI`" not in summary
        assert "## Next Steps" not in summary

    def test_github_all_active(self):
        inventory = Inventory(jobs=[Job("CI", "u1", "blue")])

        summary = render_inventory_summary(inventory, "acme/api", GENERATED_AT, system="github")

        assert "All workflows are active." in summary


class TestComparisonRendering:
    """Tests for comparison output."""

    def test_render_match(self):
        text = render_comparison(make_result())

        assert "Jenkins artifacts (acme-api/42): 3 files" in text
        assert "GHA artifacts (acme/api/99): 3 files" in text
        assert "File count matches" in text

    def test_render_incomplete_shows_error(self):
        result = make_result(candidate_count=0, candidate_error="run not found", verdict=Verdict.INCOMPLETE)

        text = render_comparison(result)

        assert "GHA retrieval failed: run not found" in text
        assert "incomplete" in text

    def test_verdict_tally_includes_zero_counts(self):
        assert verdict_tally([make_result()]) == {"match": 1, "mismatch": 0, "incomplete": 0}

    def test_batch_report(self):
        results = [
            make_result(),
            make_result(repo="acme/web", candidate_count=5, verdict=Verdict.MISMATCH),
            make_result(repo="acme/gone", candidate_count=0, candidate_error="404", verdict=Verdict.INCOMPLETE),
        ]

        report = render_comparison_report(results, GENERATED_AT)

        assert "**Comparisons:** 3" in report
        assert "| acme/web | acme-web/42 | acme/web/99 | 3 | 5 | n/a |" in report
        assert "## Retrieval Failures" in report
        assert "`acme/gone` github `acme/gone/99`: 404" in report

    def test_empty_batch_report(self):
        report = render_comparison_report([], GENERATED_AT)

        assert "**Comparisons:** 0" in report
        assert "_No comparisons were run._" in report
