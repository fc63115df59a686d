"""
Report Emitter - renders audit snapshots and comparison results.

Every function here is pure: no network, no filesystem, and empty input
renders a valid (if short) document.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from .models import Build, ComparisonResult, Inventory, Job, JobStatus, Verdict
from .utils import format_duration

EMPTY_VALUE = "(none)"

VERDICT_ICONS = {
    Verdict.MATCH: "✅",
    Verdict.MISMATCH: "⚠️",
    Verdict.INCOMPLETE: "❓",
}


def _histogram(values: Iterable[str]) -> list[tuple[str, int]]:
    """Count values, most common first, ties broken by name."""
    counts = Counter(v or EMPTY_VALUE for v in values)
    return sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))


def status_histogram(jobs: Iterable[Job]) -> list[tuple[str, int]]:
    """Jobs per raw legacy status (Jenkins colour)."""
    return _histogram(job.color for job in jobs)


def normalized_status_histogram(jobs: Iterable[Job]) -> list[tuple[str, int]]:
    """Jobs per normalized JobStatus, in enum order, zero counts omitted."""
    counts = Counter(job.status for job in jobs)
    return [(status.value, counts[status]) for status in JobStatus if counts[status]]


def result_histogram(builds: Iterable[Build]) -> list[tuple[str, int]]:
    """Builds per raw legacy result."""
    return _histogram(build.result for build in builds)


def _histogram_lines(histogram: list[tuple[str, int]], empty: str) -> list[str]:
    if not histogram:
        return [empty]
    return [f"- {count} {value}" for value, count in histogram]


_SUMMARY_HEADINGS = {
    "jenkins": ("Jenkins Audit Summary", "Jenkins URL"),
    "github": ("GitHub Actions Workflow Summary", "Repository"),
}


def _inactive_workflow_lines(jobs: list[Job]) -> list[str]:
    """Trigger check: every migrated workflow should be active before cutover."""
    inactive = [job for job in jobs if job.status is not JobStatus.SUCCESS]
    lines = ["## Workflow Triggers", ""]
    if not inactive:
        lines.append("All workflows are active.")
    else:
        lines.append("These workflows will not run until they are re-enabled:")
        lines.append("")
        lines.extend(f"- `{job.name}`: {job.color or 'unknown'}" for job in inactive)
    lines.append("")
    return lines


def render_inventory_summary(
    inventory: Inventory,
    base_url: str,
    generated_at: str,
    system: str = "jenkins",
) -> str:
    """
    Render the human-readable audit summary.

    Args:
        inventory: Collected snapshot
        base_url: Jenkins URL, or the "org/name" repository for GitHub
        generated_at: Timestamp to print in the header
        system: Source system the snapshot was taken from

    Returns:
        Markdown document
    """
    md_lines = []

    title, source_label = _SUMMARY_HEADINGS.get(system, _SUMMARY_HEADINGS["jenkins"])
    md_lines.append(f"# {title}")
    md_lines.append("")
    md_lines.append(f"**Date**: {generated_at}  ")
    md_lines.append(f"**{source_label}**: {base_url}")
    md_lines.append("")

    md_lines.append("## Job Count")
    md_lines.append("")
    md_lines.append(f"Total jobs: {inventory.job_count}")
    md_lines.append("")

    md_lines.append("## Jobs by Status")
    md_lines.append("")
    md_lines.extend(_histogram_lines(status_histogram(inventory.jobs), "_No jobs found._"))
    md_lines.append("")

    normalized = normalized_status_histogram(inventory.jobs)
    if normalized:
        md_lines.append("### Normalized")
        md_lines.append("")
        md_lines.extend(f"- `{status}`: {count}" for status, count in normalized)
        md_lines.append("")

    md_lines.append("## Recent Build Statistics")
    md_lines.append("")
    md_lines.append(f"Total builds: {inventory.build_count}")
    md_lines.append("")
    md_lines.extend(_histogram_lines(result_histogram(inventory.builds), "_No builds recorded._"))
    md_lines.append("")

    if inventory.builds:
        durations = [b.duration_ms for b in inventory.builds]
        md_lines.append(f"Average duration: {format_duration(sum(durations) / len(durations))}  ")
        md_lines.append(f"Longest duration: {format_duration(max(durations))}")
        md_lines.append("")

    if inventory.failures:
        md_lines.append("## Build History Failures")
        md_lines.append("")
        md_lines.append("Build history could not be fetched for these jobs; they are listed in")
        md_lines.append("`jobs.csv` but have no rows in `builds.csv`.")
        md_lines.append("")
        for name in sorted(inventory.failures):
            md_lines.append(f"- `{name}`: {inventory.failures[name]}")
        md_lines.append("")

    if system == "github":
        md_lines.extend(_inactive_workflow_lines(inventory.jobs))
        return "\n".join(md_lines)

    md_lines.append("## Next Steps")
    md_lines.append("")
    md_lines.append("1. Run GitHub Actions Importer: `gh actions-importer audit jenkins --output-dir audit-results`")
    md_lines.append("2. Review generated workflows")
    md_lines.append("3. Prioritise repos for migration")
    md_lines.append("")

    return "\n".join(md_lines)


def render_comparison(result: ComparisonResult) -> str:
    """Operator-facing text block for a single comparison."""
    lines = [
        f"=== Comparison Results: {result.repo} ===",
        f"Jenkins artifacts ({result.legacy.ref}): {result.legacy.file_count} files",
        f"GHA artifacts ({result.candidate.ref}): {result.candidate.file_count} files",
    ]

    for side, label in ((result.legacy, "Jenkins"), (result.candidate, "GHA")):
        if not side.retrieved:
            lines.append(f"  {label} retrieval failed: {side.error}")

    if result.checksums_match is not None:
        lines.append(f"Checksums: {'match' if result.checksums_match else 'differ'}")

    icon = VERDICT_ICONS[result.verdict]
    if result.verdict == Verdict.MATCH:
        lines.append(f"{icon} File count matches")
    elif result.verdict == Verdict.MISMATCH:
        lines.append(f"{icon}  Artifacts mismatch")
    else:
        lines.append(f"{icon} Comparison incomplete: artifacts unavailable on at least one side")

    return "\n".join(lines)


def verdict_tally(results: Iterable[ComparisonResult]) -> dict[str, int]:
    """Count results per verdict, including zero counts."""
    counts = Counter(r.verdict for r in results)
    return {verdict.value: counts[verdict] for verdict in Verdict}


def render_comparison_report(results: list[ComparisonResult], generated_at: str) -> str:
    """
    Render a batch of comparisons as Markdown.

    Returns:
        Markdown document with a verdict tally and one table row per comparison
    """
    md_lines = []

    md_lines.append("# Migration Validation Report")
    md_lines.append("")
    md_lines.append(f"**Generated:** {generated_at}  ")
    md_lines.append(f"**Comparisons:** {len(results)}")
    md_lines.append("")

    md_lines.append("## Verdicts")
    md_lines.append("")
    for verdict, count in verdict_tally(results).items():
        md_lines.append(f"- {VERDICT_ICONS[Verdict(verdict)]} **{verdict}**: {count}")
    md_lines.append("")

    md_lines.append("## Results")
    md_lines.append("")
    if not results:
        md_lines.append("_No comparisons were run._")
        md_lines.append("")
        return "\n".join(md_lines)

    md_lines.append("| Repository | Jenkins build | GHA run | Jenkins files | GHA files | Checksums | Verdict |")
    md_lines.append("|---|---|---|---|---|---|---|")
    for r in results:
        checksums = "n/a" if r.checksums_match is None else ("match" if r.checksums_match else "differ")
        md_lines.append(
            f"| {r.repo} | {r.legacy.ref} | {r.candidate.ref} | {r.legacy.file_count} "
            f"| {r.candidate.file_count} | {checksums} | {VERDICT_ICONS[r.verdict]} {r.verdict.value} |"
        )
    md_lines.append("")

    errors = [(r, side) for r in results for side in (r.legacy, r.candidate) if not side.retrieved]
    if errors:
        md_lines.append("## Retrieval Failures")
        md_lines.append("")
        for r, side in errors:
            md_lines.append(f"- `{r.repo}` {side.system} `{side.ref}`: {side.error}")
        md_lines.append("")

    return "\n".join(md_lines)
