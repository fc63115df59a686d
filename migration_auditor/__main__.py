#!/usr/bin/env python3
"""
CLI entry point for the Migration Auditor.

Usage:
    # Audit all Jenkins jobs and their build history:
    python -m migration_auditor audit --out ./jenkins-audit

    # List the workflows of a migrated repository and their recent runs:
    python -m migration_auditor workflows --repo acme/api

    # Compare one Jenkins build with one GitHub Actions run:
    python -m migration_auditor compare --jenkins-build 42 --gha-run 123456789 --repo acme/api

    # Compare many pairs listed in a CSV file:
    python -m migration_auditor compare-batch --pairs pairs.csv --out ./validation

Or with environment variables in .env file.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .collector import CollectorError, run_audit, run_workflow_audit
from .comparator import build_comparator, load_pairs, validate_identifiers
from .config import AuditConfig
from .logging_config import setup_structured_logging
from .models import JobStatus
from .report import render_comparison, render_comparison_report
from .schema import build_comparison_report, validate_comparison_report
from .utils import is_repo_slug, job_name_for_repo, now_iso, write_json

logger = logging.getLogger("migration_auditor")

EPILOG = """
Environment Variables (can be set in .env):
  JENKINS_URL                     Jenkins controller URL
  JENKINS_USER                    Jenkins user name
  JENKINS_TOKEN                   Jenkins API token
  GITHUB_TOKEN                    GitHub token with actions:read (workflows and compare commands)
  GITHUB_API_URL                  GitHub API URL (default: https://api.github.com)
  OUTPUT_DIR                      Audit output directory (default: jenkins-audit-YYYYMMDD)
  AUDIT_PARALLEL_WORKERS          Concurrent build-history fetches (default: 1)
  AUDIT_TIMEOUT                   Seconds allowed for all build-history fetches
  MAX_BUILDS_PER_JOB              Cap on builds fetched per job

Exit codes:
  0    completed (including mismatch/incomplete verdicts)
  1    configuration error, job or workflow list unavailable, or unexpected failure
  130  interrupted
"""


def _common_options() -> argparse.ArgumentParser:
    """Options accepted by every sub-command."""
    common = argparse.ArgumentParser(add_help=False)

    conn = common.add_argument_group("connection")
    conn.add_argument("--jenkins-url", metavar="URL", help="Jenkins controller URL")
    conn.add_argument("--jenkins-user", metavar="USER", help="Jenkins user name")
    conn.add_argument("--jenkins-token", metavar="TOKEN", help="Jenkins API token")
    conn.add_argument("--github-token", metavar="TOKEN", help="GitHub token (workflows and compare commands)")

    logs = common.add_argument_group("logging")
    logs.add_argument("-v", "--verbose", action="store_true", help="Enable verbose (debug) logging")
    logs.add_argument("-q", "--quiet", action="store_true", help="Suppress all output except errors")
    logs.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines")

    return common


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    common = _common_options()

    parser = argparse.ArgumentParser(
        prog="migration_auditor",
        description="Audit Jenkins and validate migrated GitHub Actions workflows",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    audit = subparsers.add_parser(
        "audit",
        parents=[common],
        help="Export Jenkins jobs and build history",
    )
    audit.add_argument("--out", metavar="DIR", type=Path, help="Output directory")
    audit.add_argument("--workers", metavar="N", type=int, help="Concurrent build-history fetches")
    audit.add_argument("--timeout", metavar="SECONDS", type=float, help="Overall build-history timeout")
    audit.add_argument("--max-builds", metavar="N", type=int, help="Maximum builds fetched per job")

    workflows = subparsers.add_parser(
        "workflows",
        parents=[common],
        help="List GitHub Actions workflows of a repository and check they are active",
    )
    workflows.add_argument("--repo", metavar="ORG/REPO", required=True, help="Repository in org/name form")
    workflows.add_argument(
        "--out",
        metavar="DIR",
        type=Path,
        help="Output directory (default: ./workflow-audit-<org>-<repo>)",
    )
    workflows.add_argument("--max-builds", metavar="N", type=int, help="Maximum runs fetched per workflow")

    compare = subparsers.add_parser(
        "compare",
        parents=[common],
        help="Compare Jenkins and GitHub Actions build outputs",
    )
    compare.add_argument("--jenkins-build", metavar="NUM", help="Jenkins build number")
    compare.add_argument("--gha-run", metavar="ID", help="GitHub Actions run id")
    compare.add_argument("--repo", metavar="ORG/REPO", help="Repository in org/name form")
    compare.add_argument("--checksums", action="store_true", help="Also compare file checksums")
    compare.add_argument("--json", metavar="FILE", type=Path, help="Write the result as JSON")

    batch = subparsers.add_parser(
        "compare-batch",
        parents=[common],
        help="Compare every pair listed in a CSV file (repo,jenkins_build,gha_run)",
    )
    batch.add_argument("--pairs", metavar="FILE", type=Path, required=True, help="CSV file of pairs")
    batch.add_argument(
        "--out",
        metavar="DIR",
        type=Path,
        default=Path("migration-validation"),
        help="Directory for comparisons.md and comparisons.json (default: ./migration-validation)",
    )
    batch.add_argument("--checksums", action="store_true", help="Also compare file checksums")

    return parser


def _load_config(args: argparse.Namespace) -> AuditConfig:
    """
    Build the configuration and check the sub-command's own arguments.

    Raises:
        ValueError: Missing or invalid settings or identifiers
    """
    config = AuditConfig.from_env(
        jenkins_url=args.jenkins_url,
        jenkins_user=args.jenkins_user,
        jenkins_token=args.jenkins_token,
        github_token=args.github_token,
        output_dir=str(args.out) if args.command == "audit" and args.out else None,
        workers=getattr(args, "workers", None),
        audit_timeout=getattr(args, "timeout", None),
        max_builds_per_job=getattr(args, "max_builds", None),
    )

    if args.command == "compare":
        validate_identifiers(args.jenkins_build, args.gha_run, args.repo)
    if args.command == "workflows" and not is_repo_slug(args.repo):
        raise ValueError(f"Repository must be in 'org/name' form, got {args.repo!r}")
    if args.command in ("compare", "compare-batch", "workflows"):
        config.require_github()

    return config


def _write_report(path: Path, report: dict) -> None:
    is_valid, errors = validate_comparison_report(report)
    if not is_valid:
        for error in errors:
            logger.warning(f"Comparison report schema violation: {error}")
    write_json(path, report)


def cmd_audit(args: argparse.Namespace, config: AuditConfig) -> int:
    try:
        inventory = run_audit(config)
    except CollectorError as e:
        logger.error(str(e))
        return 1

    logger.info(f"Audited {inventory.job_count} jobs and {inventory.build_count} builds")
    return 0


def cmd_workflows(args: argparse.Namespace, config: AuditConfig) -> int:
    output_dir = args.out or Path(f"workflow-audit-{job_name_for_repo(args.repo)}")
    try:
        inventory = run_workflow_audit(config, args.repo, output_dir)
    except CollectorError as e:
        logger.error(str(e))
        return 1

    for job in inventory.jobs:
        state = "active" if job.status is JobStatus.SUCCESS else (job.color or "unknown")
        print(f"{job.name}\t{state}")
    logger.info(f"Listed {inventory.job_count} workflows and {inventory.build_count} runs")
    return 0


def cmd_compare(args: argparse.Namespace, config: AuditConfig) -> int:
    with build_comparator(config, checksums=args.checksums) as comparator:
        result = comparator.compare(args.jenkins_build, args.gha_run, args.repo)

    print(render_comparison(result))

    if args.json:
        _write_report(args.json, build_comparison_report([result], now_iso()))
        logger.info(f"Result written to {args.json}")

    return 0


def cmd_compare_batch(args: argparse.Namespace, config: AuditConfig) -> int:
    try:
        pairs = load_pairs(args.pairs)
    except FileNotFoundError:
        logger.error(f"Pairs file not found: {args.pairs}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid pairs file: {e}")
        return 1

    with build_comparator(config, checksums=args.checksums) as comparator:
        results = comparator.compare_batch(pairs)

    generated_at = now_iso()
    args.out.mkdir(parents=True, exist_ok=True)
    (args.out / "comparisons.md").write_text(
        render_comparison_report(results, generated_at),
        encoding="utf-8",
    )
    _write_report(args.out / "comparisons.json", build_comparison_report(results, generated_at))

    for result in results:
        print(render_comparison(result))
        print()
    logger.info(f"{len(results)} comparisons written to {args.out}/")
    return 0


COMMANDS = {
    "audit": cmd_audit,
    "workflows": cmd_workflows,
    "compare": cmd_compare,
    "compare-batch": cmd_compare_batch,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.quiet:
        log_level = logging.ERROR
    elif args.verbose:
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO
    setup_structured_logging(level=log_level, json_format=args.log_json)

    try:
        config = _load_config(args)
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Please provide required settings via CLI arguments or .env file")
        return 1

    try:
        return COMMANDS[args.command](args, config)

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130

    except Exception as e:
        logger.exception(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
