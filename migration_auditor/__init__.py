"""
Migration Auditor - audits a Jenkins controller and validates that migrated
GitHub Actions workflows produce the same artifacts.

This is a read-only tool for Jenkins->GitHub Actions migration planning.
No write operations are performed against either CI system.
"""

__version__ = "0.1.0"

from .collector import InventoryCollector, run_audit, save_inventory
from .comparator import ArtifactComparator, ComparisonPair
from .github_client import GitHubActionsSource
from .jenkins_client import JenkinsSource
from .models import ComparisonResult, Inventory, Verdict

__all__ = [
    "ArtifactComparator",
    "ComparisonPair",
    "ComparisonResult",
    "GitHubActionsSource",
    "Inventory",
    "InventoryCollector",
    "JenkinsSource",
    "Verdict",
    "run_audit",
    "save_inventory",
    "__version__",
]
