"""
CodeScan - Pattern-based secret and vulnerability detection module.
Responsible for rule evaluation, line attribution and report aggregation.
"""

from .config import ScanConfig
from .models import FileRecord, Finding, ScanReport, ScanStats
from .rules import Category, Rule, RuleSet, Severity, default_rule_set
from .scanner import ScanEngine, scan_file, scan_repository

__all__ = [
    "Category",
    "FileRecord",
    "Finding",
    "Rule",
    "RuleSet",
    "ScanConfig",
    "ScanEngine",
    "ScanReport",
    "ScanStats",
    "Severity",
    "default_rule_set",
    "scan_file",
    "scan_repository",
]
