"""
Typed result model for the scanning engine.
Shapes findings, statistics and the final report consumed by the API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .rules import Category, Rule, Severity


REDACTED_SUFFIX = "****"
SECRET_PREFIX_CHARS = 4
MAX_MATCH_DISPLAY_CHARS = 120


def redact(text: str, category: Category) -> str:
    """Mask secrets down to a short prefix; truncate other matches."""
    if category is Category.SECRET_EXPOSURE:
        return f"{text[:SECRET_PREFIX_CHARS]}{REDACTED_SUFFIX}"
    if len(text) > MAX_MATCH_DISPLAY_CHARS:
        return text[:MAX_MATCH_DISPLAY_CHARS] + "..."
    return text


@dataclass(frozen=True)
class FileRecord:
    """One entry of a repository tree listing."""

    path: str
    is_blob: bool = True

    @classmethod
    def from_tree_entry(cls, entry: Dict[str, Any]) -> "FileRecord":
        return cls(path=str(entry.get("path") or ""), is_blob=entry.get("type") == "blob")


@dataclass(frozen=True)
class RawMatch:
    rule: Rule
    matched_text: str
    offset: int
    line: int


@dataclass
class FileScanResult:
    """Outcome of scanning one file: its matches and any fetch or rule failures."""

    path: str
    scanned: bool = True
    matches: List[RawMatch] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class Finding:
    id: int
    rule_id: str
    category: Category
    severity: Severity
    file: str
    line: int
    matched_text: str
    title: str
    description: str
    impact: str

    @classmethod
    def from_match(cls, finding_id: int, file_path: str, match: RawMatch) -> "Finding":
        rule = match.rule
        return cls(
            id=finding_id,
            rule_id=rule.rule_id,
            category=rule.category,
            severity=rule.severity,
            file=file_path,
            line=match.line,
            matched_text=match.matched_text,
            title=rule.render_title(file_path),
            description=rule.description,
            impact=rule.impact,
        )

    @property
    def redacted_text(self) -> str:
        return redact(self.matched_text, self.category)

    def to_dict(self, redact_match: bool = False) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "category": self.category.value,
            "severity": self.severity.value,
            "file": self.file,
            "line": self.line,
            "matched_text": self.redacted_text if redact_match else self.matched_text,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
        }


@dataclass
class ScanStats:
    total_files: int = 0
    scanned_files: int = 0
    findings_count: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    @classmethod
    def from_findings(
        cls, total_files: int, scanned_files: int, findings: Iterable[Finding]
    ) -> "ScanStats":
        stats = cls(total_files=total_files, scanned_files=scanned_files)
        for finding in findings:
            stats.add(finding.severity)
        return stats

    def add(self, severity: Severity) -> None:
        attr = severity.value.lower()
        setattr(self, attr, getattr(self, attr) + 1)
        self.findings_count += 1

    def count_for(self, severity: Severity) -> int:
        return getattr(self, severity.value.lower())

    def to_dict(self) -> Dict[str, int]:
        data = {
            "total_files": self.total_files,
            "scanned_files": self.scanned_files,
            "findings_count": self.findings_count,
        }
        for severity in Severity:
            data[severity.value.lower()] = self.count_for(severity)
        return data


@dataclass
class ScanReport:
    """Complete output of one scan run."""

    project: Dict[str, Any]
    stats: ScanStats
    findings: List[Finding]
    errors: List[Dict[str, Any]] = field(default_factory=list)
    rules: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return round((self.finished_at - self.started_at).total_seconds(), 2)

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        return {
            "project": self.project,
            "stats": self.stats.to_dict(),
            "findings": [f.to_dict(redact_match=redact) for f in self.findings],
            "errors": self.errors or None,
            "meta": {
                "rules": list(self.rules),
                "started_at": _iso(self.started_at),
                "finished_at": _iso(self.finished_at),
                "scan_duration_seconds": self.duration_seconds,
            },
        }


def build_report(
    project: Optional[Dict[str, Any]],
    total_files: int,
    scanned_files: int,
    findings: List[Finding],
    errors: Optional[List[Dict[str, Any]]] = None,
    rules: Optional[List[str]] = None,
    started_at: Optional[datetime] = None,
    finished_at: Optional[datetime] = None,
) -> ScanReport:
    """Assemble the report; statistics are derived from the findings."""
    return ScanReport(
        project=dict(project or {}),
        stats=ScanStats.from_findings(total_files, scanned_files, findings),
        findings=list(findings),
        errors=list(errors or []),
        rules=list(rules or []),
        started_at=started_at,
        finished_at=finished_at,
    )


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")
