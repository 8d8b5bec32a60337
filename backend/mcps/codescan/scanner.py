"""
Main scanning logic for CodeScan.
Applies the rule set to each file of a repository snapshot and aggregates
findings and statistics into a report.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import regex

from .config import ScanConfig
from .errors import FileDecodeError, FileError, RuleEvaluationError
from .locator import LineIndex
from .models import FileRecord, FileScanResult, Finding, RawMatch, ScanReport, build_report, redact
from .rules import Rule, RuleSet, default_rule_set

logger = logging.getLogger(__name__)

# Fetches the text of one file given its repository-relative path.
ContentFetcher = Callable[[str], Union[str, bytes]]

_RULE_FAILURES = (regex.error, RecursionError, MemoryError, RuleEvaluationError)


def scan_file(
    path: str,
    content: str,
    rules: Iterable[Rule],
    report_all: bool = False,
    timeout: Optional[float] = None,
) -> FileScanResult:
    """
    Apply every rule to one file's content.

    Args:
        path: Repository-relative path (used for error attribution only)
        content: Full decoded file content
        rules: Rules in evaluation order
        report_all: Report every occurrence instead of the first per rule
        timeout: Seconds one rule may spend on this file; a rule that runs
            over is recorded as an error and the remaining rules still run

    Returns:
        FileScanResult with matches ordered by rule, then by position
    """
    result = FileScanResult(path=path)
    index = LineIndex(content)

    for rule in rules:
        try:
            matches = _evaluate(rule, content, path, report_all, timeout)
        except _RULE_FAILURES as exc:
            logger.warning("Rule %s skipped for %s: %s", rule.rule_id, path, exc)
            result.errors.append({"file": path, "rule_id": rule.rule_id, "error": str(exc)})
            continue

        for match in matches:
            offset = match.start()
            raw = RawMatch(
                rule=rule,
                matched_text=match.group(0),
                offset=offset,
                line=index.line_for_offset(offset),
            )
            logger.debug(
                "%s matched %s at line %d: %s",
                rule.rule_id, path, raw.line, redact(raw.matched_text, rule.category),
            )
            result.matches.append(raw)

    return result


def _evaluate(
    rule: Rule,
    content: str,
    path: str,
    report_all: bool,
    timeout: Optional[float],
) -> List["regex.Match"]:
    try:
        if report_all:
            return [m for m in rule.find_all(content, timeout=timeout) if m.group(0)]
        match = rule.find_first(content, timeout=timeout)
    except TimeoutError as exc:
        raise RuleEvaluationError(rule.rule_id, path, exc) from exc
    if match is None or not match.group(0):
        return []
    return [match]


class ScanEngine:
    """
    Runs the file scanner over a repository snapshot.

    Files are fetched and scanned on a bounded thread pool; per-file results
    are put back in input order before finding ids are assigned, so output is
    identical to a sequential run.
    """

    def __init__(self, rule_set: RuleSet, config: Optional[ScanConfig] = None):
        self.rule_set = rule_set
        self.config = config or ScanConfig()

    def run(
        self,
        files: Sequence[FileRecord],
        fetch_content: ContentFetcher,
        project: Optional[Dict[str, Any]] = None,
    ) -> ScanReport:
        started_at = datetime.now(timezone.utc)
        blobs = [record for record in files if record.is_blob]
        logger.info("Scanning %d files with %d rules", len(blobs), len(self.rule_set))

        results = self._scan_all(blobs, fetch_content)

        findings: List[Finding] = []
        errors: List[Dict[str, Any]] = []
        scanned_files = 0
        for result in results:
            errors.extend(result.errors)
            if not result.scanned:
                continue
            scanned_files += 1
            for match in result.matches:
                findings.append(Finding.from_match(len(findings) + 1, result.path, match))

        report = build_report(
            project=project,
            total_files=len(blobs),
            scanned_files=scanned_files,
            findings=findings,
            errors=errors,
            rules=self.rule_set.ids(),
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        logger.info(
            "Scan finished: %d/%d files scanned, %d findings",
            scanned_files, len(blobs), report.stats.findings_count,
        )
        return report

    def _scan_all(self, blobs: List[FileRecord], fetch_content: ContentFetcher) -> List[FileScanResult]:
        workers = min(self.config.max_workers, len(blobs))
        if workers <= 1:
            return [self.scan_record(record, fetch_content) for record in blobs]

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="codescan") as executor:
            # map() yields in submission order regardless of completion order.
            return list(executor.map(lambda record: self.scan_record(record, fetch_content), blobs))

    def scan_record(self, record: FileRecord, fetch_content: ContentFetcher) -> FileScanResult:
        """Fetch and scan a single file. Failures are isolated to this file."""
        try:
            content = _as_text(record.path, fetch_content(record.path))
        except FileError as exc:
            logger.warning("Skipping %s: %s", record.path, exc.reason)
            return _not_scanned(record.path, exc.reason)
        except Exception as exc:
            logger.warning("Error fetching %s: %s", record.path, exc)
            return _not_scanned(record.path, str(exc) or exc.__class__.__name__)

        size = len(content.encode("utf-8"))
        if size > self.config.max_file_bytes:
            logger.warning("Skipping %s: %d bytes exceeds limit", record.path, size)
            return _not_scanned(record.path, f"file too large ({size} bytes)")

        return scan_file(
            record.path,
            content,
            self.rule_set.all_rules(),
            report_all=self.config.report_all_matches,
            timeout=self.config.rule_timeout,
        )


def scan_repository(
    files: Sequence[FileRecord],
    fetch_content: ContentFetcher,
    rule_set: Optional[RuleSet] = None,
    config: Optional[ScanConfig] = None,
    project: Optional[Dict[str, Any]] = None,
) -> ScanReport:
    """
    Scan a repository snapshot for leaked secrets and vulnerable patterns.

    Args:
        files: Tree listing in iteration order; only blobs are scanned
        fetch_content: Callable returning the text (or raw bytes) of a file
        rule_set: Rules to apply; defaults to the shipped rule set
        config: Engine settings; defaults to ScanConfig()
        project: Repository metadata passed through to the report

    Returns:
        ScanReport with findings, statistics and absorbed per-file errors
    """
    engine = ScanEngine(rule_set or default_rule_set(), config)
    return engine.run(files, fetch_content, project=project)


def _as_text(path: str, content: Union[str, bytes]) -> str:
    if isinstance(content, str):
        return content
    if b"\x00" in content:
        raise FileDecodeError(path, "binary content")
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FileDecodeError(path, f"not valid UTF-8 ({exc.reason})") from exc


def _not_scanned(path: str, reason: str) -> FileScanResult:
    return FileScanResult(path=path, scanned=False, errors=[{"file": path, "rule_id": None, "error": reason}])
