from __future__ import annotations

import logging
from functools import partial
from typing import Callable, Optional

from backend.mcps.codescan.config import ScanConfig
from backend.mcps.codescan.errors import InvalidInput
from backend.mcps.codescan.models import ScanReport
from backend.mcps.codescan.rules import RuleSet, default_rule_set
from backend.mcps.codescan.scanner import ScanEngine
from backend.mcps.gitlab.client import GitLabClient

from .store import Job, job_store


logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, ScanConfig], GitLabClient]


def _default_client_factory(token: str, config: ScanConfig) -> GitLabClient:
    return GitLabClient(token, config=config)


def validate_request(project_path: Optional[str], token: Optional[str]) -> None:
    if not (project_path or "").strip():
        raise InvalidInput("Project path is required")
    if not (token or "").strip():
        raise InvalidInput("Token is required")


def run_scan(
    project_path: Optional[str],
    token: Optional[str],
    rule_set: Optional[RuleSet] = None,
    config: Optional[ScanConfig] = None,
    client_factory: ClientFactory = _default_client_factory,
) -> ScanReport:
    """
    Scan one GitLab repository end to end.

    Input is validated before any client exists. RepositoryNotFound and
    AuthenticationFailed from the client propagate; per-file failures are
    absorbed by the engine.
    """
    validate_request(project_path, token)
    config = config or ScanConfig.from_env()
    project_path = project_path.strip()

    client = client_factory(token.strip(), config)
    project = client.get_project(project_path)
    files = client.list_files(project_path)
    logger.info("Fetched %d tree entries for %s", len(files), project_path)

    engine = ScanEngine(rule_set or default_rule_set(), config)
    return engine.run(files, partial(client.get_file_content, project_path), project=project)


def run_job(
    job_id: str,
    token: str,
    config: Optional[ScanConfig] = None,
    client_factory: ClientFactory = _default_client_factory,
) -> None:
    """Background variant of run_scan that records progress on the job timeline."""
    job = job_store.get_job(job_id)
    if job is None:
        return

    config = config or ScanConfig.from_env()
    try:
        report = run_scan(job.project_path, token, config=config, client_factory=client_factory)
    except Exception as exc:
        logger.warning("Scan job %s failed: %s", job_id, exc)
        _fail(job, str(exc) or exc.__class__.__name__)
        return

    stats = report.stats
    job_store.add_event(
        job,
        stage="scan",
        message=f"Scan completed ({stats.scanned_files}/{stats.total_files} files, {stats.findings_count} findings)",
        status="done",
    )
    job_store.add_event(job, stage="finalize", message="Report ready", status="done")
    job.status = "done"
    job.result = {
        "job_id": job.job_id,
        "status": job.status,
        "timeline": job.timeline,
        **report.to_dict(redact=config.redact_matches),
    }


def _fail(job: Job, message: str) -> None:
    job_store.add_event(job, stage="scan", message=message, status="error")
    job.status = "error"
    job.result = {
        "job_id": job.job_id,
        "status": job.status,
        "timeline": job.timeline,
        "error": message,
    }
