import asyncio
import json
import logging
import os

import requests
from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from pydantic import BaseModel
from starlette.responses import StreamingResponse

from backend.mcps.codescan.config import ScanConfig
from backend.mcps.codescan.errors import (
    AuthenticationFailed,
    InvalidInput,
    RepositoryNotFound,
    ScanError,
)
from backend.mcps.gitlab.client import GitLabClient

from .orchestrator import run_job, run_scan, validate_request
from .store import job_store


logging.basicConfig(
    level=getattr(logging, os.environ.get("LEAKSCAN_LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


class ScanRequest(BaseModel):
    project_path: str | None = None
    token: str | None = None


class ProjectsRequest(BaseModel):
    token: str | None = None


class JobResponse(BaseModel):
    job_id: str
    status: str


app = FastAPI(title="LeakScan API")


def _to_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, InvalidInput):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, RepositoryNotFound):
        return HTTPException(status_code=404, detail="Repository not found")
    if isinstance(exc, AuthenticationFailed):
        return HTTPException(status_code=401, detail="Authentication with the repository host failed")
    return HTTPException(status_code=502, detail="Failed to scan repository")


@app.post("/scan")
def scan(req: ScanRequest) -> dict:
    config = ScanConfig.from_env()
    try:
        report = run_scan(req.project_path, req.token, config=config)
    except (ScanError, requests.RequestException) as exc:
        logger.warning("Scan of %s failed: %s", req.project_path, exc)
        raise _to_http_error(exc) from exc
    return report.to_dict(redact=config.redact_matches)


@app.post("/projects")
def projects(req: ProjectsRequest) -> list:
    if not (req.token or "").strip():
        raise HTTPException(status_code=400, detail="GitLab token is required")
    client = GitLabClient(req.token.strip(), config=ScanConfig.from_env())
    try:
        return client.list_projects()
    except (ScanError, requests.RequestException) as exc:
        logger.warning("Project listing failed: %s", exc)
        raise _to_http_error(exc) from exc


@app.post("/jobs", response_model=JobResponse)
def create_job(req: ScanRequest, background_tasks: BackgroundTasks) -> JobResponse:
    try:
        validate_request(req.project_path, req.token)
    except InvalidInput as exc:
        raise _to_http_error(exc) from exc
    job = job_store.create_job(project_path=req.project_path.strip())
    background_tasks.add_task(run_job, job.job_id, req.token)
    return JobResponse(job_id=job.job_id, status=job.status)


@app.get("/jobs/{job_id}")
def job_status(job_id: str) -> dict:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="job not found")
    return {"job_id": job.job_id, "status": job.status, "timeline": job.timeline}


@app.get("/jobs/{job_id}/events")
async def job_events(job_id: str, request: Request) -> StreamingResponse:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="job not found")

    queue, snapshot = job_store.subscribe(job_id)

    async def stream():
        try:
            for event in snapshot:
                yield f"data: {json.dumps(event)}\n\n"

            while True:
                if await request.is_disconnected():
                    break
                if job.status != "running":
                    # Let already scheduled deliveries land, then drain.
                    await asyncio.sleep(0)
                    while not queue.empty():
                        yield f"data: {json.dumps(queue.get_nowait())}\n\n"
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                yield f"data: {json.dumps(event)}\n\n"
        finally:
            job_store.unsubscribe(job_id, queue)

    return StreamingResponse(stream(), media_type="text/event-stream")


@app.get("/jobs/{job_id}/result")
def job_result(job_id: str) -> dict:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="job not found")
    if job.status == "running":
        return {"job_id": job.job_id, "status": job.status, "timeline": job.timeline}
    return job.result
