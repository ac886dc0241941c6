"""Admin API and dashboard: list and export stored submissions."""

from __future__ import annotations

import pathlib
from collections import Counter

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from fastapi.templating import Jinja2Templates

from hommemade.admin.auth import require_admin
from hommemade.admin.export import export_filename, iter_csv
from hommemade.api.deps import get_repository
from hommemade.errors import StoreError
from hommemade.storage.submissions import SubmissionRepository

logger = structlog.get_logger()

router = APIRouter(tags=["admin"], dependencies=[Depends(require_admin)])

TEMPLATES_DIR = pathlib.Path(__file__).parent.parent.parent / "admin" / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _load_error(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": "Failed to load submissions", "message": message},
    )


@router.get("/api/admin/submissions")
async def list_submissions(
    repository: SubmissionRepository = Depends(get_repository),
):
    """All stored submissions, newest first, with blob metadata."""
    try:
        submissions = await repository.list_all()
    except StoreError as e:
        logger.error("admin_submissions_failed", error=str(e), error_type=type(e).__name__)
        return _load_error("An error occurred while loading submissions")

    return [s.model_dump() for s in submissions]


@router.get("/api/admin/export-csv")
async def export_csv(
    repository: SubmissionRepository = Depends(get_repository),
):
    """Download all submissions as a CSV attachment."""
    try:
        submissions = await repository.list_all()
    except StoreError as e:
        logger.error("admin_export_failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to export CSV",
                "message": "An error occurred while generating the CSV export",
            },
        )

    filename = export_filename()
    logger.info("csv_export_generated", submissions=len(submissions), filename=filename)
    return StreamingResponse(
        iter_csv(submissions),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache",
        },
    )


@router.get("/admin", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    repository: SubmissionRepository = Depends(get_repository),
):
    """Server-rendered dashboard: counts per struggle and the submission list."""
    error = None
    try:
        submissions = await repository.list_all()
    except StoreError as e:
        logger.error("admin_dashboard_failed", error=str(e))
        submissions = []
        error = "Could not load submissions from storage."

    struggle_counts: Counter = Counter()
    for sub in submissions:
        struggles = getattr(sub, "struggles", None) or []
        if isinstance(struggles, list):
            struggle_counts.update(str(s) for s in struggles)

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "submissions": [s.model_dump() for s in submissions],
            "total": len(submissions),
            "struggle_counts": struggle_counts.most_common(),
            "error": error,
        },
    )
