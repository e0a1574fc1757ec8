"""Issue CRUD endpoints."""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, File, Query, UploadFile

from src.tracker.exceptions import NotFoundError

from ..context import AppContext
from ..dependencies import get_context
from ..errors import error_response
from ..schemas import (
    ErrorResponse,
    IssueResponse,
    IssuesResponse,
    MessageResponse,
    UploadedFile,
    UploadResponse,
)

logger = logging.getLogger(__name__)

MAX_ATTACHMENTS = 5
MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024
ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".pdf", ".txt", ".md"}
ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/pdf",
    "text/plain",
    "text/markdown",
}
ALLOWED_TYPES_MESSAGE = "Invalid file type. Allowed: jpeg, jpg, png, gif, pdf, txt, md"


def _allowed_type(filename: str, content_type: str) -> bool:
    # Both the extension and the declared MIME type must name an allowed format.
    media_type = content_type.split(";", 1)[0].strip().lower()
    extension = Path(filename).suffix.lower()
    return extension in ALLOWED_EXTENSIONS and media_type in ALLOWED_CONTENT_TYPES


def _store_attachment(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


def register_issue_routes(app: FastAPI) -> None:
    """Register issue CRUD endpoints."""

    @app.get("/api/issues", response_model=IssuesResponse)
    async def list_issues(
        task_id: Optional[str] = Query(default=None, alias="taskId"),
        context: AppContext = Depends(get_context),
    ) -> IssuesResponse:
        """All issues, or only those related to ``taskId``."""
        repo = context.issues
        if task_id:
            issues = await asyncio.to_thread(repo.list_by_task, task_id)
        else:
            issues = await asyncio.to_thread(repo.list)
        return IssuesResponse(issues=[issue.to_dict() for issue in issues])

    @app.post(
        "/api/issues/upload",
        response_model=UploadResponse,
        responses={400: {"model": ErrorResponse}},
    )
    async def upload_attachments(
        attachments: List[UploadFile] = File(default=[]),
        context: AppContext = Depends(get_context),
    ):
        """Store up to five attachments (10 MB each) under ``.taskmaster/issues/attachments``."""
        if not attachments:
            return error_response(400, "No files uploaded")
        if len(attachments) > MAX_ATTACHMENTS:
            return error_response(400, f"Too many files (max {MAX_ATTACHMENTS})")

        received = []
        for upload in attachments:
            original_name = Path(upload.filename or "attachment").name
            if not _allowed_type(original_name, upload.content_type or ""):
                return error_response(400, ALLOWED_TYPES_MESSAGE)
            content = await upload.read(MAX_ATTACHMENT_BYTES + 1)
            if len(content) > MAX_ATTACHMENT_BYTES:
                return error_response(400, f"File too large: {original_name}")
            received.append((original_name, content))

        target_dir = context.config.attachments_dir
        files = []
        for original_name, content in received:
            stored_name = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}-{original_name}"
            await asyncio.to_thread(_store_attachment, target_dir / stored_name, content)
            files.append(UploadedFile(name=stored_name, originalName=original_name, size=len(content)))
        logger.info("Stored %d attachment(s) in %s", len(files), target_dir)
        return UploadResponse(files=files)

    @app.get(
        "/api/issues/{issue_id}",
        response_model=IssueResponse,
        responses={404: {"model": ErrorResponse}},
    )
    async def get_issue(issue_id: str, context: AppContext = Depends(get_context)):
        issue = await asyncio.to_thread(context.issues.get, issue_id)
        if issue is None:
            return error_response(404, f"Issue {issue_id} not found")
        return IssueResponse(issue=issue.to_dict())

    @app.post(
        "/api/issues",
        response_model=IssueResponse,
        status_code=201,
        responses={400: {"model": ErrorResponse}},
    )
    async def create_issue(
        payload: Dict[str, Any] = Body(...),
        context: AppContext = Depends(get_context),
    ) -> IssueResponse:
        issue = await asyncio.to_thread(context.issues.create, payload)
        return IssueResponse(issue=issue.to_dict())

    @app.put(
        "/api/issues/{issue_id}",
        response_model=IssueResponse,
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    )
    async def update_issue(
        issue_id: str,
        payload: Dict[str, Any] = Body(...),
        context: AppContext = Depends(get_context),
    ) -> IssueResponse:
        """Partial update; id and createdAt cannot be changed."""
        issue = await asyncio.to_thread(context.issues.update, issue_id, payload)
        return IssueResponse(issue=issue.to_dict())

    @app.delete(
        "/api/issues/{issue_id}",
        response_model=MessageResponse,
        responses={404: {"model": ErrorResponse}},
    )
    async def delete_issue(issue_id: str, context: AppContext = Depends(get_context)) -> MessageResponse:
        deleted = await asyncio.to_thread(context.issues.delete, issue_id)
        if not deleted:
            raise NotFoundError("Issue", issue_id)
        return MessageResponse(message="Issue deleted successfully")
