"""Pydantic response envelopes for the FastAPI server."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    success: bool = False
    message: str
    errors: Optional[List[Dict[str, Any]]] = Field(
        default=None, description="Violated fields as {field, message} pairs"
    )


class TasksResponse(BaseModel):
    success: bool = True
    tasks: List[Dict[str, Any]]


class TaskResponse(BaseModel):
    success: bool = True
    task: Dict[str, Any]


class IssuesResponse(BaseModel):
    success: bool = True
    issues: List[Dict[str, Any]]


class IssueResponse(BaseModel):
    success: bool = True
    issue: Dict[str, Any]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UploadedFile(BaseModel):
    name: str = Field(description="Stored file name under the attachments directory")
    originalName: str
    size: int


class UploadResponse(BaseModel):
    success: bool = True
    files: List[UploadedFile]


class HealthResponse(BaseModel):
    """Response for the plain health check endpoint."""

    status: str
    timestamp: str


class SystemHealthResponse(BaseModel):
    success: bool = True
    status: Dict[str, str]
    timestamp: str
    uptime: int
    connections: int


class TaskStats(BaseModel):
    totalTasks: int
    pendingTasks: int
    inProgressTasks: int
    completedTasks: int
    totalIssues: int
    openIssues: int
    criticalIssues: int


class StatsResponse(BaseModel):
    success: bool = True
    stats: TaskStats
    timestamp: str


class ActivityItem(BaseModel):
    id: str
    time: str
    action: str
    type: str
    title: str


class ActivityResponse(BaseModel):
    success: bool = True
    activity: List[ActivityItem]
    timestamp: str


class PerformanceMetrics(BaseModel):
    avgResponseTime: int
    requestCount: int
    errorCount: int
    uptime: int
    timestamp: str


class PerformanceResponse(BaseModel):
    success: bool = True
    metrics: PerformanceMetrics
