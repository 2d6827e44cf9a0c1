"""Data models for crawl jobs, captured pages and results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from flowcrawl.crawl_options import CrawlOptions


class JobStatus(Enum):
    """Lifecycle states of a crawl job."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})

# Allowed lifecycle edges; terminal states have none. Every terminal state,
# cancelled included, is reached through running.
TRANSITIONS = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class FlowNode:
    """One captured page in the flow graph."""

    id: str
    url: str
    title: str
    screenshot_path: str
    depth: int
    parent_url: Optional[str] = None
    captured_at: datetime = field(default_factory=datetime.now)

    @property
    def screenshot_filename(self) -> str:
        return self.screenshot_path.replace("\\", "/").rsplit("/", 1)[-1]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "screenshot_path": self.screenshot_path,
            "screenshot_filename": self.screenshot_filename,
            "depth": self.depth,
            "parent_url": self.parent_url,
            "captured_at": self.captured_at.isoformat(),
        }


@dataclass(frozen=True)
class PageError:
    """A per-page failure recorded during traversal."""

    url: str
    error_type: str
    message: str
    depth: int
    parent_url: Optional[str] = None
    failed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "error_type": self.error_type,
            "error": self.message[:500],
            "depth": self.depth,
            "parent_url": self.parent_url,
            "failed_at": self.failed_at.isoformat(),
        }


@dataclass(frozen=True)
class ChartNode:
    id: str
    label: str
    url: str
    depth: int

    def to_dict(self) -> dict:
        return {"id": self.id, "label": self.label, "url": self.url, "level": self.depth}


@dataclass(frozen=True)
class ChartEdge:
    source: str
    target: str
    label: str

    def to_dict(self) -> dict:
        return {"from": self.source, "to": self.target, "label": self.label}


@dataclass(frozen=True)
class FlowChart:
    """Exported graph: pages as nodes, navigations as edges."""

    nodes: tuple[ChartNode, ...] = ()
    edges: tuple[ChartEdge, ...] = ()

    def to_dict(self) -> dict:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }


@dataclass(frozen=True)
class CrawlResult:
    """Result attached to a completed job."""

    nodes: tuple[FlowNode, ...]
    flow_chart: FlowChart
    errors: tuple[PageError, ...] = ()
    completed_at: datetime = field(default_factory=datetime.now)

    @property
    def total_pages(self) -> int:
        return len(self.nodes)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "total_pages": self.total_pages,
            "nodes": [node.to_dict() for node in self.nodes],
            "flow_chart": self.flow_chart.to_dict(),
            "errors": [error.to_dict() for error in self.errors],
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass
class CrawlJob:
    """Lifecycle record for one crawl request.

    Owned by :class:`flowcrawl.jobs.JobRegistry`; only the registry mutates it.
    """

    job_id: str
    url: str
    options: CrawlOptions
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    message: str = "Waiting to start"
    created_at: datetime = field(default_factory=datetime.now)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    result: Optional[CrawlResult] = None
    error: Optional[str] = None
    page_errors: list[PageError] = field(default_factory=list)
    pages_captured: int = 0

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.start_time is None:
            return None
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()

    def snapshot(self) -> "JobSnapshot":
        return JobSnapshot(
            job_id=self.job_id,
            url=self.url,
            status=self.status,
            progress=self.progress,
            message=self.message,
            created_at=self.created_at,
            start_time=self.start_time,
            end_time=self.end_time,
            pages_captured=self.pages_captured,
            error=self.error,
            page_errors=tuple(self.page_errors),
            result=self.result,
            options=self.options,
        )


@dataclass(frozen=True)
class JobSnapshot:
    """Read-only view of a job handed to callers."""

    job_id: str
    url: str
    status: JobStatus
    progress: int
    message: str
    created_at: datetime
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    pages_captured: int
    error: Optional[str]
    page_errors: tuple[PageError, ...]
    result: Optional[CrawlResult]
    options: CrawlOptions

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "url": self.url,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "pages_captured": self.pages_captured,
            "error": self.error,
            "page_errors": [error.to_dict() for error in self.page_errors],
            "result": self.result.to_dict() if self.result else None,
            "options": self.options.model_dump(mode="json", exclude={"login"}),
        }
