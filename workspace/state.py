# workspace/state.py
"""
State definitions for the research workspace.
The research session and the attachment tracker read from and write to these models.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Literal


StageStatus = Literal["pending", "active", "completed"]
AttachmentStatus = Literal["uploading", "ready", "error"]

# Fixed pipeline order the progress display walks through
STAGE_SEQUENCE = ("plan", "search", "analyze", "synthesize")

# Step indicator labels; "validate" is displayed but never animated
WORKFLOW_STEPS = ("idle", "plan", "search", "analyze", "synthesize", "validate")


class Stage(BaseModel):
    """One step of the research pipeline as shown in the progress display"""
    id: str
    name: str
    description: str
    status: StageStatus = "pending"
    latency: Optional[float] = None
    score: Optional[float] = None
    content: Optional[str] = None

    def reset(self) -> "Stage":
        return self.model_copy(update={
            "status": "pending",
            "latency": None,
            "score": None,
            "content": None,
        })


def default_stages() -> List[Stage]:
    return [
        Stage(id="plan", name="Strategic Planning", description="Crafting research methodology"),
        Stage(id="search", name="Source Discovery", description="Gathering relevant information"),
        Stage(id="analyze", name="Deep Analysis", description="Extracting critical insights"),
        Stage(id="synthesize", name="Synthesis", description="Composing comprehensive answer"),
    ]


class StepMetric(BaseModel):
    """Per-step timing and quality figures reported by the backend"""
    step: str
    latency: Optional[float] = None
    quality_score: Optional[float] = None
    relevance_score: Optional[float] = None
    completeness_score: Optional[float] = None
    grounded_score: Optional[float] = None
    num_sources: Optional[int] = None
    avg_confidence: Optional[float] = None
    reasoning: Optional[str] = None

    @property
    def score(self) -> Optional[float]:
        """The step's score: quality, then relevance, completeness, grounded."""
        for value in (
            self.quality_score,
            self.relevance_score,
            self.completeness_score,
            self.grounded_score,
        ):
            if value is not None:
                return value
        return None


class Source(BaseModel):
    """A cited source attached to an answer"""
    title: str = ""
    url: str = ""
    snippet: str = ""
    confidence: Optional[float] = None
    source_type: Optional[str] = None
    domain: Optional[str] = None
    reason: Optional[str] = None


class ResearchResult(BaseModel):
    """
    Final payload of a research run.

    Only `answer` is required; unknown backend keys are kept so nothing the
    backend adds is lost on the way to the display.
    """
    answer: str
    plan: str = ""
    insights: str = ""
    metrics: List[StepMetric] = Field(default_factory=list)
    sources: List[Source] = Field(default_factory=list)
    trace_id: Optional[str] = None
    trace_url: Optional[str] = None
    chat_session_id: Optional[str] = None

    class Config:
        extra = "allow"

    def metric_for(self, step: str) -> Optional[StepMetric]:
        for metric in self.metrics:
            if metric.step == step:
                return metric
        return None

    @property
    def total_latency(self) -> float:
        return sum(metric.latency or 0.0 for metric in self.metrics)

    @property
    def average_score(self) -> float:
        """Mean score over the metrics that carry one; 0.0 when none do."""
        scores = [metric.score for metric in self.metrics if metric.score is not None]
        if not scores:
            return 0.0
        return sum(scores) / len(scores)


class Attachment(BaseModel):
    """A file upload tracked by the workspace, keyed by a local id"""
    client_id: str
    filename: str
    status: AttachmentStatus = "uploading"
    document_id: Optional[str] = None
    error_message: Optional[str] = None

    class Config:
        frozen = True


class StoredDocument(BaseModel):
    """The backend's record of an uploaded document"""
    id: str
    filename: str = ""
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    num_chunks: Optional[int] = None
    uploaded_at: Optional[str] = None
    status: Optional[str] = None

    class Config:
        extra = "ignore"
        coerce_numbers_to_str = True
