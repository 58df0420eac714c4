# workspace/export.py
"""Text export of a finished research run."""

import time
from typing import Optional

from workspace.state import ResearchResult, StepMetric


def format_score(score: Optional[float]) -> str:
    return "n/a" if score is None else f"{score:g}"


def metric_summary_line(metric: StepMetric) -> str:
    latency = metric.latency or 0.0
    return f"- **{metric.step}**: {latency:.2f}s (score: {format_score(metric.score)}/10)"


def export_markdown(question: str, result: ResearchResult) -> str:
    """Question, answer, plan, insights and one line per step metric."""
    metrics = "\n".join(metric_summary_line(metric) for metric in result.metrics)
    return (
        f"# Research: {question}\n\n"
        f"## Answer\n\n{result.answer}\n\n"
        f"## Plan\n\n{result.plan}\n\n"
        f"## Insights\n\n{result.insights}\n\n"
        f"## Metrics\n\n{metrics}"
    )


def export_filename(timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"research-{timestamp_ms}.md"


def format_file_size(size: Optional[int]) -> str:
    if size is None:
        return "—"
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
