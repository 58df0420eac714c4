# tests/conftest.py
"""
Shared fixtures for the workspace tests.
"""

import asyncio
import json
import os

# Keep test runs from writing log files
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
import requests


SAMPLE_RESULT = {
    "answer": "## Retrieval-augmented generation\n\nRAG grounds answers in retrieved text.",
    "plan": "1. Define RAG\n2. Find recent surveys",
    "insights": "Hybrid retrieval beats dense-only retrieval on long-tail queries.",
    "metrics": [
        {"step": "plan", "latency": 1.25, "quality_score": 8},
        {"step": "search", "latency": 2.5, "relevance_score": 7, "num_sources": 6},
        {"step": "analyze", "latency": 3.0, "completeness_score": 9},
        {"step": "synthesize", "latency": 1.75, "grounded_score": 6, "avg_confidence": 0.8},
    ],
    "sources": [
        {"title": "RAG survey", "url": "https://arxiv.org/abs/2312.10997", "snippet": "A survey", "confidence": 0.9},
    ],
    "trace_id": "trace-1",
}


def make_response(status_code: int, payload=None, text: str = None) -> requests.Response:
    """Build a requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    if payload is not None:
        response._content = json.dumps(payload).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = (text or "").encode("utf-8")
    response.encoding = "utf-8"
    return response


async def wait_until(predicate, ticks: int = 500):
    """Yield to the event loop until `predicate()` holds."""
    for _ in range(ticks):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


class FakeTransport:
    """In-memory stand-in for AsyncProxyClient."""

    def __init__(self, research_response=None, documents=None):
        self.research_response = dict(SAMPLE_RESULT) if research_response is None else research_response
        self.research_error = None
        self.research_gate = None
        self.research_calls = []

        self.documents = list(documents or [])
        self.list_error = None
        self.list_calls = 0

        self.upload_gates = {}
        self.upload_errors = {}
        self.uploads = []

        self.delete_error = None
        self.deleted = []

    async def research(self, payload):
        self.research_calls.append(payload)
        if self.research_gate is not None:
            await self.research_gate.wait()
        if self.research_error is not None:
            raise self.research_error
        return self.research_response

    async def list_documents(self, skip=0, limit=50):
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return [dict(document) for document in self.documents]

    async def upload_document(self, filename, content, content_type=None):
        self.uploads.append(filename)
        gate = self.upload_gates.get(filename)
        if gate is not None:
            return await gate
        if filename in self.upload_errors:
            raise self.upload_errors[filename]
        return f"doc-{filename}"

    async def delete_document(self, document_id):
        self.deleted.append(document_id)
        if self.delete_error is not None:
            raise self.delete_error
        return {"status": "deleted", "document_id": document_id}


@pytest.fixture
def transport():
    return FakeTransport()
