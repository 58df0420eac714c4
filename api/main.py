# api/main.py
"""
Proxy API for the research workspace.

Every endpoint authenticates the caller, forwards the request to the research
backend with service credentials, and relays the backend's status code and
JSON body. Failures never escape a handler: they come back as JSON envelopes.

Run with: python -m uvicorn api.main:app --port 8080 --reload
"""

from typing import Any, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile
import requests

from api.auth import AuthContext, get_auth_context
from api.gateway import BackendGateway, build_authenticated_headers
from utils.config import Settings, get_settings
from utils.logger import get_api_logger

logger = get_api_logger("proxy")

app = FastAPI(
    title="Research Workspace Proxy",
    description="Authenticated proxy in front of the research backend",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_backend(settings: Settings = Depends(get_settings)) -> BackendGateway:
    """Gateway used by the handlers to reach the research backend."""
    return BackendGateway(settings)


# === Response helpers ===

def unauthorized() -> JSONResponse:
    return JSONResponse({"error": "Unauthorized"}, status_code=401)


def bad_request(message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=400)


def server_error(error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        {"error": error, "message": str(exc) or "Unknown error"},
        status_code=500
    )


def relay(response: requests.Response) -> JSONResponse:
    """Pass the backend's JSON body and status through unchanged."""
    return JSONResponse(response.json(), status_code=response.status_code)


def response_details(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


async def read_json_body(request: Request) -> Optional[dict]:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


# === Endpoints ===

@app.get("/")
def home():
    """API home."""
    return {"message": "Research Workspace Proxy", "docs": "/docs"}


@app.get("/health")
def health():
    """Health check."""
    return {"status": "healthy"}


# --- Document Endpoints ---

@app.get("/api/documents")
async def list_documents(
    skip: str = "0",
    limit: str = "50",
    auth: AuthContext = Depends(get_auth_context),
    settings: Settings = Depends(get_settings),
    backend: BackendGateway = Depends(get_backend),
):
    """List the caller's stored documents."""
    try:
        headers = build_authenticated_headers(auth, settings)
        if headers is None:
            return unauthorized()

        response = await run_in_threadpool(
            backend.send, "GET", "/documents", headers,
            params={"skip": skip, "limit": limit}
        )
        return relay(response)

    except Exception as e:
        logger.error(f"Document list error: {e}")
        return server_error("Unable to load documents", e)


@app.post("/api/documents/upload")
async def upload_document(
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
    settings: Settings = Depends(get_settings),
    backend: BackendGateway = Depends(get_backend),
):
    """
    Upload a reference document.

    Send multipart form data with a `file` field. The caller is checked
    before the form is read, so a signed-out caller gets 401 whatever the body.
    """
    try:
        headers = build_authenticated_headers(auth, settings)
        if headers is None:
            return unauthorized()

        form = await request.form()
        file = form.get("file")
        if not isinstance(file, UploadFile) or not file.filename:
            return bad_request("File is required")

        content = await file.read()
        logger.info(f"Uploading {file.filename} ({len(content)} bytes) for {auth.user_id}")
        response = await run_in_threadpool(
            backend.send, "POST", "/documents/upload", headers,
            files={"file": (file.filename, content, file.content_type or "application/octet-stream")}
        )
        return relay(response)

    except Exception as e:
        logger.error(f"Document upload error: {e}")
        return server_error("Document upload failed", e)


@app.delete("/api/documents")
@app.delete("/api/documents/")
async def delete_document_without_id(auth: AuthContext = Depends(get_auth_context)):
    """A delete without a document id is a client error (401 first for a signed-out caller)."""
    if not auth.is_authenticated:
        return unauthorized()
    return bad_request("Document ID is required")


@app.delete("/api/documents/{document_id}")
async def delete_document(
    document_id: str,
    auth: AuthContext = Depends(get_auth_context),
    settings: Settings = Depends(get_settings),
    backend: BackendGateway = Depends(get_backend),
):
    """Delete one stored document. The caller is checked before the id."""
    try:
        headers = build_authenticated_headers(auth, settings)
        if headers is None:
            return unauthorized()

        if not document_id.strip():
            return bad_request("Document ID is required")

        response = await run_in_threadpool(
            backend.send, "DELETE", f"/documents/{document_id}", headers
        )
        return relay(response)

    except Exception as e:
        logger.error(f"Document delete error: {e}")
        return server_error("Document delete failed", e)


# --- Research Endpoint ---

@app.post("/api/research")
async def research(
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
    settings: Settings = Depends(get_settings),
    backend: BackendGateway = Depends(get_backend),
):
    """
    Run a research question through the backend.

    Send a POST request with JSON body: {"question": "...", ...}. Any extra
    keys (document_ids, use_chat_history, chat_session_id, ...) are forwarded.
    The caller is checked before the body, so a signed-out caller gets 401
    even when the question is missing.
    """
    try:
        headers = build_authenticated_headers(auth, settings, {"Content-Type": "application/json"})
        if headers is None:
            return unauthorized()

        body = await read_json_body(request)
        question = body.get("question") if body else None
        if not question or not isinstance(question, str):
            return bad_request("Question is required")

        logger.info(f"Research for {auth.user_id}: {question[:100]}")
        response = await run_in_threadpool(
            backend.send, "POST", "/research", headers, json=body
        )

        if not response.ok:
            logger.warning(f"Research backend returned {response.status_code}")
            return JSONResponse(
                {"error": "Research failed", "details": response_details(response)},
                status_code=response.status_code
            )

        return JSONResponse(response.json())

    except Exception as e:
        logger.error(f"Research error: {e}")
        return server_error("Research failed", e)
