"""
ccview - Claude Code Conversation Browser Backend

A FastAPI server that scans ~/.claude/projects/ on every request and serves
project listings, conversation listings, full conversations and a bounded
substring search as JSON for the browser UI.

Usage:
    python run.py
    # or: uvicorn ccview.server:app --host 127.0.0.1 --port 3000

Environment variables (prefix CCVIEW_):
    CCVIEW_CLAUDE_DIR    - Root Claude directory (default: ~/.claude)
    CCVIEW_PROJECTS_DIR  - Projects directory (default: <claude dir>/projects)
    CCVIEW_HOST          - Bind host (default: 127.0.0.1)
    CCVIEW_PORT          - Bind port (default: 3000)
    CCVIEW_DEBUG         - Enable debug/reload (default: false)
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from . import __version__
from .catalog import ProjectCatalog
from .config import Settings
from .errors import AppError, InvalidInputError, NotFoundError
from .models import ConversationDetail, ConversationSummary, Project, SearchResponse
from .names import is_safe_component
from .search import SearchEngine

logger = logging.getLogger("ccview")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://cdnjs.cloudflare.com; "
        "style-src 'self' 'unsafe-inline' https://cdnjs.cloudflare.com; "
        "img-src 'self' data:;"
    ),
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


# ═══════════════════════════════════════════════════════════════════════════════
# FastAPI Application + Routes
# ═══════════════════════════════════════════════════════════════════════════════


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown."""
    start_time = time.monotonic()

    settings = Settings.from_env()
    projects_dir = settings.get_projects_dir()
    if not projects_dir.exists():
        logger.warning(f"Projects directory not found: {projects_dir}")

    catalog = ProjectCatalog(projects_dir, settings)
    search_engine = SearchEngine(catalog, settings)

    logger.info(f"Scanning projects from: {projects_dir}")
    try:
        refs = await catalog.describe_projects()
        logger.info(f"Found {len(refs)} projects in {time.monotonic() - start_time:.1f}s")
    except Exception:
        logger.exception("Error during startup scan")

    app.state.settings = settings
    app.state.catalog = catalog
    app.state.search_engine = search_engine
    app.state.start_time = start_time

    yield

    logger.info("Shutdown complete")


app = FastAPI(
    lifespan=lifespan,
    title="ccview",
    description="Claude Code Conversation Browser",
    version=__version__,
)

# CORS for the local origin only; the settings are read again at startup
app.add_middleware(
    CORSMiddleware,
    allow_origins=Settings.from_env().get_cors_origins(),
    allow_methods=["GET"],
    allow_headers=["Content-Type"],
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


# Error handler
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.code, "message": exc.message}},
    )


# ── Helper accessors ─────────────────────────────────────────────────────────

def _catalog(request: Request) -> ProjectCatalog:
    return request.app.state.catalog


def _search_engine(request: Request) -> SearchEngine:
    return request.app.state.search_engine


def _validated_project_dir(request: Request, project_id: str) -> Path:
    """Reject traversal attempts and unknown projects."""
    if not is_safe_component(project_id):
        raise InvalidInputError("Invalid project name")
    directory = _catalog(request).project_dir(project_id)
    if directory is None:
        raise InvalidInputError("Invalid path")
    if not directory.is_dir():
        raise NotFoundError("Project not found")
    return directory


# ── Projects ──────────────────────────────────────────────────────────────────

@app.get("/api/projects", response_model=list[Project])
async def list_projects(request: Request):
    return await _catalog(request).list_projects()


@app.get(
    "/api/projects/{project_id}/conversations",
    response_model=list[ConversationSummary],
)
async def list_conversations(request: Request, project_id: str):
    _validated_project_dir(request, project_id)
    return await _catalog(request).list_conversations(project_id)


@app.get(
    "/api/projects/{project_id}/conversations/{filename}",
    response_model=ConversationDetail,
)
async def read_conversation(request: Request, project_id: str, filename: str):
    _validated_project_dir(request, project_id)
    if not is_safe_component(filename) or not filename.endswith(".jsonl"):
        raise InvalidInputError("Invalid parameters")
    return await _catalog(request).read_conversation(project_id, filename)


# ── Search ────────────────────────────────────────────────────────────────────

@app.get("/api/search", response_model=SearchResponse)
async def search(request: Request, q: str | None = Query(None)):
    engine = _search_engine(request)
    t0 = time.monotonic()
    results = await engine.search(q)
    elapsed = (time.monotonic() - t0) * 1000

    return SearchResponse(
        query=q or "",
        total_results=len(results),
        results=results,
        search_time_ms=round(elapsed, 2),
    )


# ── Health ────────────────────────────────────────────────────────────────────

@app.get("/api/health")
async def health_check(request: Request):
    start = request.app.state.start_time
    catalog = _catalog(request)
    return {
        "status": "ok",
        "uptime_seconds": round(time.monotonic() - start, 1),
        "projects_dir": str(catalog.projects_dir),
        "projects_dir_exists": catalog.projects_dir.is_dir(),
    }


# ── Static files & SPA fallback ──────────────────────────────────────────────

_static_dir = Path(__file__).parent / "static"
_FALLBACK_PAGE = (
    "<h1>ccview</h1>"
    "<p>Frontend not installed. API is available at <a href='/docs'>/docs</a></p>"
)

if _static_dir.exists():
    app.mount("/static", StaticFiles(directory=str(_static_dir)), name="static")


def _index_page() -> HTMLResponse:
    index_path = _static_dir / "index.html"
    if index_path.exists():
        return HTMLResponse(content=index_path.read_text(encoding="utf-8"))
    return HTMLResponse(content=_FALLBACK_PAGE, status_code=200)


@app.get("/", response_class=HTMLResponse)
async def serve_index():
    return _index_page()


# Deep links into a project or conversation; must stay last
@app.get("/{project_name}", response_class=HTMLResponse)
@app.get("/{project_name}/{conversation_name}", response_class=HTMLResponse)
async def serve_deep_link(project_name: str, conversation_name: str | None = None):
    return _index_page()


# ═══════════════════════════════════════════════════════════════════════════════
# Entry Point
# ═══════════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    settings = Settings.from_env()
    uvicorn.run(
        "ccview.server:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info",
    )
