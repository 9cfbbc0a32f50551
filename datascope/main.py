"""
FastAPI entrypoint: the Gemini proxy and the dashboard routes.

- /api/analyze, /api/generate: forward {prompt, systemInstruction, schema} to Gemini
  with the server key and relay {"text": ...}. CORS headers on every response.
- /dashboard/*: one dashboard session (raw text, records, mapping, exports, local key).

Run with: uvicorn datascope.main:app
"""

import os
import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from typing import Optional

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import llm_client
from .config import Settings
from .dashboard import DashboardSession
from .key_resolver import KeyResolver
from .presentation import export_csv, export_json, export_png
from .request_service import CONFIG_ERROR_PREFIX, DataRequestService
from .schemas import AnalyzeRequest, AnalyzeResponse, DashboardState, KeyRequest, ProcessRequest

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# Every method is routed to the proxy handler so it can answer 405 itself.
PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
UPLOAD_SUFFIXES = (".csv", ".json", ".txt")

EXPORT_MEDIA_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
    "png": "image/png",
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=CORS_HEADERS)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTPException as {"error": detail}."""
    return _error(exc.status_code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body/path validation failures use the same {"error": ...} shape, status 422."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    )
    return _error(422, f"Invalid request: {problems}")


async def proxy_endpoint(request: Request):
    settings: Settings = request.app.state.settings

    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    if request.method != "POST":
        return _error(405, "Method not allowed")

    # Checked before touching the body so nothing goes upstream without a key.
    if not settings.api_key:
        logger.error("Proxy called but no server API key is configured")
        return _error(500, f"{CONFIG_ERROR_PREFIX}: API Key missing")

    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")

    try:
        payload = AnalyzeRequest.model_validate(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid request body: {e}")

    if not payload.prompt or not payload.prompt.strip():
        raise HTTPException(status_code=400, detail="Missing prompt")

    try:
        text = await llm_client.generate_text(
            settings.api_key,
            payload.prompt,
            system_instruction=payload.system_instruction,
            schema=payload.schema_,
            model_name=settings.model_name,
        )
    except Exception as e:
        logger.error(f"Proxy upstream call failed: {e}")
        return _error(500, str(e) or "Internal Server Error")

    return JSONResponse(AnalyzeResponse(text=text or "[]").model_dump(), headers=CORS_HEADERS)


def _session(request: Request) -> DashboardSession:
    return request.app.state.session


async def dashboard_state(request: Request) -> DashboardState:
    return _session(request).snapshot()


async def dashboard_process(request: Request, body: ProcessRequest) -> DashboardState:
    session = _session(request)
    await session.process(body.raw_data, body.options)
    return session.snapshot()


async def dashboard_example(request: Request) -> DashboardState:
    session = _session(request)
    await session.load_example()
    return session.snapshot()


async def dashboard_upload(request: Request, file: UploadFile = File(...)) -> DashboardState:
    name = (file.filename or "").lower()
    if not name.endswith(UPLOAD_SUFFIXES):
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {file.filename}")
    content = await file.read()
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Uploaded file must be UTF-8 text")
    session = _session(request)
    session.set_raw_data(text)
    return session.snapshot()


async def dashboard_clear(request: Request) -> DashboardState:
    session = _session(request)
    session.clear()
    return session.snapshot()


async def dashboard_export(request: Request, fmt: str) -> Response:
    session = _session(request)
    if fmt not in EXPORT_MEDIA_TYPES:
        raise HTTPException(status_code=404, detail=f"Unknown export format: {fmt}")

    if fmt == "json":
        content = export_json(session.records)
    elif fmt == "csv":
        content = export_csv(session.records)
    else:
        try:
            content = export_png(session.records, session.mapping)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    return Response(
        content=content,
        media_type=EXPORT_MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="datascope_export.{fmt}"'},
    )


async def dashboard_save_key(request: Request, body: KeyRequest) -> DashboardState:
    try:
        request.app.state.resolver.save_key(body.key)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Could not store key: {e}")
    return _session(request).snapshot()


async def dashboard_remove_key(request: Request) -> DashboardState:
    try:
        request.app.state.resolver.remove_key()
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Could not remove key: {e}")
    return _session(request).snapshot()


def create_app(settings: Optional[Settings] = None, service: Optional[DataRequestService] = None) -> FastAPI:
    """
    Build the application. Settings are read once here; the proxy never re-reads
    the environment per request.
    """
    settings = settings or Settings.from_env()
    resolver = service.resolver if service else KeyResolver(settings.key_store_path)
    service = service or DataRequestService(settings, resolver)

    app = FastAPI(title="DataScope Analyzer")
    app.state.settings = settings
    app.state.resolver = resolver
    app.state.session = DashboardSession(service, resolver)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    for path in ("/api/analyze", "/api/generate"):
        app.add_api_route(path, proxy_endpoint, methods=PROXY_METHODS)

    app.add_api_route("/dashboard/state", dashboard_state, methods=["GET"], response_model=DashboardState)
    app.add_api_route("/dashboard/process", dashboard_process, methods=["POST"], response_model=DashboardState)
    app.add_api_route("/dashboard/example", dashboard_example, methods=["POST"], response_model=DashboardState)
    app.add_api_route("/dashboard/upload", dashboard_upload, methods=["POST"], response_model=DashboardState)
    app.add_api_route("/dashboard/clear", dashboard_clear, methods=["POST"], response_model=DashboardState)
    app.add_api_route("/dashboard/export/{fmt}", dashboard_export, methods=["GET"])
    app.add_api_route("/dashboard/key", dashboard_save_key, methods=["PUT"], response_model=DashboardState)
    app.add_api_route("/dashboard/key", dashboard_remove_key, methods=["DELETE"], response_model=DashboardState)

    logger.info(
        f"DataScope app created (model={settings.model_name}, "
        f"server_key={'set' if settings.api_key else 'missing'}, proxy_url={settings.proxy_url})"
    )
    return app


app = create_app()
