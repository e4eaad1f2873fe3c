"""FastAPI application factory and route setup for DirStore."""

import base64
import email.utils
import json
import logging
import secrets
import time
from contextlib import asynccontextmanager
from io import BytesIO

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.datastructures import UploadFile

from dirstore import metrics
from dirstore.config import DirStoreConfig
from dirstore.destroy import DestroyExecutor
from dirstore.errors import S3Error, UnsupportedOperation
from dirstore.handlers import ActionDispatcher
from dirstore.metadata.sqlite import SQLiteMetadataStore
from dirstore.multipart import MultipartSessionManager
from dirstore.routing import RequestDescriptor, UploadedFile, Verb, classify
from dirstore.routing.actions import DESTROY_TAGS
from dirstore.routing.classifier import DEFAULT_CONTENT_TYPE
from dirstore.storage.local import LocalStorageBackend
from dirstore.store import ObjectStore
from dirstore.xml_utils import render_error, xml_response

logger = logging.getLogger(__name__)

METHOD_OVERRIDE_HEADER = "x-http-method-override"

_VERBS = {
    "GET": Verb.INDEX,
    "HEAD": Verb.INDEX,
    "POST": Verb.CREATE,
    "PUT": Verb.UPDATE,
    "PATCH": Verb.UPDATE,
    "DELETE": Verb.DESTROY,
}

_S3_METHODS = list(_VERBS)

# Paths to suppress from per-request logging
_QUIET_PATHS = {"/metrics", "/health"}


# Module-level singleton so multiple create_app() calls (e.g. in tests)
# don't re-register the same Prometheus gauge in the global registry.
_instrumentator = None


def _get_instrumentator():
    global _instrumentator
    if _instrumentator is None:
        from prometheus_fastapi_instrumentator import Instrumentator

        _instrumentator = Instrumentator(
            should_instrument_requests_inprogress=True,
            excluded_handlers=["/metrics", "/health"],
        )
    return _instrumentator


def verb_for(method: str, headers) -> Verb | None:
    """Map an HTTP method to its verb class.

    ``POST`` with ``X-HTTP-Method-Override: DELETE`` is routed as a destroy,
    for clients that cannot send DELETE.
    """
    method = method.upper()
    if method == "POST" and (headers.get(METHOD_OVERRIDE_HEADER) or "").upper() == "DELETE":
        return Verb.DESTROY
    return _VERBS.get(method)


def attach_store(
    app: FastAPI, store: ObjectStore, sessions: MultipartSessionManager
) -> None:
    """Wire an initialized store and session manager into the app."""
    config: DirStoreConfig = app.state.config
    app.state.store = store
    app.state.sessions = sessions
    app.state.dispatcher = ActionDispatcher(store, sessions, config)
    app.state.destroyer = DestroyExecutor(
        store, sessions, max_cleanup_passes=config.storage.max_cleanup_passes
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(config: DirStoreConfig) -> FastAPI:
    """Create and configure the DirStore FastAPI application.

    The lifespan context manager opens the SQLite catalog and the storage
    root on startup and closes them on shutdown. Every startup is a recovery:
    orphaned temp files from an interrupted write are removed.

    Args:
        config: The loaded DirStore configuration.

    Returns:
        A configured FastAPI application ready to run.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = ObjectStore(
            SQLiteMetadataStore(config.metadata.sqlite_path),
            LocalStorageBackend(config.storage.root_dir),
        )
        await store.init()
        attach_store(app, store, MultipartSessionManager(config.storage.tmp_dir))
        logger.info(
            "Store initialized (catalog=%s, root=%s, tmp=%s)",
            config.metadata.sqlite_path,
            config.storage.root_dir,
            config.storage.tmp_dir,
        )

        yield

        await store.close()
        logger.info("Store closed")

    app = FastAPI(
        title="DirStore S3 API",
        version="0.1.0",
        lifespan=lifespan,
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )
    app.state.config = config

    _register_exception_handlers(app)
    _register_middleware(app)

    # /metrics must be registered before the catch-all S3 route.
    if config.observability.metrics:
        metrics.init_metrics()
        _get_instrumentator().instrument(app, metric_namespace="dirstore").expose(
            app, endpoint="/metrics"
        )

    _setup_routes(app, config)

    return app


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _error_response(request: Request, code: str, message: str, status: int, extra=None) -> Response:
    # HEAD responses must not have a body
    if request.method == "HEAD":
        return Response(status_code=status)
    body = render_error(
        code=code,
        message=message,
        resource=request.url.path,
        request_id=getattr(request.state, "request_id", ""),
        extra_fields=extra,
    )
    return xml_response(body, status=status)


def _register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the FastAPI app."""

    @app.exception_handler(S3Error)
    async def s3_error_handler(request: Request, exc: S3Error) -> Response:
        """Render an S3Error as S3 error XML."""
        return _error_response(
            request, exc.code, exc.message, exc.http_status, exc.extra_fields
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        """Map FastAPI validation errors to an ``InvalidArgument`` XML error."""
        messages = []
        for err in exc.errors():
            loc = " -> ".join(str(p) for p in err.get("loc", []))
            msg = err.get("msg", "Invalid value")
            messages.append(f"{loc}: {msg}" if loc else msg)
        combined = "; ".join(messages) or "Invalid request parameters"
        return _error_response(request, "InvalidArgument", combined, 400)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> Response:
        """Catch unexpected exceptions and return InternalError."""
        logger.exception("Unhandled exception in request handler")
        return _error_response(
            request,
            "InternalError",
            "We encountered an internal error. Please try again.",
            500,
        )


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


def _register_middleware(app: FastAPI) -> None:
    """Register the common-headers and access-log middleware."""

    @app.middleware("http")
    async def common_headers_middleware(request: Request, call_next) -> Response:
        """Add common S3 response headers to every response.

        Generates x-amz-request-id (16-char uppercase hex), x-amz-id-2 (base64),
        Date (RFC 1123), and Server header. Stores request_id on request.state
        so exception handlers can use it.
        """
        request_id = secrets.token_hex(8).upper()
        request.state.request_id = request_id
        start = time.monotonic()

        response = await call_next(request)

        duration_ms = round((time.monotonic() - start) * 1000, 2)

        response.headers["x-amz-request-id"] = request_id
        response.headers["x-amz-id-2"] = base64.b64encode(secrets.token_bytes(24)).decode()
        response.headers["Date"] = email.utils.formatdate(usegmt=True)
        response.headers["Server"] = "DirStore"

        if request.url.path not in _QUIET_PATHS:
            logger.info(
                "%s %s %d %.2fms",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                    "request_id": request_id,
                    "action": getattr(request.state, "action", None),
                },
            )

        return response


# ---------------------------------------------------------------------------
# Health check helpers
# ---------------------------------------------------------------------------


async def _check_metadata(app: FastAPI) -> dict:
    """Probe the catalog with ``SELECT 1``.

    Returns a dict with ``status`` and ``latency_ms`` keys.
    """
    store = getattr(app.state, "store", None)
    if store is None:
        return {"status": "error", "error": "metadata store not initialized", "latency_ms": 0}
    try:
        start = time.monotonic()
        await store.metadata.ping()
        latency = round((time.monotonic() - start) * 1000, 1)
        return {"status": "ok", "latency_ms": latency}
    except Exception as exc:
        return {"status": "error", "error": str(exc), "latency_ms": 0}


async def _check_storage(app: FastAPI) -> dict:
    """Probe the storage root and the multipart working directory."""
    store = getattr(app.state, "store", None)
    if store is None:
        return {"status": "error", "error": "storage backend not initialized", "latency_ms": 0}
    start = time.monotonic()
    if not store.root.is_dir():
        return {
            "status": "error",
            "error": "data directory not found",
            "latency_ms": round((time.monotonic() - start) * 1000, 1),
        }
    latency = round((time.monotonic() - start) * 1000, 1)
    return {"status": "ok", "latency_ms": latency}


# ---------------------------------------------------------------------------
# Request translation
# ---------------------------------------------------------------------------


def _form_file(form) -> UploadFile | None:
    """Return the form's ``file`` field, falling back to its first file field."""
    field = form.get("file")
    if isinstance(field, UploadFile):
        return field
    for _name, value in form.multi_items():
        if isinstance(value, UploadFile):
            return value
    return None


async def build_descriptor(request: Request, verb: Verb) -> RequestDescriptor:
    """Translate a Starlette request into a RequestDescriptor.

    A ``multipart/form-data`` body contributes its ``file`` field, or else
    its first file field, as the uploaded file. A form without file fields,
    and any other body, is passed on as the raw body.
    """
    uploaded = None
    # Read first so the raw bytes stay cached after the form parse.
    body = BytesIO(await request.body())
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        field = _form_file(form)
        if field is not None:
            uploaded = UploadedFile(
                filename=field.filename or "",
                content_type=field.content_type or DEFAULT_CONTENT_TYPE,
                file=field.file,
            )

    return RequestDescriptor(
        verb=verb,
        path=request.url.path,
        query=dict(request.query_params),
        headers=dict(request.headers),
        body=body,
        file=uploaded,
        method=request.method,
    )


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------


def _setup_routes(app: FastAPI, config: DirStoreConfig) -> None:
    """Register the health endpoint and the S3 catch-all route.

    Args:
        app: The FastAPI application to attach routes to.
        config: The DirStore configuration.
    """
    health_check_enabled = config.observability.health_check

    @app.get("/health")
    async def health_check(request: Request) -> Response:
        """Return health status.

        When health_check is enabled: probe metadata and storage and return
        JSON with component checks. When disabled: return static ``{"status": "ok"}``.
        """
        if not health_check_enabled:
            return Response(content='{"status":"ok"}', media_type="application/json")

        meta_check = await _check_metadata(app)
        storage_check = await _check_storage(app)
        all_ok = meta_check["status"] == "ok" and storage_check["status"] == "ok"

        body = json.dumps(
            {
                "status": "ok" if all_ok else "degraded",
                "checks": {"metadata": meta_check, "storage": storage_check},
            }
        )
        return Response(
            content=body,
            status_code=200 if all_ok else 503,
            media_type="application/json",
        )

    @app.api_route("/", methods=_S3_METHODS)
    @app.api_route("/{path:path}", methods=_S3_METHODS)
    async def handle_s3(request: Request) -> Response:
        """Classify the request, then run it through the matching executor.

        Destroy actions return 204 with no body. Everything else is rendered
        by its action handler.
        """
        verb = verb_for(request.method, request.headers)
        if verb is None:
            raise UnsupportedOperation()

        descriptor = await build_descriptor(request, verb)
        action = classify(descriptor)
        tag = action.tag.value
        request.state.action = tag

        try:
            if action.tag in DESTROY_TAGS:
                await app.state.destroyer.execute(action)
                response = Response(status_code=204)
            else:
                response = await app.state.dispatcher.dispatch(action, descriptor)
        except S3Error as exc:
            metrics.record_action(tag, exc.code)
            raise
        metrics.record_action(tag, "ok")
        return response
