"""FastAPI application: chat intake, workflow CRUD and UI block interactions."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from meeting_agent import __version__
from meeting_agent.api.schemas import AdvanceRequest, CreateWorkflowRequest, HealthResponse, WorkflowResponse
from meeting_agent.application.chat import ChatRequest, ChatResponse
from meeting_agent.application.context import AppContext, make_app_context
from meeting_agent.application.contracts import (
    AdvancementValidation,
    UIBlockInteractionRequest,
    UIBlockInteractionResponse,
    WorkflowAdvancementResponse,
)
from meeting_agent.application.ui_blocks import generate
from meeting_agent.config.settings import resolve_provider_snapshot
from meeting_agent.domain.enums import ErrorCode
from meeting_agent.domain.exceptions import DomainError, EmailJobNotFound
from meeting_agent.domain.models import ErrorResponse
from meeting_agent.security.redact import redact_sensitive
from meeting_agent.shared.exceptions import ExternalServiceError
from meeting_agent.tools.interfaces import EmailJobStatus

_api_logger = logging.getLogger("meeting-agent.api")

load_dotenv()

_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.WORKFLOW_NOT_FOUND: 404,
    ErrorCode.EMAIL_JOB_NOT_FOUND: 404,
    ErrorCode.WORKFLOW_ALREADY_EXISTS: 409,
    ErrorCode.WORKFLOW_STEP_INVALID: 409,
    ErrorCode.BUSINESS_RULE_VIOLATION: 422,
    ErrorCode.EXTERNAL_SERVICE_FAILURE: 502,
    ErrorCode.INTERNAL_ERROR: 500,
}


# ── middleware ──


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security response headers."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        return response


# ── error mapping ──


def _error_response(code: ErrorCode, message: str, details: Optional[list[str]] = None) -> JSONResponse:
    body = ErrorResponse(code=code.value, message=message, details=details or [])
    return JSONResponse(status_code=_STATUS_BY_CODE[code], content=body.model_dump(by_alias=True))


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def _domain_error(request: Request, exc: DomainError):
        return _error_response(exc.code, exc.message, exc.details)

    @app.exception_handler(ExternalServiceError)
    async def _external_error(request: Request, exc: ExternalServiceError):
        _safe_log_exception(f"{exc.service} call failed", exc)
        return _error_response(
            ErrorCode.EXTERNAL_SERVICE_FAILURE,
            f"{exc.service} service is unavailable, please try again",
        )

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError):
        details = [
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
        ]
        return _error_response(ErrorCode.INVALID_REQUEST, "Invalid request", details)

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        _safe_log_exception("unhandled error", exc)
        return _error_response(ErrorCode.INTERNAL_ERROR, "Internal error, please try again later")


def _safe_log_exception(context: str, exc: Exception) -> None:
    """Log an exception with credentials redacted."""
    _api_logger.error("%s: %s", context, redact_sensitive(str(exc)))


# ── app factory ──


def create_app(ctx: Optional[AppContext] = None) -> FastAPI:
    ctx = ctx or make_app_context()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        ctx.close()

    app = FastAPI(
        title="meeting-agent",
        version=__version__,
        docs_url="/docs" if ctx.settings.enable_docs else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.ctx = ctx

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ctx.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)

    engine = ctx.engine

    @app.get("/health", response_model=HealthResponse)
    def health():
        return HealthResponse(status="ok", version=__version__)

    @app.get("/diagnostics")
    def diagnostics():
        """Active providers and session counts (put behind auth in production)."""
        store = ctx.session_store
        snapshot = resolve_provider_snapshot(ctx.settings, session_backend=getattr(store, "backend", "unknown"))
        return {
            "providers": snapshot.model_dump(by_alias=True),
            "tools": {
                "ai": ctx.tools.ai.name,
                "calendar": ctx.tools.calendar.name,
                "email": ctx.tools.email.name,
            },
            "sessions": {
                "backend": getattr(store, "backend", "unknown"),
                "active": store.active_count,
            },
        }

    @app.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
    def chat(req: ChatRequest):
        return ctx.chat.handle(req)

    @app.post("/workflows", response_model=WorkflowResponse, response_model_exclude_none=True, status_code=201)
    def create_workflow(req: CreateWorkflowRequest):
        meeting_id = req.meeting_id or f"mtg_{uuid.uuid4().hex[:12]}"
        state = engine.create_workflow(meeting_id, req.initial_data or None)
        return WorkflowResponse(conversation_id=meeting_id, state=state, next_ui_block=generate(state))

    @app.get("/workflows/{meeting_id}", response_model=WorkflowResponse, response_model_exclude_none=True)
    def get_workflow(meeting_id: str):
        state = engine.get(meeting_id)
        return WorkflowResponse(conversation_id=meeting_id, state=state, next_ui_block=generate(state))

    @app.patch("/workflows/{meeting_id}", response_model=WorkflowResponse, response_model_exclude_none=True)
    def update_workflow(meeting_id: str, updates: dict[str, Any] = Body(...)):
        state = engine.apply_update(meeting_id, updates)
        return WorkflowResponse(conversation_id=meeting_id, state=state, next_ui_block=generate(state))

    @app.post(
        "/workflows/{meeting_id}/advance",
        response_model=WorkflowAdvancementResponse,
        response_model_exclude_none=True,
    )
    def advance_workflow(meeting_id: str, req: Optional[AdvanceRequest] = None):
        target = req.target_step if req else None
        outcome = engine.advance(meeting_id, target)
        state = outcome.state
        if outcome.success:
            message = f"Moved to {state.current_step.value}"
        else:
            message = "Cannot advance: " + "; ".join(outcome.check.required_actions or outcome.check.errors)
        return WorkflowAdvancementResponse(
            success=outcome.success,
            message=message,
            conversation_id=meeting_id,
            previous_step=outcome.previous_step,
            current_step=state.current_step,
            next_ui_block=generate(state),
            validation=AdvancementValidation(
                errors=outcome.check.errors,
                warnings=outcome.check.warnings or state.warnings,
                can_proceed=outcome.success,
            ),
            required_actions=outcome.check.required_actions,
        )

    @app.delete("/workflows/{meeting_id}", status_code=204)
    def delete_workflow(meeting_id: str):
        engine.cancel(meeting_id)
        return Response(status_code=204)

    @app.post("/ui-blocks/interact", response_model=UIBlockInteractionResponse, response_model_exclude_none=True)
    def interact(req: UIBlockInteractionRequest):
        return ctx.interactions.handle(req)

    @app.get("/emails/{job_id}", response_model=EmailJobStatus)
    def email_status(job_id: str):
        status = ctx.finalize.email_status(job_id)
        if status is None:
            raise EmailJobNotFound(job_id)
        return status

    return app


app = create_app()
