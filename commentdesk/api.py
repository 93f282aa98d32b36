"""FastAPI application for the CommentDesk HTTP API."""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from commentdesk import __version__
from commentdesk.analytics import AnalyticsAggregator
from commentdesk.auth import AdminService, TokenService, admin_dependency
from commentdesk.config import Settings, get_settings
from commentdesk.drafting import DraftGenerator
from commentdesk.errors import CommentDeskError, UpstreamServiceError, ValidationFailed
from commentdesk.exporting import export_filename, render_csv
from commentdesk.metrics import METRICS_CONTENT_TYPE, build_registry, render_metrics
from commentdesk.models import parse_date, utcnow
from commentdesk.ratelimit import RateLimiter, rate_limit_dependency
from commentdesk.rulemakings import RulemakingService
from commentdesk.schemas import (
    AdminCreateRequest,
    AdminUpdateRequest,
    FinalizeCommentRequest,
    GenerateCommentRequest,
    LoginRequest,
    PasswordChangeRequest,
    RulemakingCreate,
    RulemakingUpdate,
)
from commentdesk.store import RecordStore, create_record_store
from commentdesk.submissions import SubmissionService
from commentdesk.tasks import TaskRunner, ThreadPoolTaskRunner
from commentdesk.verification import BotVerifier

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Internal Server Error"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'self'; object-src 'none'",
}


def _error_body(
    message: str, details: Any, settings: Settings, exc: Optional[BaseException] = None
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "error": message,
        "details": details,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if exc is not None and not settings.is_production():
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def _query_date(value: Optional[str], name: str):
    if not value:
        return None
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{name} must be an ISO-8601 date") from None


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def create_api_app(
    store: Optional[RecordStore] = None,
    settings: Optional[Settings] = None,
    generator: Optional[DraftGenerator] = None,
    verifier: Optional[BotVerifier] = None,
    task_runner: Optional[TaskRunner] = None,
    token_service: Optional[TokenService] = None,
) -> FastAPI:
    """Create the FastAPI app with every collaborator injected."""
    settings = settings or get_settings()
    settings.validate_runtime_config()

    if store is None:
        store = create_record_store(settings.database_url, settings.database_file)
        store.ensure_schema()
    generator = generator or DraftGenerator(
        api_key=settings.claude_api_key,
        model=settings.claude_model,
        base_url=settings.claude_base_url,
        max_tokens=settings.claude_max_tokens,
        timeout=settings.claude_timeout_seconds,
    )
    verifier = verifier or BotVerifier(
        secret_key=settings.recaptcha_secret_key,
        verify_url=settings.recaptcha_verify_url,
        timeout=settings.recaptcha_timeout_seconds,
        skip=settings.skip_bot_verification(),
    )
    task_runner = task_runner or ThreadPoolTaskRunner(max_workers=settings.analytics_workers)
    if token_service is None:
        if not settings.jwt_secret:
            logger.warning("JWT_SECRET is not set; using an ephemeral signing key")
        token_service = TokenService(
            secret=settings.jwt_secret or _ephemeral_secret(),
            issuer=settings.jwt_issuer,
            expire_minutes=settings.jwt_expire_minutes,
        )

    aggregator = AnalyticsAggregator(store)
    rulemakings = RulemakingService(store, aggregator)
    submissions = SubmissionService(
        store,
        generator,
        verifier,
        task_runner=task_runner,
        rulemakings=rulemakings,
        aggregator=aggregator,
    )
    admins = AdminService(store)
    require_admin = admin_dependency(token_service, admins)
    registry = build_registry(store, task_runner)

    app_dependencies = []
    if settings.rate_limit_enabled():
        limiter = RateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_ms / 1000,
        )
        app_dependencies.append(Depends(rate_limit_dependency(limiter)))
    else:
        logger.info("Request rate limiting disabled")

    app = FastAPI(title="CommentDesk API", version=__version__, dependencies=app_dependencies)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def set_security_headers(request: Request, call_next):
        """Add security headers to all responses"""
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.exception_handler(StarletteHTTPException)
    def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(message, None, settings),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(CommentDeskError)
    def handle_domain_error(request: Request, exc: CommentDeskError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                f"{request.method} {request.url.path} failed: {exc.message} ({exc.details})",
                exc_info=exc,
            )
            if settings.is_production():
                message = exc.message if isinstance(exc, UpstreamServiceError) else GENERIC_ERROR
                body = _error_body(message, None, settings)
            else:
                body = _error_body(exc.message, exc.details, settings, exc)
        else:
            body = _error_body(exc.message, exc.details, settings)
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg"),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400, content=_error_body("Validation failed", details, settings)
        )

    @app.exception_handler(Exception)
    def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        if settings.is_production():
            body = _error_body(GENERIC_ERROR, None, settings)
        else:
            body = _error_body(str(exc) or GENERIC_ERROR, None, settings, exc)
        return JSONResponse(status_code=500, content=body)

    @app.on_event("shutdown")
    def shutdown_tasks() -> None:
        task_runner.shutdown()

    @app.get("/health")
    def health() -> dict:
        """Service and store status."""
        status = store.health_check()
        return {
            "status": "OK" if status.get("database") == "ok" else "DEGRADED",
            "timestamp": utcnow().isoformat(),
            "environment": settings.environment,
            "version": __version__,
            **status,
        }

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=render_metrics(registry), media_type=METRICS_CONTENT_TYPE)

    # Rulemakings

    @app.get("/rulemakings")
    def list_rulemakings() -> dict:
        """Active rulemakings, soonest deadline first."""
        return {"rulemakings": [r.to_dict() for r in rulemakings.list_active()]}

    @app.get("/rulemakings/{rulemaking_id}")
    def get_rulemaking(rulemaking_id: str) -> dict:
        return {"rulemaking": rulemakings.get(rulemaking_id).to_dict()}

    @app.post("/rulemakings", status_code=201)
    def create_rulemaking(payload: RulemakingCreate, admin: dict = Depends(require_admin)) -> dict:
        rulemaking = rulemakings.create(payload)
        logger.info(f"Rulemaking {rulemaking.id} created by {admin['email']}")
        return {"rulemaking": rulemaking.to_dict()}

    @app.put("/rulemakings/{rulemaking_id}")
    def update_rulemaking(
        rulemaking_id: str, payload: RulemakingUpdate, admin: dict = Depends(require_admin)
    ) -> dict:
        rulemaking = rulemakings.update(rulemaking_id, payload)
        return {"rulemaking": rulemaking.to_dict()}

    @app.get("/rulemakings/{rulemaking_id}/analytics")
    def rulemaking_analytics(
        rulemaking_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        start_date_camel: Optional[str] = Query(default=None, alias="startDate"),
        end_date_camel: Optional[str] = Query(default=None, alias="endDate"),
    ) -> dict:
        """Range summary; accepts ``start_date``/``end_date`` or ``startDate``/``endDate``."""
        summary = rulemakings.analytics(
            rulemaking_id,
            _query_date(start_date or start_date_camel, "start_date"),
            _query_date(end_date or end_date_camel, "end_date"),
        )
        return {"analytics": summary}

    # Comments (public)

    @app.post("/comments/generate")
    def generate_comment(payload: GenerateCommentRequest, request: Request) -> dict:
        """Verify the caller, draft a letter and store it as a draft submission."""
        result = submissions.create_draft(
            payload,
            remote_ip=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        return result.to_dict()

    @app.put("/comments/{submission_id}")
    def finalize_comment(submission_id: str, payload: FinalizeCommentRequest) -> dict:
        submission = submissions.finalize(
            submission_id, payload.final_comment, payload.submission_status
        )
        return {"message": "Comment updated successfully", "submission_id": submission.id}

    @app.get("/comments/{submission_id}")
    def get_comment(submission_id: str) -> dict:
        return {"submission": submissions.get_public(submission_id)}

    # Submissions (admin)

    @app.get("/submissions")
    def list_submissions(
        rulemaking_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        admin: dict = Depends(require_admin),
    ) -> dict:
        rows = submissions.list_submissions(rulemaking_id, status, limit, offset)
        return {"submissions": rows}

    @app.get("/submissions/stats")
    def submission_stats(
        rulemaking_id: Optional[str] = None, admin: dict = Depends(require_admin)
    ) -> dict:
        return {"stats": aggregator.submission_stats(rulemaking_id)}

    @app.get("/submissions/export")
    def export_submissions(
        rulemaking_id: Optional[str] = None,
        format: str = "json",
        admin: dict = Depends(require_admin),
    ):
        """Export submissions as JSON or CSV."""
        fmt = format.lower()
        if fmt not in ("json", "csv"):
            raise ValidationFailed("format must be json or csv")

        rows = submissions.export_rows(rulemaking_id)
        logger.info(f"{admin['email']} exported {len(rows)} submission(s) as {fmt}")
        if fmt == "json":
            return {"submissions": rows}

        filename = export_filename(utcnow().date())
        return Response(
            content=render_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    # Admin authentication

    @app.post("/auth/admin/login")
    def admin_login(payload: LoginRequest) -> dict:
        profile = admins.authenticate(payload.email, payload.password)
        return {
            "success": True,
            "message": "Login successful",
            "token": token_service.issue(profile),
            "user": profile,
        }

    @app.post("/auth/admin/logout")
    def admin_logout() -> dict:
        # Tokens are stateless; the client discards its copy
        return {"success": True, "message": "Logout successful"}

    # Admin accounts

    @app.get("/admin/admins")
    def list_admins(admin: dict = Depends(require_admin)) -> dict:
        return {"success": True, "admins": admins.list_admins()}

    @app.post("/admin/admins", status_code=201)
    def create_admin(payload: AdminCreateRequest, admin: dict = Depends(require_admin)) -> dict:
        account = admins.create_admin(payload.email, payload.password, payload.name, payload.role)
        return {"success": True, "message": "Admin created successfully", "admin": account}

    @app.put("/admin/admins/{admin_id}")
    def update_admin(
        admin_id: str, payload: AdminUpdateRequest, admin: dict = Depends(require_admin)
    ) -> dict:
        admins.update_admin(admin_id, payload.model_dump(exclude_unset=True))
        return {"success": True, "message": "Admin updated successfully"}

    @app.put("/admin/admins/{admin_id}/password")
    def change_admin_password(
        admin_id: str, payload: PasswordChangeRequest, admin: dict = Depends(require_admin)
    ) -> dict:
        admins.change_password(admin_id, payload.new_password)
        return {"success": True, "message": "Password updated successfully"}

    @app.delete("/admin/admins/{admin_id}")
    def delete_admin(admin_id: str, admin: dict = Depends(require_admin)) -> dict:
        admins.delete_admin(admin_id)
        return {"success": True, "message": "Admin deleted successfully"}

    return app


def _ephemeral_secret() -> str:
    import secrets

    return secrets.token_urlsafe(32)
