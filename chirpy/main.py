import logging
import threading
from datetime import datetime
from typing import Callable, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from chirpy.core.auth import (
    get_bearer_token,
    get_current_user_id,
    hash_password,
    require_api_key,
    verify_password,
)
from chirpy.core.chirps import replace_profane, validate_chirp_length
from chirpy.core.database import Database
from chirpy.core.errors import (
    AuthError,
    ExpiredTokenError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    UserNotFoundError,
)
from chirpy.core.sessions import SessionManager, utcnow
from chirpy.core.settings import Settings, get_settings
from chirpy.core.storage import JsonFilePersistence
from chirpy.models import (
    ChirpCreate,
    ChirpOut,
    ErrorResponse,
    LoginResponse,
    TokenResponse,
    UserCredentials,
    UserOut,
    UserUpdate,
    WebhookEvent,
)

logger = logging.getLogger(__name__)

UPGRADE_EVENT = "user.upgraded"

METRICS_PAGE = """<html>
<body>
    <h1>Welcome, Chirpy Admin</h1>
    <p>Chirpy has been visited {hits} times!</p>
</body>
</html>
"""

openapi_tags = [
    {"name": "Health", "description": "Service health and metrics endpoints."},
    {"name": "Chirps", "description": "Create, list and delete chirps."},
    {"name": "Users", "description": "Signup and profile updates."},
    {"name": "Auth", "description": "Login and token endpoints."},
    {"name": "Webhooks", "description": "Billing provider callbacks."},
]


class HitCounter:
    """Counts requests served by the static file server."""

    def __init__(self):
        self._lock = threading.Lock()
        self._hits = 0

    def increment(self) -> None:
        with self._lock:
            self._hits += 1

    def reset(self) -> None:
        with self._lock:
            self._hits = 0

    @property
    def hits(self) -> int:
        return self._hits


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_sessions(request: Request) -> SessionManager:
    return request.app.state.sessions


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        response = _error(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning("Rejected %s %s: %d validation error(s)", request.method, request.url.path, len(exc.errors()))
        return _error(422, "Invalid request")

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(ForbiddenError)
    async def forbidden_handler(request: Request, exc: ForbiddenError):
        logger.warning("Forbidden %s %s: %s", request.method, request.url.path, exc)
        return _error(status.HTTP_403_FORBIDDEN, "Forbidden")

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        logger.warning("Unauthorized %s %s: %s", request.method, request.url.path, exc)
        return _error(status.HTTP_401_UNAUTHORIZED, "Unauthorized")

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Something went wrong")


def _register_routes(app: FastAPI) -> None:
    @app.get("/api/healthz", tags=["Health"], summary="Readiness check", response_class=PlainTextResponse)
    def healthz():
        """Return OK while the server is up."""
        return "OK"

    @app.get("/admin/metrics", tags=["Health"], summary="Admin metrics page", response_class=HTMLResponse)
    def metrics(request: Request):
        """Render the file server hit count."""
        return METRICS_PAGE.format(hits=request.app.state.hits.hits)

    @app.api_route(
        "/api/reset",
        methods=["GET", "POST"],
        tags=["Health"],
        summary="Reset hit counter",
        response_class=PlainTextResponse,
    )
    def reset_metrics(request: Request):
        request.app.state.hits.reset()
        return "OK"

    @app.post(
        "/api/chirps",
        response_model=ChirpOut,
        status_code=status.HTTP_201_CREATED,
        tags=["Chirps"],
        summary="Create chirp",
        responses={400: {"model": ErrorResponse}},
    )
    def create_chirp(
        payload: ChirpCreate,
        user_id: int = Depends(get_current_user_id),
        db: Database = Depends(get_db),
    ):
        """Post a chirp as the authenticated user.

        Bodies longer than 140 characters are rejected; profane words are masked.
        """
        if not validate_chirp_length(payload.body):
            return _error(status.HTTP_400_BAD_REQUEST, "Chirp is too long")
        chirp = db.create_chirp(replace_profane(payload.body), user_id)
        return ChirpOut.from_record(chirp)

    @app.get("/api/chirps", response_model=list[ChirpOut], tags=["Chirps"], summary="List chirps")
    def list_chirps(
        author_id: Optional[str] = None,
        sort: str = "asc",
        db: Database = Depends(get_db),
    ):
        """List chirps, optionally by one author, sorted by id (asc or desc)."""
        try:
            author = int(author_id) if author_id else 0
        except ValueError:
            author = 0
        return [ChirpOut.from_record(c) for c in db.get_chirps(author, sort)]

    @app.get("/api/chirps/{chirp_id}", response_model=ChirpOut, tags=["Chirps"], summary="Get chirp")
    def get_chirp(chirp_id: int, db: Database = Depends(get_db)):
        return ChirpOut.from_record(db.get_chirp_by_id(chirp_id))

    @app.delete(
        "/api/chirps/{chirp_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        tags=["Chirps"],
        summary="Delete chirp",
    )
    def delete_chirp(
        chirp_id: int,
        user_id: int = Depends(get_current_user_id),
        db: Database = Depends(get_db),
    ):
        """Delete a chirp owned by the authenticated user."""
        db.delete_chirp(user_id, chirp_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post(
        "/api/users",
        response_model=UserOut,
        status_code=status.HTTP_201_CREATED,
        tags=["Users"],
        summary="Create user account",
    )
    def signup(payload: UserCredentials, db: Database = Depends(get_db)):
        # Not atomic with the create below; the store does not enforce unique emails.
        try:
            db.get_user_by_email(payload.email)
        except UserNotFoundError:
            pass
        else:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
        user = db.create_user(payload.email, hash_password(payload.password))
        return UserOut.from_record(user)

    @app.get("/api/users/me", response_model=UserOut, tags=["Users"], summary="Get current user")
    def me(user_id: int = Depends(get_current_user_id), db: Database = Depends(get_db)):
        """Return the authenticated user's profile."""
        return UserOut.from_record(db.get_user_by_id(user_id))

    @app.put("/api/users", response_model=UserOut, tags=["Users"], summary="Update current user")
    def update_user(
        payload: UserUpdate,
        user_id: int = Depends(get_current_user_id),
        db: Database = Depends(get_db),
    ):
        """Change the authenticated user's email and/or password."""
        password_hash = hash_password(payload.password) if payload.password else None
        user = db.update_user(user_id, email=payload.email, password_hash=password_hash)
        return UserOut.from_record(user)

    @app.post("/api/login", response_model=LoginResponse, tags=["Auth"], summary="Login")
    def login(
        payload: UserCredentials,
        db: Database = Depends(get_db),
        sessions: SessionManager = Depends(get_sessions),
    ):
        """Authenticate a user and return an access token plus a refresh token."""
        try:
            user = db.get_user_by_email(payload.email)
        except UserNotFoundError:
            user = None
        if user is None or not verify_password(payload.password, user.password_hash):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
        refresh_token = sessions.issue_refresh_token(user.id)
        token = sessions.mint_access_token(refresh_token)
        return LoginResponse(
            id=user.id,
            email=user.email,
            is_chirpy_red=user.is_upgraded,
            token=token,
            refresh_token=refresh_token,
        )

    @app.post("/api/refresh", response_model=TokenResponse, tags=["Auth"], summary="Refresh access token")
    def refresh(
        refresh_token: str = Depends(get_bearer_token),
        sessions: SessionManager = Depends(get_sessions),
    ):
        try:
            token = sessions.mint_access_token(refresh_token)
        except (NotFoundError, ExpiredTokenError) as exc:
            logger.warning("Refresh rejected: %s", exc)
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
        return TokenResponse(token=token)

    @app.post(
        "/api/revoke",
        status_code=status.HTTP_204_NO_CONTENT,
        tags=["Auth"],
        summary="Revoke refresh token",
    )
    def revoke(
        refresh_token: str = Depends(get_bearer_token),
        sessions: SessionManager = Depends(get_sessions),
    ):
        sessions.revoke_refresh_token(refresh_token)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post(
        "/api/polka/webhooks",
        status_code=status.HTTP_204_NO_CONTENT,
        tags=["Webhooks"],
        summary="Billing webhook",
        dependencies=[Depends(require_api_key)],
    )
    def polka_webhook(payload: WebhookEvent, db: Database = Depends(get_db)):
        """Mark a user as upgraded when the billing provider reports it.

        Events other than ``user.upgraded`` are acknowledged and ignored.
        """
        if payload.event != UPGRADE_EVENT:
            return Response(status_code=status.HTTP_204_NO_CONTENT)
        if payload.data.user_id is None:
            raise UserNotFoundError(None)
        db.set_upgraded(payload.data.user_id, True)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    """Build the application around a freshly initialized record store."""
    if settings is None:
        settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db = Database(JsonFilePersistence(settings.database_path), reset=settings.reset_db_on_startup)

    app = FastAPI(
        title="Chirpy API",
        description="Backend API for posting chirps, with JWT sessions and a flat-file store.",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    app.state.settings = settings
    app.state.db = db
    app.state.sessions = SessionManager(db, settings, clock=clock)
    app.state.hits = HitCounter()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def count_file_server_hits(request: Request, call_next):
        response = await call_next(request)
        if request.url.path == "/app" or request.url.path.startswith("/app/"):
            request.app.state.hits.increment()
        return response

    _register_error_handlers(app)
    _register_routes(app)
    app.mount("/app", StaticFiles(directory=settings.static_dir, html=True, check_dir=False), name="app")

    logger.info("Chirpy store ready at %s", settings.database_path)
    return app


def run() -> None:
    """Serve the API with uvicorn."""
    settings = get_settings()
    uvicorn.run("chirpy.main:create_app", factory=True, host=settings.host, port=settings.port)
