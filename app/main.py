"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.errors import register_exception_handlers
from app.api.routes import api_router, site_router
from app.core.access_guard import AccessGuardMiddleware
from app.core.config import Settings, get_settings
from app.core.security import TokenService, hash_password


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application. Settings are validated here, so a missing
    JWT_SECRET stops startup instead of falling back to a built-in key.
    """
    settings = settings or get_settings()
    token_service = TokenService.from_settings(settings)

    app = FastAPI(
        title="Storefront API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.token_service = token_service
    # Unknown-email logins verify against this so they cost the same as a wrong password.
    app.state.dummy_password_hash = hash_password(
        "not-a-real-password", rounds=settings.BCRYPT_ROUNDS
    )

    register_exception_handlers(app)

    # Added first so it runs innermost: CORS answers preflights before the guard sees them.
    app.add_middleware(
        AccessGuardMiddleware,
        token_service=token_service,
        cookie_name=settings.AUTH_COOKIE_NAME,
        login_path=settings.LOGIN_PATH,
        home_path=settings.HOME_PATH,
        api_prefix=settings.API_PREFIX,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_ENV == "dev" else settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(site_router)
    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "Storefront API"}

    return app


app = create_app()
