from fastapi import FastAPI, Request, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
import structlog

from xanime_api.core.config import settings
from xanime_api.routers import episodes, reports, seasons, series, terms, video_files, videos
from xanime_api.core.rate_limit import check_rate_limit, rate_limiter
from xanime_api.core.exceptions import (
    APIError,
    api_exception_handler,
    request_validation_handler,
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'"
        if "server" in response.headers:
            del response.headers["server"]
        return response


# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(ensure_ascii=False),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting xanime API", version=settings.app_version)

    yield

    # Shutdown
    logger.info("Shutting down xanime API")

    await rate_limiter.close()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
# xanime API

インディーズ成人向けアニメーション投稿プラットフォームの書き込み系 API です。

## 認証

書き込み系の API は `Authorization: Bearer <access token>` ヘッダーが必要です。
トークンは Supabase Auth で検証されます。通報と再生数カウントは匿名でも利用できます。

## エラー形式

```json
{"message": "...", "code": "...", "details": {...}}
```
    """,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Series", "description": "シリーズ作成"},
        {"name": "Seasons", "description": "シーズン作成"},
        {"name": "Episodes", "description": "エピソード作成・削除"},
        {"name": "Video Files", "description": "エピソード動画の登録"},
        {"name": "Videos", "description": "動画の登録・編集・削除・いいね・再生数"},
        {"name": "Reports", "description": "通報"},
        {"name": "Terms", "description": "利用規約への同意"},
    ],
)

# Security headers middleware
app.add_middleware(SecurityHeadersMiddleware)

# CORS - Configurable via CORS_ORIGINS env var
cors_origins = (
    ["*"]
    if settings.cors_origins == "*"
    else [origin.strip() for origin in settings.cors_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


# API error handler for standardized responses
app.add_exception_handler(APIError, api_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "message": str(exc) if settings.debug else "サーバーエラーが発生しました。",
            "code": "INTERNAL_ERROR",
        },
    )


# Health check
@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.app_version,
    }


# Include routers with rate limiting
for router, prefix, tag in (
    (series.router, "/api/series", "Series"),
    (seasons.router, "/api/seasons", "Seasons"),
    (episodes.router, "/api/episodes", "Episodes"),
    (video_files.router, "/api/video-files", "Video Files"),
    (videos.router, "/api/videos", "Videos"),
    (reports.router, "/api/reports", "Reports"),
    (terms.router, "/api/terms", "Terms"),
):
    app.include_router(
        router,
        prefix=prefix,
        tags=[tag],
        dependencies=[Depends(check_rate_limit)],
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("xanime_api.main:app", host="0.0.0.0", port=8000, reload=True)
