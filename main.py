import sys
import logging
from dotenv import load_dotenv

# .env has to be in the environment before chartkit reads its settings
load_dotenv()

from fastapi import FastAPI, Request  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.middleware.gzip import GZipMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402
from slowapi.errors import RateLimitExceeded  # noqa: E402
from chartkit.api.routes import router, limiter  # noqa: E402
from chartkit.api.metrics import router as metrics_router  # noqa: E402
from chartkit.core.config import get_settings  # noqa: E402
from chartkit.core.errors import ChartError, ErrorCodes, get_error_response  # noqa: E402
from chartkit.core.logging import configure_logging  # noqa: E402
from chartkit.core.middleware import CorrelationIDMiddleware, TimeoutMiddleware  # noqa: E402

logger = logging.getLogger(__name__)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, 'correlation_id', 'unknown')


def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Upload rate limit hit: structured 429 with a Retry-After hint."""
    correlation_id = _correlation_id(request)
    error_info = get_error_response(ErrorCodes.RATE_LIMIT_EXCEEDED)
    error_info['correlation_id'] = correlation_id
    return JSONResponse(
        status_code=429,
        content=error_info,
        headers={
            "Retry-After": str(getattr(exc, 'retry_after', 60)),
            "X-Correlation-ID": correlation_id
        }
    )


def chart_error_handler(request: Request, exc: ChartError):
    """Validation problems are the caller's to fix (400); data problems are 422."""
    detail = exc.to_response()
    detail['correlation_id'] = _correlation_id(request)
    status_code = 422 if exc.category == "data" else 400
    return JSONResponse(status_code=status_code, content={"detail": detail})


try:
    settings = get_settings()
except Exception as e:
    # Logging isn't configured yet
    logging.basicConfig(level=logging.ERROR)
    logger.error(f"Failed to load configuration: {e}")
    sys.exit(1)

configure_logging(settings.log_level, settings.log_format)

app = FastAPI(
    title="chartkit API",
    description="Dataset profiling, chart recommendation and chart data aggregation",
    version="1.0.0"
)

# slowapi looks the limiter up on app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_exception_handler(ChartError, chart_error_handler)

# Last added runs first: correlation ID, CORS, compression, then the timeout
app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.request_timeout_seconds)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID", "X-Response-Time"]
)
app.add_middleware(CorrelationIDMiddleware)

logger.info(f"CORS allowed origins: {settings.allowed_origins_list}")

app.include_router(router, prefix="/api")
app.include_router(metrics_router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "chartkit API is running"}


logger.info("Application started successfully")
