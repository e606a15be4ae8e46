from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from loguru import logger

# Load environment variables before the config class reads them
load_dotenv()

from colorcard.config import config
from colorcard.errors import CardError
from colorcard.schemas import HealthResponse, MetricsResponse
from colorcard.api.cards import router as cards_router
from colorcard.utils.logging import configure_logging
from colorcard.utils.metrics import get_metrics

VERSION = "1.0.0"

configure_logging()

if not config.validate():
    raise RuntimeError("Invalid COLORCARD_* configuration; check pixel ratio, stride and gate timings")

app = FastAPI(
    title="Color Card Backend",
    description="Dominant color extraction and branded color card export",
    version=VERSION
)

# Add CORS middleware with basic configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in config.ALLOWED_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=[
        "Content-Disposition",
        "X-Card-Notice",
        "X-Card-Gate-Timed-Out"
    ]
)

app.include_router(cards_router)


@app.exception_handler(CardError)
async def card_error_handler(request: Request, exc: CardError):
    """Unhandled card failures answer generically; details stay in the log."""
    logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Something went wrong. Please try again.", "error_code": exc.code}
    )


@app.get("/healthz", response_model=HealthResponse)
def health_check():
    """Color card service health check."""
    return HealthResponse(ok=True, version=VERSION, service="colorcard")


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": "Color Card Backend API",
        "version": VERSION,
        "docs": "/docs"
    }


@app.get("/cards/metrics", response_model=MetricsResponse)
def card_metrics():
    """Get extraction and export metrics."""
    try:
        return get_metrics().get_summary()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to get metrics: {str(e)}")
