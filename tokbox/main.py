from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import uvicorn

from tokbox.config.settings import settings
from tokbox.database.connection import init_db, close_db
from tokbox.services.errors import TokboxError, UsageLimitReached
from tokbox.services.mood_strategies import get_mood_registry
from tokbox.services.s3_storage_service import S3StorageService, get_s3_storage
from tokbox.utils.logger import setup_logger
from tokbox.routes.analyze import router as analyze_router
from tokbox.routes.history import router as history_router
from tokbox.routes.uploads import router as uploads_router
from tokbox.routes.usage import router as usage_router

# Setup logging for every tokbox.* module
logger = setup_logger("tokbox")

# Initialize FastAPI app
app = FastAPI(
    title="tok.box Analysis Backend",
    description="Video grading, hook and caption generation for short-form creators",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(uploads_router, prefix="/api")
app.include_router(analyze_router, prefix="/api")
app.include_router(usage_router, prefix="/api")
app.include_router(history_router, prefix="/api")


@app.exception_handler(TokboxError)
async def tokbox_error_handler(request: Request, exc: TokboxError):
    # Quota rejections are expected and already logged at info by the gateway
    if not isinstance(exc, UsageLimitReached):
        logger.error(f"❌ {request.url.path} failed with {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"❌ Unhandled error on {request.url.path}: {exc}", exc_info=True)
    body = {"error": "Analysis failed"}
    if settings.debug:
        body["details"] = str(exc)
    return JSONResponse(status_code=500, content=body)


# Startup and shutdown events
@app.on_event("startup")
def startup_event():
    """Initialize database and mood table on startup"""
    try:
        init_db()
        get_mood_registry()
        logger.info("🚀 tok.box Analysis Backend started successfully")
    except Exception as e:
        logger.error(f"❌ Failed to initialize backend: {e}")
        raise


@app.on_event("shutdown")
def shutdown_event():
    """Cleanup on shutdown"""
    close_db()
    logger.info("🛑 tok.box Analysis Backend shutdown complete")


# Health check endpoint
@app.get("/health")
def health_check(storage: S3StorageService = Depends(get_s3_storage)):
    """Health check endpoint"""
    # Simple database connectivity test
    db_status = "disconnected"
    try:
        from tokbox.database.connection import engine
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.warning(f"⚠️ Health check database connection failed: {e}")

    # Bucket access for staged frames
    s3_result = storage.check_s3_connection()
    if not s3_result["success"]:
        logger.warning(f"⚠️ Health check S3 connection failed: {s3_result['error']}")

    return {
        "status": "healthy" if db_status == "connected" and s3_result["success"] else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
        "services": {
            "database": db_status,
            "s3": "connected" if s3_result["success"] else "unavailable",
            "moods": len(get_mood_registry()),
        }
    }


if __name__ == "__main__":
    uvicorn.run(
        "tokbox.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
