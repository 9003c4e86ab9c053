"""
Follow-up Diagnosis API
Workbook submissions, follow-up recommendations and language-model follow-up diagnoses
"""
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

# Local imports
from config import settings
import database
from middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from routers import followup_router, workbook_router, worksheets_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

# Setup logger
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Follow-up Diagnosis API",
    description="Follow-up worksheets, recommendations and progress diagnoses",
    version="1.0.0"
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware - Use configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(followup_router)
app.include_router(workbook_router)
app.include_router(worksheets_router)


def cors_error_headers(origin: str) -> dict:
    """CORS headers for error responses; only configured origins are echoed back"""
    allowed = settings.allowed_origins_list
    if "*" in allowed:
        return {"Access-Control-Allow-Origin": "*"}
    if not origin or origin not in allowed:
        return {}
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Credentials": "true",
        "Vary": "Origin",
    }


# Error responses keep CORS headers so browsers can read the detail
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    headers = dict(exc.headers or {})
    headers.update(cors_error_headers(request.headers.get("origin")))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers,
    )


@app.on_event("startup")
async def startup_event():
    """Create tables when a database is reachable"""
    if not database.DATABASE_AVAILABLE:
        logger.warning("[DB] No database available, requests needing storage will get 503")
        return
    try:
        database.init_db()
        logger.info("[DB] Database tables ready")
    except Exception as e:
        logger.warning(f"[DB] Database initialization warning: {e}")


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "ok",
        "service": "followup-diagnosis-api",
        "version": "1.0.0",
        "database": database.DATABASE_AVAILABLE,
        "openai_api_configured": bool(settings.OPENAI_API_KEY),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
