from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pathlib import Path
import logging

from config.settings import settings
from core.errors import register_exception_handlers
from database.db import SessionLocal, init_db
from routes import employee_auth, employees, hr_auth, modules, user_auth
from services.one_time_tokens import purge_expired

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description="Learning management API for HR teams and their employees",
    docs_url="/docs",
    openapi_url="/openapi.json"
)

# ============ CORS Middleware ============

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info(f"CORS enabled for origins: {settings.ALLOWED_ORIGINS}")

# ============ Error Handling ============

register_exception_handlers(app)

# ============ Uploaded Files ============

Path(settings.UPLOAD_DIR, "profiles").mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

# ============ Event Handlers ============

@app.on_event("startup")
async def startup_event():
    """
    Initialize application on startup.
    - Create database tables
    - Clear one-time links that expired while the server was down
    """
    try:
        init_db()
        db = SessionLocal()
        try:
            purge_expired(db)
        finally:
            db.close()
        logger.info("✅ Application started successfully")
        logger.info(f"📊 API docs available at: http://localhost:{settings.PORT}/docs")
    except Exception as e:
        logger.error(f"❌ Failed to start application: {str(e)}")
        raise

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("❌ Application shutdown")

# ============ Health Check ============

@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint.
    Returns application status.
    """
    return {
        "status": "healthy",
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT,
    }

# ============ Include Routers ============

app.include_router(hr_auth.router)
app.include_router(employees.router)
app.include_router(modules.router)
app.include_router(modules.employee_router)
app.include_router(employee_auth.router)
app.include_router(user_auth.router)
app.include_router(user_auth.session_router)

logger.info("✅ All routers registered")

# ============ Root Endpoint ============

@app.get("/", tags=["root"])
async def root():
    """
    Root endpoint.
    Returns API information.
    """
    return {
        "message": "Learning Management API",
        "version": settings.API_VERSION,
        "docs": "/docs",
        "health": "/health"
    }

# ============ Run Application ============

if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on {settings.HOST}:{settings.PORT}")

    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level="info"
    )
