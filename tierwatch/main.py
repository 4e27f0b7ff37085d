from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import health, tokens
from .config import settings
from .logging_config import setup_logging
from .services.dashboard import TokenDashboard


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    dashboard = getattr(app.state, "dashboard", None) or TokenDashboard.from_settings(settings)
    app.state.dashboard = dashboard
    await dashboard.start()
    try:
        yield
    finally:
        await dashboard.stop()


# Create FastAPI app
app = FastAPI(
    title="Tierwatch API",
    description="Token tier classification and progression tracking",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(tokens.router, tags=["Tokens"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Tierwatch API",
        "version": "0.1.0",
        "description": "Token tier classification and progression tracking",
        "docs": "/docs",
        "health": "/healthz",
        "progression": "/tokens/progression",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "tierwatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
