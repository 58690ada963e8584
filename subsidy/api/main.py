from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from subsidy import __version__
from subsidy.api.errors import register_exception_handlers
from subsidy.api.routers import audit, catalog, documents, health, processes
from subsidy.common.logger import configure_logging
from subsidy.core.config import get_settings

settings = get_settings()

configure_logging(settings)

app = FastAPI(
    title=settings.app_name,
    description="Rental subsidy process workflow and approval engine",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(processes.router, prefix="/api")
app.include_router(documents.router, prefix="/api")
app.include_router(audit.router, prefix="/api")
app.include_router(catalog.router, prefix="/api")
app.include_router(health.router)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }
