# addresskit/main.py
from fastapi import FastAPI
from contextlib import asynccontextmanager

import logging

from addresskit.configs import env, configs, env_flag, get_setting
from addresskit.exceptions import register_exception_handlers
from addresskit.routes import (
    bridge,
    communes,
    convert,
    districts,
    provinces,
    search,
    units,
)
from addresskit.services.db import close_database, init_database
from fastapi.middleware.cors import CORSMiddleware


# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

DEBUG_MODE = env_flag(env.get("DEBUG", get_setting("app", "debug_mode", False)))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles startup and shutdown events for the application.
    Connects to MongoDB and initializes Beanie ODM.
    """
    logger.info("Application startup initiated...")
    try:
        await init_database()
        logger.info("MongoDB connection and Beanie initialization successful.")
    except Exception as e:
        logger.error("Failed to connect to MongoDB or initialize Beanie: %s", e)
        raise

    yield

    logger.info("Application shutdown initiated...")
    await close_database()
    logger.info("MongoDB connection closed.")


app = FastAPI(
    title=env.get("APP_NAME") or configs.get("app").get("project_name"),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_setting("app", "cors_origins", []),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app, debug=DEBUG_MODE)

# Include API routes
app.include_router(provinces.router, prefix="/provinces", tags=["Provinces"])
app.include_router(districts.router, prefix="/districts", tags=["Districts"])
app.include_router(communes.router, prefix="/communes", tags=["Communes"])
app.include_router(units.router, prefix="/units", tags=["Units"])
app.include_router(search.router, prefix="/search", tags=["Search"])
app.include_router(convert.router, prefix="/convert", tags=["Address Conversion"])
app.include_router(bridge.router, prefix="/bridge", tags=["Cross-Version Bridge"])


@app.get("/")
async def read_index():
    return {
        "message": app.title,
        "routes": [
            "/provinces",
            "/districts",
            "/communes",
            "/units",
            "/search",
            "/convert",
            "/bridge/code",
        ],
    }
