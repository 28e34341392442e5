from fastapi import FastAPI
from contextlib import asynccontextmanager

# Import the pipeline router
from assemble.router import router as pipeline_router

# Import the queue model and credential store
from assemble.pipeline_queue import PipelineQueue
from assemble.utils.credentials import CredentialStore

# Import centralized HTTP client factory
from assemble.utils.http_client import (
    get_http_client_factory,
    ServiceType,
    lifespan_http_clients
)

# Import centralized logging configuration
from assemble.utils.logging_config import get_logger, setup_logging


# Set up logging
logger = get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager with centralized HTTP client setup."""
    factory = get_http_client_factory()

    app.state.http_client = factory.create_client(ServiceType.CONVERTAPI)
    app.state.queue = PipelineQueue()
    app.state.credentials = CredentialStore()
    logger.info(f"Reading service credentials from {app.state.credentials.path}")

    # Use the centralized lifespan context manager for proper cleanup
    async with lifespan_http_clients():
        yield


app = FastAPI(lifespan=lifespan)

# Include the pipeline router
app.include_router(pipeline_router)


@app.get("/ping")
async def general_ping():
    return {"success": True, "data": "PONG!"}


if __name__ == "__main__":
    import uvicorn
    setup_logging()
    uvicorn.run(app, host="0.0.0.0", port=8369, log_config=None)
