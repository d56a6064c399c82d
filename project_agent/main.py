"""Main FastAPI application."""

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from project_agent import __version__
from project_agent.api.endpoints import router
from project_agent.utils.logging import LogConfig, setup_logging

setup_logging(LogConfig(level=os.getenv("LOG_LEVEL", "INFO")))

# Create FastAPI application
app = FastAPI(
    title="Project Agent",
    description=(
        "A project assistant that reviews project state, calls tools through a bounded agent loop, "
        "and queues approval-gated actions for stakeholders and the CRM."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Runs",
            "description": "Start orchestration runs against a project.",
        },
        {
            "name": "Actions",
            "description": "Review, approve and reject action records proposed by the agent.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("project_agent.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
