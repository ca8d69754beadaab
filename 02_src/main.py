"""Run the IPC inspector host: HTTP/websocket API plus the traffic simulator."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from ipc_inspector.api import create_fastapi_app
from ipc_inspector.api.routes import control
from ipc_inspector.logging_config import get_logger, setup_logging
from sim import Sim

logger = get_logger(__name__)


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    setup_logging()

    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))

    # Attached to the trace port during app startup
    control.set_sim_instance(Sim())

    app = create_fastapi_app()
    logger.info("Inspector host listening on %s:%d", api_host, api_port)
    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
