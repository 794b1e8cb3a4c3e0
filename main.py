"""
Timeclock - Entry Point.

Headless ASGI application for uvicorn execution.

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000 --reload

Or run directly:
    python main.py
"""

import uvicorn

from timeclock.app import create_app
from timeclock.config import get_settings
from timeclock.logging_config import setup_logging


settings = get_settings()

# Setup logging first
setup_logging(settings.log_level)

# Export for uvicorn
app = create_app(settings)


def main() -> None:
    """Run the application directly with uvicorn."""
    uvicorn_config = {
        "host": settings.server_host,
        "port": settings.server_port,
        "reload": settings.debug,
        "log_level": "warning",  # Suppress uvicorn info logs
        "access_log": False,     # Disable uvicorn access logs
    }

    # If reload is enabled, exclude logs and cache directories
    if settings.debug:
        uvicorn_config["reload_excludes"] = [
            "logs/*",
            "**/__pycache__/*",
            "**/*.pyc",
            ".venv/*",
            "*.log",
        ]

    uvicorn.run("main:app", **uvicorn_config)


if __name__ == "__main__":
    main()
