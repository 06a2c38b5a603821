"""
odata_writer.api - Optional REST API Gateway
============================================

This module provides an optional FastAPI-based gateway that previews
the requests written for a service schema.

Usage
-----
>>> from odata_writer.api import create_app
>>> app = create_app()
>>> # Run with: uvicorn odata_writer.api:app

Or run directly:
>>> python -m odata_writer.api

"""

from pathlib import Path

# Load .env before importing gateway
try:
    from dotenv import load_dotenv
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        env_path = Path(__file__).resolve().parent.parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)
except ImportError:
    pass

from odata_writer.api.gateway import create_app, PreviewGateway

# Create default app instance for uvicorn
app = create_app()

__all__ = [
    "create_app",
    "PreviewGateway",
    "app",
]
