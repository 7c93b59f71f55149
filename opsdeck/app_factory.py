"""Entry point for uvicorn/gunicorn: ``uvicorn opsdeck.app_factory:app``."""
from opsdeck.app import create_app
from opsdeck.core.config import get_settings
from opsdeck.core.logging_config import setup_logging

setup_logging(get_settings().log_level)
app = create_app()

__all__ = ["app", "create_app"]
