"""Playwright session handling and run configuration."""

from .config import RunConfig, load_config
from .session import BrowserSession, PageState, SessionState

__all__ = ["BrowserSession", "PageState", "RunConfig", "SessionState", "load_config"]
