"""
Core module for application configuration, timing rules and the progress
state machine.

Only settings is re-exported here. progress_state imports app.models, so
import the state machine and error modules directly:
from app.core.progress_state import ...
"""
from .config import settings

__all__ = ["settings"]
