"""
DecisionLab API entry point — alias.

Usage:
    uvicorn decisionlab.api.app:app --host 0.0.0.0 --port 8000

Re-exports the application from decisionlab.main so both entry points work.
"""

from decisionlab.main import app, create_app

__all__ = ["app", "create_app"]
