"""Insight engines (correlation, bias, accuracy) and the orchestrator that runs them."""
