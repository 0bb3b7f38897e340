"""Ambient concerns shared by the LLM layer: configuration, logging, errors and metrics."""
