"""Pydantic data models for gtdorg."""
