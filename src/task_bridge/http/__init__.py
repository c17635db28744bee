"""Shared HTTP plumbing for remote collaborators."""

from task_bridge.http.client import ApiError, JsonApiClient

__all__ = ["ApiError", "JsonApiClient"]
