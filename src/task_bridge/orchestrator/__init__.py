"""Asynchronous task lifecycle for a command-line coding assistant.

A submission gets a task id immediately; the assistant CLI then runs on a
worker thread while its status is mirrored into the agent-memory service, and
the outcome is announced once through the notification router.
"""
