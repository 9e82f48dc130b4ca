"""Celery scheduling entry points."""
