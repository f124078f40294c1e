"""Integrations - optional external services."""
