"""
Pytest configuration for Django tests.

Points pytest at the test settings (eager Celery, in-memory push backend)
unless DJANGO_SETTINGS_MODULE is already set.
"""

import os


def pytest_configure(config):
    """Configure pytest with Django settings."""
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "django_project.test_settings")
