"""Pytest hooks for the image reference gateway. Keep tests off real Redis and Supabase."""

import os


def pytest_configure(config):
    """Unset service credentials so no test reaches a real Redis or Supabase project."""
    for name in ("REDIS_URL", "SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY"):
        os.environ.pop(name, None)
