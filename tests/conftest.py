"""
Root-level conftest for all tests.

Modules such as the worker routes read settings at import time, so the
infrastructure variables get harmless defaults before anything imports
them. Unit tests build their own ``Settings`` through ``test_settings``.
"""

import os

for key, value in {
    "POSTGRES_USER": "unit_test_user",
    "POSTGRES_HOST": "localhost",
    "POSTGRES_PASSWORD": "unit_test_password",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DB": "unit_test_db",
    "REDIS_HOST": "localhost",
    "REDIS_PORT": "6379",
}.items():
    os.environ.setdefault(key, value)
