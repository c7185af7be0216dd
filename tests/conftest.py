"""Test environment: in-memory SQLite and fixed secrets, set before the app modules load settings."""

import os

os.environ.update(
    {
        "APP_ENV": "dev",
        "DATABASE_URL": "sqlite://",
        "JWT_SECRET": "test-access-secret",
        "JWT_REFRESH_SECRET": "test-refresh-secret",
        "PASSWORD_HASH_ROUNDS": "4",
        "SEED_ADMIN_USERNAME": "adrian",
        "SEED_ADMIN_PASSWORD": "jopo",
        "SEED_ADMIN_EMAIL": "adrian@saldiviabuses.com",
        "BREAK_GLASS_ENABLED": "false",
        "LOG_LEVEL": "WARNING",
    }
)
