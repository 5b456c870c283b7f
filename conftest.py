"""Global pytest configuration."""

import os

# Set before any tecassist import reads settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PROVIDER_ORDER", "stub")
