import os

# Keep test runs off the developer database and the real gateway
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("GATEWAY_PROVIDER", "mock")
os.environ.setdefault("SECRET_KEY", "test-secret")
