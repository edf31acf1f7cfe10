import os

ENVIRONMENT = "development"

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "epms_system"),
    "pool_size": int(os.getenv("DB_POOL_SIZE", "100")),
}

# Auth secrets: fixed dev values so tokens survive a reload.
JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", "dev-access-secret-change-me")
JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "dev-refresh-secret-change-me")
CSRF_SECRET = os.getenv("CSRF_SECRET", "dev-csrf-secret-change-me")
SECURE_COOKIES = bool(int(os.getenv("SECURE_COOKIES", "0")))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
LOG_FILE = os.getenv("LOG_FILE") or None

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed roles and demo users on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
