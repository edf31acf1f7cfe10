import os

ENVIRONMENT = "testing"

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "epms_test"),
    "pool_size": 5,
}

JWT_ACCESS_SECRET = "test-access-secret"
JWT_REFRESH_SECRET = "test-refresh-secret"
CSRF_SECRET = "test-csrf-secret"
SECURE_COOKIES = False
# bcrypt minimum cost.
BCRYPT_ROUNDS = 4

DEBUG = False
TESTING = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")
LOG_FILE = None

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
