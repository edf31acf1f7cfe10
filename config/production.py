import os


def _required(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"{name} must be set in production")
    return value


ENVIRONMENT = "production"

SECRET_KEY = _required("SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "epms_system"),
    "pool_size": int(os.getenv("DB_POOL_SIZE", "100")),
}

JWT_ACCESS_SECRET = _required("JWT_ACCESS_SECRET")
JWT_REFRESH_SECRET = _required("JWT_REFRESH_SECRET")
CSRF_SECRET = _required("CSRF_SECRET")
SECURE_COOKIES = bool(int(os.getenv("SECURE_COOKIES", "1")))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE") or None

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
