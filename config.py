import os

SECRET_KEY = os.getenv("SECRET_KEY") or os.getenv("JWT_SECRET", "dev-secret-key-change-me")
JWT_ALGORITHM = "HS256"
JWT_EXP_MIN = int(os.getenv("JWT_EXP_MIN", str(60 * 24 * 7)))

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "study_share")
USE_MEMORY_DB = os.getenv("USE_MEMORY_DB", "false").lower() in ("1", "true", "yes")

RECOVERY_DIR = os.getenv("RECOVERY_DIR", os.path.join(os.getcwd(), "recovery-data"))
RECOVERY_ENABLED = os.getenv("RECOVERY_ENABLED", "true").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
PORT = int(os.getenv("PORT", 8000))
