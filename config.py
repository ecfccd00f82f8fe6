"""Runtime settings, read from the environment (and a local .env file)."""
import os

from dotenv import load_dotenv

load_dotenv()

# Database
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "google-drive-clone")

# Tokens
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# HTTP
API_PREFIX = "/api"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Drive behaviour
STORAGE_QUOTA_BYTES = int(os.getenv("STORAGE_QUOTA_BYTES", str(15 * 1024 * 1024 * 1024)))  # 15GB
DEFAULT_LOCATION = os.getenv("DEFAULT_LOCATION", "My Drive")
TRASH_LOCATION = os.getenv("TRASH_LOCATION", "Trash")
RECENT_LIMIT = 20

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
