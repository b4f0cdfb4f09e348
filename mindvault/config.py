# mindvault configuration
# loads env vars for storage backend, mongodb, gemini and capture limits

import os
from pathlib import Path
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# load .env from project root
load_dotenv(Path(__file__).parent.parent / ".env")


class Settings(BaseSettings):
    # storage backend: "local" (json file per user) or "mongo" (cloud)
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "local")

    # local backend
    LOCAL_DATA_DIR: Path = Path(os.getenv("LOCAL_DATA_DIR", str(Path.home() / ".mindvault")))
    LOCAL_RETENTION_LIMIT: int = 100

    # mongodb (remote backend)
    MONGODB_URI: str = os.getenv("MONGODB_URI", "")
    MONGODB_DATABASE: str = os.getenv("MONGODB_DATABASE", "mindvault")

    # profile merge
    PROFILE_MERGE_RETRIES: int = 5

    # gemini
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_QUERY_MODEL: str = os.getenv("GEMINI_QUERY_MODEL", "gemini-2.5-pro")
    GEMINI_TIMEOUT: float = 120.0

    # sign-in lives outside this service, requests name the user via header
    DEFAULT_USER_ID: str = os.getenv("DEFAULT_USER_ID", "local-user")

    # per-user stores and pipelines kept warm between requests
    USER_CACHE_SIZE: int = 256

    # uploads
    MAX_AUDIO_BYTES: int = 25 * 1024 * 1024

    # cors
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:5173")

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
