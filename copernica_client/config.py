from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Remote API
    BASE_URL: str = "https://api.copernica.com"
    API_VERSION: int = 2
    ACCESS_TOKEN: str = ""

    # Timezone the remote backend interprets dates in
    TIMEZONE: str = "Europe/Amsterdam"

    # Transport (passed through, never retried here)
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # List fetching
    MAX_BATCH_LIMIT: int = 1000
    CURSOR_STATE_FILE: str = "cursor_state.json"

    # Error suppression defaults, by FailureCategory name
    SUPPRESS_ERRORS: List[str] = ["POST_NO_ID"]

    # GET resources allowed to return plain text instead of JSON
    TEXT_RESOURCE_SUFFIXES: List[str] = ["/xml", "/csv"]

    LOG_LEVEL: str = "INFO"

    class Config:
        env_prefix = "COPERNICA_"

settings = Settings()
