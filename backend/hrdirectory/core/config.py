import sys
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings

from hrdirectory.models.credentials import DirectoryCredentials

_ENV_FILE = None if "pytest" in sys.modules else ".env"


class Settings(BaseSettings):
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    DIRECTORY_API_URL: str = "https://api.hibob.com/v1"
    DIRECTORY_API_TOKEN: str = ""
    DIRECTORY_AUTH_SCHEME: str = "Basic"
    DIRECTORY_CONNECT_TIMEOUT: float = 10.0
    DIRECTORY_READ_TIMEOUT: float = 30.0
    DIRECTORY_INCLUDE_ARCHIVED: bool = False

    CACHE_TTL_HOURS: float = 24.0
    CACHE_REFRESH_POLICY: Literal["eager", "point"] = "eager"
    CACHE_SNAPSHOT_PATH: str = "data/directory_cache.json"
    CACHE_WARM_ON_STARTUP: bool = False

    model_config = {
        "env_file": _ENV_FILE,
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }

    def credentials(self) -> DirectoryCredentials | None:
        if not self.DIRECTORY_API_TOKEN or not self.DIRECTORY_API_URL:
            return None
        return DirectoryCredentials(
            token=SecretStr(self.DIRECTORY_API_TOKEN),
            base_url=self.DIRECTORY_API_URL,
            auth_scheme=self.DIRECTORY_AUTH_SCHEME,
        )


settings = Settings()
