"""Credentials for the HR directory service."""

from __future__ import annotations

from pydantic import BaseModel, SecretStr


class DirectoryCredentials(BaseModel):
    token: SecretStr
    base_url: str
    auth_scheme: str = "Basic"

    @property
    def authorization(self) -> str:
        return f"{self.auth_scheme} {self.token.get_secret_value()}"

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
