"""HTTP client for the HR directory service.

Stateless with respect to credentials: every call takes the credentials to
send. Failures never escape the public ``fetch_*`` methods; they are logged
and reported as ``None`` or an empty list.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from hrdirectory.core.config import Settings
from hrdirectory.models.credentials import DirectoryCredentials
from hrdirectory.models.employee import RawEmployeeRecord
from hrdirectory.models.named_list import NamedList
from hrdirectory.services.payload_decoding import (
    EMPLOYEE_DECODERS,
    NAMED_LIST_COLLECTION_DECODERS,
    Decoder,
    decode_with_fallbacks,
    named_list_decoders,
    records_from_rows,
)

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 30.0


class DirectoryClientError(Exception):
    pass


class TransportError(DirectoryClientError):
    pass


class UpstreamStatusError(DirectoryClientError):
    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"Directory request failed: {status} - {body[:200]}")
        self.status = status
        self.body = body


class DecodeError(DirectoryClientError):
    pass


class NotFound(DirectoryClientError):
    pass


class DirectoryClient:
    def __init__(
        self,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        include_archived: bool = False,
    ) -> None:
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.include_archived = include_archived

    @classmethod
    def from_settings(cls, settings: Settings) -> DirectoryClient:
        return cls(
            connect_timeout=settings.DIRECTORY_CONNECT_TIMEOUT,
            read_timeout=settings.DIRECTORY_READ_TIMEOUT,
            include_archived=settings.DIRECTORY_INCLUDE_ARCHIVED,
        )

    async def fetch_employee(self, credentials: DirectoryCredentials, identity: str) -> RawEmployeeRecord | None:
        try:
            body = await self._get(credentials, "people", params={"email": identity})
            rows = self._decode(body, EMPLOYEE_DECODERS, "people")
        except NotFound:
            logger.info("No directory entry for %s", identity)
            return None
        except DirectoryClientError as e:
            logger.warning("Failed to fetch employee %s: %s", identity, e)
            return None

        wanted = identity.strip().lower()
        for record in records_from_rows(rows):
            if record.email.lower() == wanted:
                return record

        logger.info("No directory entry for %s", identity)
        return None

    async def fetch_all_employees(self, credentials: DirectoryCredentials) -> list[RawEmployeeRecord]:
        try:
            body = await self._get(credentials, "people")
            rows = self._decode(body, EMPLOYEE_DECODERS, "people")
        except DirectoryClientError as e:
            logger.warning("Failed to fetch employee directory: %s", e)
            return []

        records = records_from_rows(rows)
        logger.info("Fetched %d employees from directory (%d rows)", len(records), len(rows))
        return records

    async def fetch_named_list(self, credentials: DirectoryCredentials, category: str) -> NamedList | None:
        path = f"company/named-lists/{quote(category.strip().lower())}"
        try:
            body = await self._get(credentials, path, params=self._archived_params())
            return self._decode(body, named_list_decoders(category.strip().lower()), f"named list '{category}'")
        except DirectoryClientError as e:
            logger.warning("Failed to fetch named list '%s': %s", category, e)
            return None

    async def fetch_named_lists(self, credentials: DirectoryCredentials) -> list[NamedList]:
        try:
            body = await self._get(credentials, "company/named-lists", params=self._archived_params())
            return self._decode(body, NAMED_LIST_COLLECTION_DECODERS, "named lists")
        except DirectoryClientError as e:
            logger.warning("Failed to fetch named lists: %s", e)
            return []

    async def check_connection(self, credentials: DirectoryCredentials) -> bool:
        try:
            await self._get(credentials, "company/named-lists", params=self._archived_params())
            return True
        except DirectoryClientError:
            logger.exception("Directory connection check failed")
            return False

    def _archived_params(self) -> dict[str, str]:
        return {"includeArchived": "true" if self.include_archived else "false"}

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=None, sock_connect=self.connect_timeout, sock_read=self.read_timeout)

    async def _get(self, credentials: DirectoryCredentials, path: str, params: dict[str, str] | None = None) -> str:
        url = credentials.url(path)
        headers = {"Authorization": credentials.authorization, "Accept": "application/json"}

        try:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.get(url, headers=headers, params=params) as response:
                    body = await response.text()
                    if response.status == 404:
                        raise NotFound(f"{url} returned 404")
                    if not 200 <= response.status < 300:
                        raise UpstreamStatusError(response.status, body)
                    return body
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"GET {url} failed: {e!r}") from e

    @staticmethod
    def _decode(body: str, decoders: list[tuple[str, Decoder[Any]]], label: str) -> Any:
        result = decode_with_fallbacks(body, decoders)
        if not result.ok:
            raise DecodeError(f"{label} payload {result.status.value}: {result.detail}")
        return result.value
