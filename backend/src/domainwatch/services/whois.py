"""
WHOIS lookup service.

Used when a domain is added (and by the lookup endpoint) to fill in
the registrar and expiry date. Not used by the reconciliation sweep.

Note: The HTTP client targets the api-ninjas WHOIS endpoint. Its
expiration_date arrives as epoch seconds, occasionally as a list of
timestamps or an ISO string, so parsing accepts all three.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

from domainwatch.domain.errors import TransientError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WhoisResult:
    """Registration facts for a domain; either may be unknown."""
    registrar: str | None = None
    expiry_date: datetime | None = None


class WhoisLookup(ABC):
    """Abstract interface for WHOIS lookups."""

    @abstractmethod
    async def lookup(self, domain_name: str) -> WhoisResult:
        """
        Look up a domain.

        Raises:
            TransientError: If the service failed or timed out
        """
        pass


def parse_expiry(value: Any) -> datetime | None:
    """Normalize a WHOIS expiration value to an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, list):
        # Some registries report several dates; the earliest is authoritative
        parsed = [d for d in (parse_expiry(v) for v in value) if d is not None]
        return min(parsed) if parsed else None
    if isinstance(value, (int, float)):
        # Millisecond timestamps are > 1e11 for any date after 1973
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unparseable WHOIS expiry: {value!r}")
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    logger.warning(f"Unexpected WHOIS expiry type: {type(value).__name__}")
    return None


class HttpWhoisClient(WhoisLookup):
    """WHOIS lookups over the api-ninjas HTTP API."""

    def __init__(
        self,
        api_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_url: WHOIS endpoint, queried with ?domain=<name>
            api_key: Sent as X-Api-Key when set
            timeout_seconds: Per-request timeout
            transport: Override for tests (httpx.MockTransport)
        """
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout_seconds
        self._transport = transport

    async def lookup(self, domain_name: str) -> WhoisResult:
        headers = {"X-Api-Key": self.api_key} if self.api_key else {}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    self.api_url,
                    params={"domain": domain_name},
                    headers=headers,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"WHOIS lookup for {domain_name} failed: {e}")
            raise TransientError(f"WHOIS lookup failed for {domain_name}") from e
        except ValueError as e:
            logger.warning(f"WHOIS response for {domain_name} was not JSON: {e}")
            raise TransientError(f"WHOIS lookup failed for {domain_name}") from e

        registrar = data.get("registrar") if isinstance(data, dict) else None
        expiry = parse_expiry(data.get("expiration_date")) if isinstance(data, dict) else None

        logger.info(f"WHOIS {domain_name}: registrar={registrar}, expiry={expiry}")
        return WhoisResult(registrar=registrar or None, expiry_date=expiry)
