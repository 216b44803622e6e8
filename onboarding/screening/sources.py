"""External screening sources.

Checks never reach the network themselves: they query these adapters, so the
same check runs against live services in production and in-memory fakes in
tests. Adapters raise ExternalSourceError when a lookup cannot complete;
each check decides what an unavailable source means for its severity.

Name matching against local lists uses thefuzz to catch transliteration
variants like "Mohammad Ahmad" vs "Mohammed Ahmed":
  - fuzz.ratio(): overall character-level string similarity
  - fuzz.token_sort_ratio(): handles name reordering
    ("Ahmad Mohammad" vs "Mohammad Ahmad")
The higher of the two scores is compared to the configured threshold.
"""

import asyncio
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol

import httpx
from thefuzz import fuzz

from onboarding.errors import ExternalSourceError
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _normalize_name(name: str) -> str:
    """Lowercase, strip, and collapse multiple spaces."""
    return re.sub(r"\s+", " ", name.strip().lower())


def _normalize_registration_number(value: str) -> str:
    """Drop spaces, dots and dashes so '933 819 963' matches '933819963'."""
    return re.sub(r"[\s.\-]", "", value).upper()


@dataclass(frozen=True)
class SourceMatch:
    """A hit reported by a list source."""

    source: str
    entry: str
    score: int


@dataclass(frozen=True)
class MediaHit:
    title: str
    url: str


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class SanctionsSource(Protocol):
    name: str

    async def search(self, subject: str, threshold: int) -> Optional[SourceMatch]:
        ...


class PepRegistry(Protocol):
    def supports(self, country: str) -> bool:
        ...

    async def search(self, subject: str, country: str, threshold: int) -> Optional[SourceMatch]:
        ...


class EntityRegistry(Protocol):
    def supports(self, country: str) -> bool:
        ...

    async def lookup(self, registration_number: str, country: str) -> Optional[Dict[str, Any]]:
        ...


class MxResolver(Protocol):
    async def mx_records(self, domain: str) -> List[str]:
        ...


class MediaSearch(Protocol):
    name: str

    async def search(self, subject: str, country: Optional[str], limit: int) -> List[MediaHit]:
        ...


# ---------------------------------------------------------------------------
# Local list sources
# ---------------------------------------------------------------------------


class NameListSource:
    """Fuzzy matcher over a fixed list of names."""

    def __init__(self, name: str, entries: Iterable[str]) -> None:
        self.name = name
        self._entries = [(entry, _normalize_name(entry)) for entry in entries]

    async def search(self, subject: str, threshold: int) -> Optional[SourceMatch]:
        normalized_subject = _normalize_name(subject)
        if not normalized_subject:
            return None

        best: Optional[SourceMatch] = None
        for entry, normalized_entry in self._entries:
            score = max(
                fuzz.ratio(normalized_subject, normalized_entry),
                fuzz.token_sort_ratio(normalized_subject, normalized_entry),
            )
            if score >= threshold and (best is None or score > best.score):
                best = SourceMatch(source=self.name, entry=entry, score=score)
        return best


class CountryPepRegistry:
    """Official PEP registers, one name list per country."""

    def __init__(self, registers: Dict[str, Iterable[str]]) -> None:
        self._registers = {
            country.upper(): NameListSource(f"{country.upper()} PEP register", names)
            for country, names in registers.items()
        }

    def supports(self, country: str) -> bool:
        return bool(country) and country.upper() in self._registers

    async def search(self, subject: str, country: str, threshold: int) -> Optional[SourceMatch]:
        register = self._registers.get(country.upper())
        if register is None:
            raise ExternalSourceError(f"No PEP register for country {country}")
        return await register.search(subject, threshold)


class StaticEntityRegistry:
    """Registry extracts keyed by country and registration number."""

    def __init__(self, records: Iterable[Dict[str, Any]]) -> None:
        self._records: Dict[tuple, Dict[str, Any]] = {}
        for record in records:
            country = str(record["country"]).upper()
            number = _normalize_registration_number(str(record["registrationNumber"]))
            self._records[(country, number)] = dict(record)

    def supports(self, country: str) -> bool:
        return bool(country) and any(c == country.upper() for c, _ in self._records)

    async def lookup(self, registration_number: str, country: str) -> Optional[Dict[str, Any]]:
        key = (country.upper(), _normalize_registration_number(registration_number))
        record = self._records.get(key)
        return dict(record) if record is not None else None


# ---------------------------------------------------------------------------
# HTTP sources
# ---------------------------------------------------------------------------


class RemoteListSource:
    """Published sanctions list fetched over HTTP and substring-matched.

    Consolidated lists (UN, EU) are large XML documents; matching the
    lowercased subject name against the lowercased document is crude but
    needs no parser per publisher. The downloaded document is kept for
    ``cache_seconds`` so screening several owners fetches it once.
    """

    def __init__(self, name: str, url: str, client: httpx.AsyncClient, cache_seconds: float = 300.0) -> None:
        self.name = name
        self.url = url
        self.cache_seconds = cache_seconds
        self._client = client
        self._lock = asyncio.Lock()
        self._body: Optional[str] = None
        self._fetched_at = 0.0

    async def _document(self) -> str:
        async with self._lock:
            if self._body is not None and time.monotonic() - self._fetched_at < self.cache_seconds:
                return self._body
            try:
                response = await self._client.get(self.url)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise ExternalSourceError(f"{self.name} list unavailable: {e}", original_error=e) from e
            self._body = response.text.lower()
            self._fetched_at = time.monotonic()
            LOGGER.info(f"Fetched {self.name} sanctions list ({len(self._body)} characters)")
            return self._body

    async def search(self, subject: str, threshold: int) -> Optional[SourceMatch]:
        document = await self._document()
        if subject.strip() and subject.strip().lower() in document:
            return SourceMatch(source=self.name, entry=subject.strip(), score=100)
        return None


class DnsOverHttpsResolver:
    """MX lookups through a DNS-over-HTTPS JSON endpoint (dns.google style)."""

    def __init__(self, url: str, client: httpx.AsyncClient) -> None:
        self.url = url
        self._client = client

    async def mx_records(self, domain: str) -> List[str]:
        try:
            response = await self._client.get(self.url, params={"name": domain, "type": "MX"})
            response.raise_for_status()
            data = response.json()
            # Type 15 is MX; CNAME chains can precede the answer
            return [
                str(answer["data"])
                for answer in data.get("Answer") or []
                if answer.get("type", 15) == 15
            ]
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalSourceError(f"MX lookup failed for {domain}: {e}", original_error=e) from e
        except (KeyError, TypeError, AttributeError) as e:
            raise ExternalSourceError(f"Malformed MX answer for {domain}: {e!r}", original_error=e) from e


class HttpMediaSearch:
    """News search API returning ``{"results": [{"title", "url"}, ...]}``."""

    def __init__(self, url: str, client: httpx.AsyncClient, name: str = "News search") -> None:
        self.name = name
        self.url = url
        self._client = client

    async def search(self, subject: str, country: Optional[str], limit: int) -> List[MediaHit]:
        params = {"q": subject, "limit": limit}
        if country:
            params["country"] = country
        try:
            response = await self._client.get(self.url, params=params)
            response.raise_for_status()
            data = response.json()
            hits = [
                MediaHit(title=str(item.get("title", "")), url=str(item.get("url", "")))
                for item in data.get("results") or []
            ]
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalSourceError(f"{self.name} unavailable: {e}", original_error=e) from e
        except (KeyError, TypeError, AttributeError) as e:
            raise ExternalSourceError(f"{self.name} returned a malformed body: {e!r}", original_error=e) from e
        return hits[:limit]


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------


@dataclass
class ScreeningSources:
    """Every external source the default check set consults."""

    sanctions: List[SanctionsSource]
    pep: PepRegistry
    registry: EntityRegistry
    mx_resolver: Optional[MxResolver] = None
    media: Optional[MediaSearch] = None
