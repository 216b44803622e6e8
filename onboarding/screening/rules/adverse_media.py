"""Adverse media check.

Best-effort news search on the applicant's name. Any completed search is
GREEN; hits are listed in the evidence for the reviewer to read rather than
scored, since a name search cannot tell a namesake from the applicant. A
search that cannot run is AMBER.
"""

from typing import Optional

from onboarding.models import CheckResult, Severity, utcnow
from onboarding.screening.sources import MediaSearch
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)

CHECK_NAME = "Adverse Media"


async def check_adverse_media(
    name: str,
    country: Optional[str],
    search: Optional[MediaSearch],
    limit: int = 5,
) -> CheckResult:
    """Run the media search and record what it found."""
    timestamp = utcnow().isoformat()
    search_terms = [term for term in (name, country) if term]

    if search is None:
        return CheckResult(
            check=CHECK_NAME,
            severity=Severity.AMBER,
            reason="Adverse media search not configured; manual search required",
            evidence={"searchTerms": search_terms, "timestamp": timestamp},
        )

    try:
        hits = await search.search(name, country, limit)
    except Exception as e:
        LOGGER.warning(f"Adverse media search failed for '{name}': {e}")
        return CheckResult(
            check=CHECK_NAME,
            severity=Severity.AMBER,
            reason="Adverse media check failed due to technical error",
            evidence={"searchTerms": search_terms, "error": str(e), "timestamp": timestamp},
        )

    if hits:
        reason = f"{len(hits)} media result(s) found for reviewer reference"
    else:
        reason = "No adverse media found in public sources"

    return CheckResult(
        check=CHECK_NAME,
        severity=Severity.GREEN,
        reason=reason,
        evidence={
            "searchTerms": search_terms,
            "source": search.name,
            "hits": [{"title": h.title, "url": h.url} for h in hits],
            "timestamp": timestamp,
        },
    )
