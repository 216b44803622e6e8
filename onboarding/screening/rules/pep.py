"""Politically-exposed-person screening check.

Looks the applicant up in the official register for their tax-residency
country. A PEP is not barred from onboarding, so a match is AMBER (enhanced
due diligence) rather than RED. Countries without a register are GREEN: the
check cannot find anything it has no list for.

The applicant's self-declared PEP status only drives the missing-information
rules; it never changes this check's severity.
"""

from typing import Optional

from onboarding.models import CheckResult, Severity, utcnow
from onboarding.screening.sources import PepRegistry
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)

CHECK_NAME = "PEP Screening"


async def check_pep(
    name: str,
    country: Optional[str],
    registry: PepRegistry,
    threshold: int = 85,
    check_name: str = CHECK_NAME,
) -> CheckResult:
    """Screen a name against the PEP register of the given country."""
    timestamp = utcnow().isoformat()

    if not country or not registry.supports(country):
        return CheckResult(
            check=check_name,
            severity=Severity.GREEN,
            reason=f"No PEP register available for {country or 'unspecified country'}; no match recorded",
            evidence={"country": country, "timestamp": timestamp},
        )

    try:
        match = await registry.search(name, country, threshold)
    except Exception as e:
        LOGGER.warning(f"PEP register lookup failed for {country}: {e}")
        return CheckResult(
            check=check_name,
            severity=Severity.AMBER,
            reason="PEP register unreachable",
            evidence={"country": country, "error": str(e), "timestamp": timestamp},
        )

    if match is not None:
        return CheckResult(
            check=check_name,
            severity=Severity.AMBER,
            reason=(
                f"Possible PEP match '{match.entry}' in {match.source} "
                f"(similarity: {match.score}%)"
            ),
            evidence={
                "source": match.source,
                "match": match.entry,
                "subject": name,
                "score": match.score,
                "timestamp": timestamp,
            },
        )

    return CheckResult(
        check=check_name,
        severity=Severity.GREEN,
        reason=f"No PEP matches found in the {country} register",
        evidence={"country": country, "timestamp": timestamp},
    )
