"""UBO screening check (entity clients only).

Parses the declared beneficial owners, checks that their ownership adds up
to 100%, then runs every owner through the sanctions and PEP checks. The
check takes the worst outcome: any sanctioned owner makes it RED, any
implausible share, ownership gap or PEP match makes it AMBER.
"""

import asyncio
from typing import Optional, Sequence

from onboarding.models import CheckResult, Severity, UBOEntry, utcnow
from onboarding.screening.rules.pep import check_pep
from onboarding.screening.rules.sanctions import check_sanctions
from onboarding.screening.sources import PepRegistry, SanctionsSource
from onboarding.screening.ubo import parse_ubo_list, total_ownership
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)

CHECK_NAME = "UBO Screening"


def _failed(check: str, owner: UBOEntry, error: BaseException) -> CheckResult:
    LOGGER.warning(f"{check} failed for beneficial owner '{owner.name}': {error}")
    return CheckResult(
        check=check,
        severity=Severity.AMBER,
        reason=f"{check} could not be completed",
        evidence={"error": str(error), "timestamp": utcnow().isoformat()},
    )


async def _screen_owner(
    owner: UBOEntry,
    country: Optional[str],
    sanctions_sources: Sequence[SanctionsSource],
    pep_registry: PepRegistry,
    threshold: int,
    fail_open: bool,
) -> tuple[CheckResult, CheckResult]:
    # One owner's failed lookup must not hide another owner's sanctions hit.
    sanctions, pep = await asyncio.gather(
        check_sanctions(owner.name, sanctions_sources, threshold, fail_open),
        check_pep(owner.name, country, pep_registry, threshold),
        return_exceptions=True,
    )
    if isinstance(sanctions, Exception):
        sanctions = _failed("Sanctions screening", owner, sanctions)
    if isinstance(pep, Exception):
        pep = _failed("PEP screening", owner, pep)
    return sanctions, pep


async def check_ubos(
    ubo_text: Optional[str],
    country: Optional[str],
    sanctions_sources: Sequence[SanctionsSource],
    pep_registry: PepRegistry,
    threshold: int = 85,
    tolerance: float = 0.5,
    fail_open: bool = True,
    owners: Optional[list[UBOEntry]] = None,
) -> CheckResult:
    """Screen the declared beneficial owners of an entity.

    ``owners`` may be passed pre-parsed; otherwise ``ubo_text`` is parsed.
    """
    if owners is None:
        owners = parse_ubo_list(ubo_text)
    timestamp = utcnow().isoformat()

    if not owners:
        return CheckResult(
            check=CHECK_NAME,
            severity=Severity.AMBER,
            reason="No UBO information provided",
            evidence={"owners": [], "timestamp": timestamp},
        )

    findings: list[tuple[Severity, str]] = []

    for owner in owners:
        if not 0 <= owner.ownership_percentage <= 100:
            findings.append(
                (Severity.AMBER, f"{owner.name}: ownership {owner.ownership_percentage:g}% is outside 0-100%")
            )

    total = total_ownership(owners)
    if abs(total - 100) > tolerance:
        findings.append((Severity.AMBER, f"UBO ownership totals {total:g}% (expected 100%)"))

    screenings = await asyncio.gather(
        *(
            _screen_owner(owner, country, sanctions_sources, pep_registry, threshold, fail_open)
            for owner in owners
        )
    )

    owner_evidence = []
    for owner, (sanctions, pep) in zip(owners, screenings):
        for result in (sanctions, pep):
            if result.severity is not Severity.GREEN:
                findings.append((result.severity, f"{owner.name}: {result.reason}"))
        owner_evidence.append(
            {
                "name": owner.name,
                "dateOfBirth": owner.date_of_birth,
                "ownershipPercentage": owner.ownership_percentage,
                "sanctions": sanctions.severity.value,
                "pep": pep.severity.value,
            }
        )

    evidence = {"owners": owner_evidence, "totalOwnership": total, "timestamp": timestamp}

    if not findings:
        return CheckResult(
            check=CHECK_NAME,
            severity=Severity.GREEN,
            reason=f"{len(owners)} beneficial owner(s) screened with no findings",
            evidence=evidence,
        )

    severity = max(s for s, _ in findings)
    return CheckResult(
        check=CHECK_NAME,
        severity=severity,
        reason="; ".join(reason for _, reason in findings),
        evidence=evidence,
    )
