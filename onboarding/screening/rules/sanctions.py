"""Sanctions screening check.

Queries every configured sanctions source (the locally maintained
consolidated list plus any published lists fetched over HTTP) for the
applicant's name. A match from any single source is decisive: the check is
RED regardless of what the other sources say.

An unreachable source does not block onboarding. With ``fail_open`` the
check stays GREEN when no reachable source matched, and the failed sources
are listed in the evidence so reviewers can see the coverage gap.
"""

import asyncio
from typing import Sequence

from onboarding.models import CheckResult, Severity, utcnow
from onboarding.screening.sources import SanctionsSource, SourceMatch
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)

CHECK_NAME = "Sanctions Screening"


async def find_sanctions_matches(
    name: str,
    sources: Sequence[SanctionsSource],
    threshold: int,
) -> tuple[list[SourceMatch], list[str]]:
    """Query all sources concurrently.

    Returns the matches found and the names of sources that failed.
    """
    outcomes = await asyncio.gather(
        *(source.search(name, threshold) for source in sources),
        return_exceptions=True,
    )

    matches: list[SourceMatch] = []
    failed: list[str] = []
    for source, outcome in zip(sources, outcomes):
        if isinstance(outcome, BaseException):
            LOGGER.warning(f"Sanctions source '{source.name}' failed: {outcome}")
            failed.append(source.name)
        elif outcome is not None:
            matches.append(outcome)
    return matches, failed


async def check_sanctions(
    name: str,
    sources: Sequence[SanctionsSource],
    threshold: int = 85,
    fail_open: bool = True,
    check_name: str = CHECK_NAME,
) -> CheckResult:
    """Screen a name against every sanctions source."""
    matches, failed = await find_sanctions_matches(name, sources, threshold)
    timestamp = utcnow().isoformat()

    if matches:
        best = max(matches, key=lambda m: m.score)
        return CheckResult(
            check=check_name,
            severity=Severity.RED,
            reason=(
                f"Match found in {best.source} sanctions list: "
                f"'{best.entry}' (similarity: {best.score}%)"
            ),
            evidence={
                "source": best.source,
                "match": best.entry,
                "subject": name,
                "matches": [
                    {"source": m.source, "entry": m.entry, "score": m.score} for m in matches
                ],
                "timestamp": timestamp,
            },
        )

    queried = [source.name for source in sources]
    evidence = {"sources": queried, "failedSources": failed, "timestamp": timestamp}

    if failed and not fail_open:
        return CheckResult(
            check=check_name,
            severity=Severity.AMBER,
            reason=f"Sanctions source unreachable: {', '.join(failed)}",
            evidence=evidence,
        )

    reachable = [s for s in queried if s not in failed]
    reason = _clear_reason(reachable, failed)
    return CheckResult(check=check_name, severity=Severity.GREEN, reason=reason, evidence=evidence)


def _clear_reason(reachable: list[str], failed: list[str]) -> str:
    if not reachable and not failed:
        return "No sanctions sources configured; no matches recorded"
    reason = f"No matches found in {', '.join(reachable) or 'any reachable'} sanctions lists"
    if failed:
        reason += f" ({', '.join(failed)} unavailable)"
    return reason

