"""Email domain check.

A malformed address is RED. A well-formed address is GREEN only when its
domain publishes an MX record; when the lookup is inconclusive the check is
AMBER so a reviewer confirms the contact channel.
"""

import re
from typing import Optional

from onboarding.models import CheckResult, Severity, utcnow
from onboarding.screening.sources import MxResolver
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)

CHECK_NAME = "Email Domain"

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@([^@\s]+\.[^@\s.]+)$")


async def check_email_domain(email: Optional[str], resolver: Optional[MxResolver]) -> CheckResult:
    """Validate the address format and the domain's mail exchange."""
    timestamp = utcnow().isoformat()
    match = _EMAIL_PATTERN.match((email or "").strip())
    if match is None:
        return CheckResult(
            check=CHECK_NAME,
            severity=Severity.RED,
            reason="Invalid email format",
            evidence={"email": email, "timestamp": timestamp},
        )

    domain = match.group(1).lower()
    if resolver is None:
        return CheckResult(
            check=CHECK_NAME,
            severity=Severity.AMBER,
            reason="Could not verify domain MX record (no resolver configured)",
            evidence={"domain": domain, "timestamp": timestamp},
        )

    try:
        records = await resolver.mx_records(domain)
    except Exception as e:
        LOGGER.warning(f"MX lookup failed for {domain}: {e}")
        records = []

    if records:
        return CheckResult(
            check=CHECK_NAME,
            severity=Severity.GREEN,
            reason="Domain has valid MX record",
            evidence={"domain": domain, "mx": records[0], "timestamp": timestamp},
        )

    return CheckResult(
        check=CHECK_NAME,
        severity=Severity.AMBER,
        reason="Could not verify domain MX record",
        evidence={"domain": domain, "timestamp": timestamp},
    )
