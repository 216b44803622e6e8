"""Tax identification number format check.

A shallow heuristic, not a registry validation: a TIN that is absent or
shorter than the minimum length after removing whitespace is RED.
"""

import re
from typing import Optional

from onboarding.models import CheckResult, Severity, utcnow

CHECK_NAME = "Tax ID Validation"


def check_tax_id(
    tin: Optional[str],
    country: Optional[str],
    min_length: int = 5,
) -> CheckResult:
    """Check that a TIN is present and long enough to be plausible."""
    compact = re.sub(r"\s+", "", tin or "")
    evidence = {"tin": tin, "country": country, "timestamp": utcnow().isoformat()}

    if len(compact) < min_length:
        return CheckResult(
            check=CHECK_NAME,
            severity=Severity.RED,
            reason="Invalid TIN format" if compact else "No TIN provided",
            evidence=evidence,
        )

    return CheckResult(
        check=CHECK_NAME,
        severity=Severity.GREEN,
        reason="TIN format appears valid",
        evidence=evidence,
    )
