"""Entity registry check (entity clients only).

Confirms the declared registration number against the company registry of
the tax-residency country. Anything short of a confirmed, active company is
AMBER: an unverifiable entity goes to manual verification, never silently
through.
"""

from typing import Optional

from onboarding.models import CheckResult, Severity, utcnow
from onboarding.screening.sources import EntityRegistry
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)

CHECK_NAME = "Entity Registry"


def _amber(reason: str, **evidence) -> CheckResult:
    evidence["timestamp"] = utcnow().isoformat()
    return CheckResult(check=CHECK_NAME, severity=Severity.AMBER, reason=reason, evidence=evidence)


async def check_entity_registry(
    registration_number: Optional[str],
    country: Optional[str],
    registry: EntityRegistry,
) -> CheckResult:
    """Verify that the registration number belongs to an active company."""
    if not registration_number or not registration_number.strip():
        return _amber("No registration number provided", country=country)

    if not country or not registry.supports(country):
        return _amber(
            "Entity registry check not available for this country",
            registrationNumber=registration_number,
            country=country,
        )

    try:
        record = await registry.lookup(registration_number, country)
    except Exception as e:
        LOGGER.warning(f"Registry lookup failed for {registration_number} ({country}): {e}")
        return _amber(
            "Entity registry unreachable; manual verification required",
            registrationNumber=registration_number,
            country=country,
            error=str(e),
        )

    if record is None:
        return _amber(
            "Entity not found in registry; manual verification required",
            registrationNumber=registration_number,
            country=country,
        )

    company = record.get("companyName", "entity")
    status = str(record.get("status", "")).lower()
    if status != "active":
        return _amber(
            f"{company} is registered but not active (status: {status or 'unknown'})",
            registrationNumber=registration_number,
            country=country,
            record=record,
        )

    return CheckResult(
        check=CHECK_NAME,
        severity=Severity.GREEN,
        reason=f"Entity verified in registry - {company} ({registration_number}) is active",
        evidence={
            "source": record.get("source", "registry"),
            "registrationNumber": registration_number,
            "record": record,
            "timestamp": utcnow().isoformat(),
        },
    )
