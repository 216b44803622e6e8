"""Verdict aggregation, RFI and missing-information rules.

The verdict is DETERMINISTIC and uses strict precedence:
  - any RED check   -> RED   (blocking)
  - else any AMBER  -> AMBER (manual review / clarification)
  - else            -> GREEN
No averaging or weighting: a single RED always blocks, a single AMBER always
flags the case for review.
"""

from collections.abc import Iterable

from onboarding.models import Applicant, CheckResult, EntityApplicant, ScreeningConfig, Severity

# Document categories the missing-information rules know how to describe
DOCUMENT_LABELS = {
    "identity_document": "Identity document",
    "proof_of_address": "Proof of address document",
    "tax_documentation": "Tax documentation (CRS/FATCA form)",
    "source_of_funds": "Source of funds document",
    "pep_documentation": "PEP documentation",
    "registration_extract": "Company registration extract",
}


def overall_severity(results: Iterable[CheckResult]) -> Severity:
    """Worst severity across all results; GREEN when there are none."""
    return max((r.severity for r in results), default=Severity.GREEN)


def build_rfis(results: Iterable[CheckResult]) -> list[str]:
    """One request for information per AMBER result.

    RED results are blocking, not clarifiable, so they produce no RFI.
    """
    return [f"{r.check}: {r.reason}" for r in results if r.severity is Severity.AMBER]


def missing_information(applicant: Applicant, config: ScreeningConfig) -> list[str]:
    """Static completeness rules, independent of the check results.

    These only inform reviewers; they never change the verdict.
    """
    missing: list[str] = []

    provided = {doc.category for doc in applicant.documents}
    for category in config.required_documents:
        if category not in provided:
            missing.append(DOCUMENT_LABELS.get(category, category.replace("_", " ").capitalize()))

    if applicant.pep_status == "yes" and not (applicant.pep_details or "").strip():
        missing.append("PEP role and country details")

    if isinstance(applicant, EntityApplicant) and not (applicant.authorized_signatory_name or "").strip():
        missing.append("Authorized signatory name")

    return missing
