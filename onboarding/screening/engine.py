"""Core screening orchestrator.

Runs every check that applies to the applicant's category:
  1. Sanctions
  2. PEP
  3. Entity registry   (entities only)
  4. UBO screening     (entities only)
  5. Tax ID format
  6. Email domain
  7. Adverse media

Checks are independent and run concurrently; the engine waits for all of
them before aggregating. Each check is bounded by a timeout and isolated:
a check that times out or raises becomes an AMBER result instead of
aborting the others. The summary is then persisted (replacing any earlier
screening of the case) and post-commit hooks such as the reviewer email run
last, where their failures cannot affect the stored result.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from onboarding.errors import CaseConflict
from onboarding.models import (
    Applicant,
    CaseState,
    CheckResult,
    EntityApplicant,
    ScreeningConfig,
    ScreeningSummary,
    Severity,
    utcnow,
)
from onboarding.screening.rules import adverse_media, email_domain, pep, registry, sanctions, tax_id, ubo
from onboarding.screening.scorer import build_rfis, missing_information, overall_severity
from onboarding.screening.sources import ScreeningSources
from onboarding.status import derive_state
from onboarding.storage.cases import CaseStore
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)

ALL_CATEGORIES = frozenset({"individual", "entity"})
ENTITY_ONLY = frozenset({"entity"})

PostCommitHook = Callable[[Applicant, ScreeningSummary], Awaitable[object]]


@dataclass(frozen=True)
class Check:
    """A named verification check and the client categories it applies to."""

    name: str
    run: Callable[[Applicant, ScreeningConfig], Awaitable[CheckResult]]
    applies_to: frozenset = ALL_CATEGORIES

    def applies(self, applicant: Applicant) -> bool:
        return applicant.client_type in self.applies_to


def default_checks(sources: ScreeningSources) -> list[Check]:
    """The standard check set, wired to the given external sources."""

    async def run_sanctions(applicant: Applicant, config: ScreeningConfig) -> CheckResult:
        return await sanctions.check_sanctions(
            applicant.full_legal_name,
            sources.sanctions,
            threshold=config.fuzzy_match_threshold,
            fail_open=config.sanctions_fail_open,
        )

    async def run_pep(applicant: Applicant, config: ScreeningConfig) -> CheckResult:
        return await pep.check_pep(
            applicant.full_legal_name,
            applicant.tax_residency_country,
            sources.pep,
            threshold=config.fuzzy_match_threshold,
        )

    async def run_registry(applicant: EntityApplicant, config: ScreeningConfig) -> CheckResult:
        return await registry.check_entity_registry(
            applicant.registration_number,
            applicant.tax_residency_country,
            sources.registry,
        )

    async def run_ubo(applicant: EntityApplicant, config: ScreeningConfig) -> CheckResult:
        return await ubo.check_ubos(
            applicant.ubo_list,
            applicant.tax_residency_country,
            sources.sanctions,
            sources.pep,
            threshold=config.fuzzy_match_threshold,
            tolerance=config.ubo_total_tolerance,
            fail_open=config.sanctions_fail_open,
        )

    async def run_tax_id(applicant: Applicant, config: ScreeningConfig) -> CheckResult:
        return tax_id.check_tax_id(
            applicant.tin,
            applicant.tax_residency_country,
            min_length=config.tin_min_length,
        )

    async def run_email(applicant: Applicant, config: ScreeningConfig) -> CheckResult:
        return await email_domain.check_email_domain(applicant.email, sources.mx_resolver)

    async def run_media(applicant: Applicant, config: ScreeningConfig) -> CheckResult:
        return await adverse_media.check_adverse_media(
            applicant.full_legal_name,
            applicant.tax_residency_country,
            sources.media,
            limit=config.media_hit_limit,
        )

    return [
        Check(sanctions.CHECK_NAME, run_sanctions),
        Check(pep.CHECK_NAME, run_pep),
        Check(registry.CHECK_NAME, run_registry, ENTITY_ONLY),
        Check(ubo.CHECK_NAME, run_ubo, ENTITY_ONLY),
        Check(tax_id.CHECK_NAME, run_tax_id),
        Check(email_domain.CHECK_NAME, run_email),
        Check(adverse_media.CHECK_NAME, run_media),
    ]


def _log_abandoned(name: str) -> Callable[[asyncio.Task], None]:
    def callback(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            LOGGER.warning(f"Abandoned check '{name}' failed after timeout: {task.exception()}")

    return callback


class ScreeningEngine:
    """Orchestrates applicant screening through all verification checks."""

    def __init__(
        self,
        checks: Sequence[Check],
        case_store: CaseStore,
        config: ScreeningConfig,
        post_commit_hooks: Sequence[PostCommitHook] = (),
    ) -> None:
        self.checks = list(checks)
        self.case_store = case_store
        self.config = config
        self.post_commit_hooks = list(post_commit_hooks)

    async def run_check(self, check: Check, applicant: Applicant, config: ScreeningConfig) -> CheckResult:
        """Run one check; never raises.

        The check runs as its own task behind a shield, so a timeout stops
        waiting for it without cancelling its external call.
        """
        task = asyncio.ensure_future(check.run(applicant, config))
        timeout = config.check_timeout_seconds
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            task.add_done_callback(_log_abandoned(check.name))
            LOGGER.warning(f"Check '{check.name}' timed out after {timeout}s for case {applicant.case_id}")
            return CheckResult(
                check=check.name,
                severity=Severity.AMBER,
                reason=f"Screening source timed out after {timeout:g}s",
                evidence={"error": "timeout", "timestamp": utcnow().isoformat()},
            )
        except Exception as e:
            LOGGER.error(f"Check '{check.name}' failed for case {applicant.case_id}: {e}", exc_info=True)
            return CheckResult(
                check=check.name,
                severity=Severity.AMBER,
                reason="Screening source unreachable",
                evidence={"error": type(e).__name__, "detail": str(e), "timestamp": utcnow().isoformat()},
            )

    async def evaluate(self, applicant: Applicant) -> ScreeningSummary:
        """Run the applicable checks and build the summary without persisting it."""
        # Snapshot the config so a concurrent PUT /api/config cannot change
        # thresholds halfway through one screening
        config = self.config
        applicable = [check for check in self.checks if check.applies(applicant)]

        results = list(
            await asyncio.gather(*(self.run_check(check, applicant, config) for check in applicable))
        )

        return ScreeningSummary(
            case_id=applicant.case_id,
            client_name=applicant.full_legal_name,
            client_type=applicant.client_type,
            overall_status=overall_severity(results),
            results=results,
            missing_info=missing_information(applicant, config),
            rfis=build_rfis(results),
            documents=list(applicant.documents),
        )

    async def screen(self, applicant: Applicant) -> ScreeningSummary:
        """Screen an applicant, persist the summary, then run post-commit hooks.

        Persistence errors propagate: the stored summary is the system of
        record. Hook errors are logged and swallowed.
        """
        LOGGER.info(f"Starting screening for case {applicant.case_id}, client: {applicant.full_legal_name}")

        summary = await self.evaluate(applicant)
        self.case_store.save_summary(summary)

        LOGGER.info(
            f"Screening completed for case {summary.case_id}, status: {summary.overall_status.value}, "
            f"documents: {len(summary.documents)}"
        )

        for hook in self.post_commit_hooks:
            try:
                await hook(applicant, summary)
            except Exception as e:
                LOGGER.error(f"Post-screening hook failed for case {summary.case_id}: {e}", exc_info=True)

        return summary

    async def submit(self, applicant: Applicant) -> ScreeningSummary:
        """Store an applicant submission and screen it.

        An identical resubmission re-runs screening. A changed record is
        accepted only while the case is waiting on requested information;
        it then becomes the current version and is screened again.

        Raises:
            CaseConflict: If a different record exists and no information
                was requested
        """
        try:
            self.case_store.save_applicant(applicant)
        except CaseConflict:
            case_id = applicant.case_id
            state = derive_state(self.case_store.get_summary(case_id), self.case_store.list_decisions(case_id))
            if state is not CaseState.INFO_REQUESTED:
                raise
            LOGGER.info(f"Accepting updated submission for case {case_id} after information request")
            applicant = self.case_store.replace_applicant(applicant)
        return await self.screen(applicant)

    async def rescreen(self, case_id: str) -> ScreeningSummary:
        """Re-run screening on the stored applicant record."""
        return await self.screen(self.case_store.get_applicant(case_id))

