"""Decision processor: turns a reviewer's link click into a recorded decision.

Validation happens before any write: parameters, action, token signature and
binding, then the applicant record. Only then is the decision written, keyed by
the token id, so the write itself consumes the link and a failed write leaves
it usable. Client and admin emails follow as post-commit steps; a delivery
failure is logged and reported in the outcome but never undoes the
recorded decision.
"""

from typing import Optional

from onboarding.decisions.tokens import DecisionTokenSigner
from onboarding.errors import ClientEmailMissing, InvalidAction, TokenAlreadyUsed, ValidationError
from onboarding.models import (
    TERMINAL_STATES,
    DecisionAction,
    DecisionOutcome,
    DecisionRecord,
)
from onboarding.notify.mailer import CaseMailer
from onboarding.status import derive_state
from onboarding.storage.cases import CaseStore
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)


def parse_action(action: str) -> DecisionAction:
    try:
        return DecisionAction(action.strip().lower())
    except ValueError:
        raise InvalidAction(
            f"Invalid action '{action}'. Must be one of: approve, request, reject"
        ) from None


class DecisionProcessor:
    """Records approve / request-info / reject decisions and notifies the client."""

    def __init__(self, case_store: CaseStore, signer: DecisionTokenSigner, mailer: CaseMailer) -> None:
        self.case_store = case_store
        self.signer = signer
        self.mailer = mailer

    async def decide(
        self,
        case_id: Optional[str],
        action: Optional[str],
        token: Optional[str],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> DecisionOutcome:
        """Validate, record and announce one decision.

        Raises:
            ValidationError: If a parameter is missing or the action is unknown
            InvalidToken: If the token is forged, expired or bound elsewhere
            TokenAlreadyUsed: If the token was already consumed
            CaseNotFound: If no applicant record exists for the case
            ClientEmailMissing: If the applicant has no contact email
        """
        if not case_id or not action or not token:
            raise ValidationError("Missing required parameters: caseId, action, token")

        decision = parse_action(action)
        claims = self.signer.verify(token, case_id, decision)

        applicant = self.case_store.get_applicant(case_id)
        if not applicant.email:
            raise ClientEmailMissing(f"Client email not found for case {case_id}")

        summary = self.case_store.get_summary(case_id)
        decisions = self.case_store.list_decisions(case_id)
        prior_state = derive_state(summary, decisions)

        record = DecisionRecord(
            case_id=case_id,
            action=decision,
            token=token,
            token_id=claims["jti"],
            ip_address=ip_address,
            user_agent=user_agent,
        )
        if not self.case_store.append_decision(record):
            LOGGER.warning(f"Reused decision token {claims['jti']} for case {case_id}")
            raise TokenAlreadyUsed("This decision link has already been used")
        status = derive_state(summary, decisions + [record])

        notified = False
        if prior_state in TERMINAL_STATES:
            LOGGER.warning(
                f"Case {case_id} is already {prior_state.value}; "
                f"{decision.value} recorded without notifying the client"
            )
        else:
            notified = await self.mailer.send_decision(applicant, record, summary)
            if not notified:
                LOGGER.error(f"Client notification failed for case {case_id}, decision {decision.value}")

        await self.mailer.send_admin_decision_notice(applicant, record, notified)

        LOGGER.info(f"Decision {decision.value} processed for case {case_id}, status now {status.value}")
        return DecisionOutcome(
            case_id=case_id,
            action=decision,
            client_email=applicant.email,
            notified=notified,
            status=status,
        )
