"""Case emails: the reviewer screening report and the decision notices.

Bodies are rendered from Jinja2 templates in ``templates/`` (a text and an
HTML variant per message). Every public method is a post-commit step: it
renders and sends inside its own error boundary and reports success as a
boolean, so a broken template or a mail outage never undoes a stored
screening or decision.
"""

from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from onboarding.decisions.tokens import DecisionTokenSigner
from onboarding.models import Applicant, DecisionAction, DecisionRecord, ScreeningSummary, utcnow
from onboarding.notify.notifier import Notifier
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

DECISION_TEMPLATES = {
    DecisionAction.APPROVE: ("decision_approved", "Account Validated - {name}"),
    DecisionAction.REQUEST: ("decision_info_requested", "Additional Information Required - {name}"),
    DecisionAction.REJECT: ("decision_rejected", "Account Application Update - {name}"),
}


class CaseMailer:
    """Renders and sends the emails of the onboarding workflow."""

    def __init__(
        self,
        notifier: Notifier,
        signer: DecisionTokenSigner,
        admin_email: str,
        public_base_url: str,
        templates_dir: Path = TEMPLATES_DIR,
    ) -> None:
        self.notifier = notifier
        self.signer = signer
        self.admin_email = admin_email
        self.public_base_url = public_base_url.rstrip("/")
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def decision_links(self, case_id: str) -> Dict[str, str]:
        """One signed, single-use link per decision action."""
        links = {}
        for action in DecisionAction:
            query = urlencode({"caseId": case_id, "action": action.value, "token": self.signer.issue(case_id, action)})
            links[action.value] = f"{self.public_base_url}/api/decide?{query}"
        return links

    def render(self, template: str, context: Dict[str, Any]) -> tuple[str, Optional[str]]:
        """Render ``<template>.txt`` and, if present, ``<template>.html``."""
        text = self.env.get_template(f"{template}.txt").render(**context)
        html = None
        if f"{template}.html" in self.env.list_templates():
            html = self.env.get_template(f"{template}.html").render(**context)
        return text, html

    async def _deliver(self, recipient: str, subject: str, template: str, context: Dict[str, Any]) -> bool:
        try:
            text, html = self.render(template, context)
            return await self.notifier.send(recipient, subject, text, html)
        except Exception as e:
            LOGGER.error(f"Failed to send '{template}' email to {recipient}: {e}", exc_info=True)
            return False

    async def send_screening_report(self, applicant: Applicant, summary: ScreeningSummary) -> bool:
        """Send the reviewer the screening report with decision links."""
        subject = (
            f"KYC Screening Report: {summary.client_name} "
            f"[{summary.overall_status.value}] - {len(summary.documents)} documents"
        )
        context = {
            "summary": summary,
            "applicant": applicant,
            "links": self.decision_links(summary.case_id),
            "ttl_hours": self.signer.ttl_seconds // 3600,
            "generated_at": utcnow().isoformat(),
        }
        return await self._deliver(self.admin_email, subject, "screening_report", context)

    async def send_decision(
        self,
        applicant: Applicant,
        record: DecisionRecord,
        summary: Optional[ScreeningSummary] = None,
    ) -> bool:
        """Tell the client about the decision. Returns whether it was delivered."""
        template, subject = DECISION_TEMPLATES[record.action]
        context = {
            "applicant": applicant,
            "record": record,
            "rfis": list(summary.rfis) + list(summary.missing_info) if summary else [],
        }
        return await self._deliver(
            applicant.email, subject.format(name=applicant.full_legal_name), template, context
        )

    async def send_admin_decision_notice(self, applicant: Applicant, record: DecisionRecord, notified_client: bool) -> bool:
        subject = f"Decision Made: {record.action.value.upper()} - {applicant.full_legal_name} ({record.case_id})"
        context = {"applicant": applicant, "record": record, "notified_client": notified_client}
        return await self._deliver(self.admin_email, subject, "admin_decision", context)
