"""Shared fixtures for the test suite."""

from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from onboarding.config import Settings
from onboarding.decisions.processor import DecisionProcessor
from onboarding.decisions.tokens import DecisionTokenSigner
from onboarding.errors import ExternalSourceError
from onboarding.main import create_app
from onboarding.models import (
    CheckResult,
    EntityApplicant,
    IndividualApplicant,
    ScreeningConfig,
    Severity,
)
from onboarding.notify.mailer import CaseMailer
from onboarding.screening.engine import ALL_CATEGORIES, ENTITY_ONLY, Check, ScreeningEngine, default_checks
from onboarding.screening.sources import (
    CountryPepRegistry,
    MediaHit,
    NameListSource,
    ScreeningSources,
    StaticEntityRegistry,
)
from onboarding.storage.cases import CaseStore
from onboarding.storage.memory import MemoryObjectStore


SANCTIONS_LIST = [
    "Mohammad Ahmad",
    "Viktor Petrov",
    "Ali Hassan",
    "Al-Rashid Trading Company",
    "Golden Phoenix Import Export",
]

PEP_REGISTERS = {
    "FR": ["Emmanuel Macron", "Anne Hidalgo"],
}

ENTITY_REGISTRY = [
    {
        "country": "FR",
        "registrationNumber": "933819963",
        "companyName": "STONEVAL",
        "status": "active",
        "source": "INSEE SIRENE",
    },
    {
        "country": "FR",
        "registrationNumber": "552100554",
        "companyName": "DORMANT SARL",
        "status": "ceased",
        "source": "INSEE SIRENE",
    },
]

TEST_SECRET = "test-decision-token-secret-32-bytes-long"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FailingSanctionsSource:
    def __init__(self, name: str = "Remote") -> None:
        self.name = name

    async def search(self, subject: str, threshold: int):
        raise ExternalSourceError(f"{self.name} list unavailable")


class StaticMxResolver:
    def __init__(self, records: Dict[str, List[str]]) -> None:
        self.records = records

    async def mx_records(self, domain: str) -> List[str]:
        return self.records.get(domain, [])


class StaticMediaSearch:
    name = "Static news"

    def __init__(self, hits: Optional[List[MediaHit]] = None) -> None:
        self.hits = hits or []

    async def search(self, subject: str, country: Optional[str], limit: int) -> List[MediaHit]:
        return self.hits[:limit]


class RecordingNotifier:
    """Collects sent messages; ``fail_for`` recipients report a failed delivery."""

    def __init__(self, fail_for: tuple = ()) -> None:
        self.sent: List[dict] = []
        self.fail_for = set(fail_for)

    async def send(self, recipient: str, subject: str, text: str, html: Optional[str] = None) -> bool:
        if recipient in self.fail_for:
            return False
        self.sent.append({"recipient": recipient, "subject": subject, "text": text, "html": html})
        return True

    def to(self, recipient: str) -> List[dict]:
        return [m for m in self.sent if m["recipient"] == recipient]


class FailingDecisionWrites:
    """Wraps an object store; writes under ``decisions/`` fail while ``failing`` is set."""

    def __init__(self, objects) -> None:
        self.objects = objects
        self.failing = True

    def _check(self, key: str) -> None:
        if self.failing and key.startswith("decisions/"):
            raise OSError("disk full")

    def put_object(self, key: str, content_type: str, body: bytes) -> None:
        self._check(key)
        self.objects.put_object(key, content_type, body)

    def put_object_if_absent(self, key: str, content_type: str, body: bytes) -> bool:
        self._check(key)
        return self.objects.put_object_if_absent(key, content_type, body)

    def get_object(self, key: str) -> bytes:
        return self.objects.get_object(key)

    def list_keys(self, prefix: str) -> List[str]:
        return self.objects.list_keys(prefix)


def stub_check(name: str, severity: Severity = Severity.GREEN, reason: str = "stubbed", applies_to=ALL_CATEGORIES) -> Check:
    async def run(applicant, config) -> CheckResult:
        return CheckResult(check=name, severity=severity, reason=reason)

    return Check(name, run, applies_to)


def green_checks(**overrides) -> List[Check]:
    """The standard check names, all stubbed GREEN unless overridden.

    Overrides map check name to a (severity, reason) pair.
    """
    names = [
        ("Sanctions Screening", ALL_CATEGORIES),
        ("PEP Screening", ALL_CATEGORIES),
        ("Entity Registry", ENTITY_ONLY),
        ("UBO Screening", ENTITY_ONLY),
        ("Tax ID Validation", ALL_CATEGORIES),
        ("Email Domain", ALL_CATEGORIES),
        ("Adverse Media", ALL_CATEGORIES),
    ]
    checks = []
    for name, applies_to in names:
        severity, reason = overrides.get(name, (Severity.GREEN, "stubbed"))
        checks.append(stub_check(name, severity, reason, applies_to))
    return checks


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_individual(**overrides) -> IndividualApplicant:
    data = {
        "case_id": "case-jane",
        "full_legal_name": "Jane Doe",
        "email": "jane@example.com",
        "date_of_birth": "1985-04-12",
        "full_address": "1 Rue de Rivoli, 75001 Paris",
        "tax_residency_country": "FR",
        "tin": "12345",
        "pep_status": "no",
        "nationality": "FR",
    }
    data.update(overrides)
    return IndividualApplicant(**data)


def make_entity(**overrides) -> EntityApplicant:
    data = {
        "case_id": "case-stoneval",
        "full_legal_name": "Stoneval SAS",
        "email": "contact@stoneval.fr",
        "date_of_birth": "2020-06-01",
        "tax_residency_country": "FR",
        "tin": "FR12933819963",
        "registration_number": "933 819 963",
        "ubo_list": "Alice Martin | 1980-01-01 | 50%\nBob Martin | 1982-02-02 | 50%",
        "authorized_signatory_name": "Alice Martin",
        "authorized_signatory_title": "President",
    }
    data.update(overrides)
    return EntityApplicant(**data)


def individual_payload(**overrides) -> dict:
    payload = {
        "caseId": "case-jane",
        "clientType": "individual",
        "fullLegalName": "Jane Doe",
        "email": "jane@example.com",
        "taxResidencyCountry": "FR",
        "tin": "12345",
        "pepStatus": "no",
    }
    payload.update(overrides)
    return payload


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def config():
    return ScreeningConfig()


@pytest.fixture
def sanctions_sources():
    return [NameListSource("Consolidated", SANCTIONS_LIST)]


@pytest.fixture
def pep_registry():
    return CountryPepRegistry(PEP_REGISTERS)


@pytest.fixture
def entity_registry():
    return StaticEntityRegistry(ENTITY_REGISTRY)


@pytest.fixture
def sources(sanctions_sources, pep_registry, entity_registry):
    return ScreeningSources(
        sanctions=sanctions_sources,
        pep=pep_registry,
        registry=entity_registry,
        mx_resolver=StaticMxResolver({"example.com": ["10 mx.example.com."], "stoneval.fr": ["10 mx.stoneval.fr."]}),
        media=StaticMediaSearch(),
    )


@pytest.fixture
def object_store():
    return MemoryObjectStore()


@pytest.fixture
def case_store(object_store):
    return CaseStore(object_store)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def signer():
    return DecisionTokenSigner(TEST_SECRET)


@pytest.fixture
def mailer(notifier, signer):
    return CaseMailer(notifier, signer, "compliance@example.com", "https://onboarding.example.com")


@pytest.fixture
def engine(sources, case_store, config, mailer):
    return ScreeningEngine(
        checks=default_checks(sources),
        case_store=case_store,
        config=config,
        post_commit_hooks=[mailer.send_screening_report],
    )


@pytest.fixture
def processor(case_store, signer, mailer):
    return DecisionProcessor(case_store, signer, mailer)


@pytest.fixture
def client(notifier):
    settings = Settings(
        decision_token_secret=TEST_SECRET,
        storage_backend="memory",
        smtp_host=None,
        mx_resolver_url=None,
        media_search_url=None,
    )
    app = create_app(settings)
    with TestClient(app) as c:
        app.state.mailer.notifier = notifier
        app.state.engine.checks = green_checks()
        app.state.config = app.state.engine.config = ScreeningConfig()
        yield c
