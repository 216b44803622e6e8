"""Tests for the UBO screening check."""

import pytest

from onboarding.models import Severity
from onboarding.screening.rules.ubo import check_ubos
from onboarding.screening.ubo import parse_ubo_list


class TestCheckUbos:
    @pytest.mark.asyncio
    async def test_clean_owners_summing_to_100_green(self, sanctions_sources, pep_registry):
        text = "Alice Martin | 1980-01-01 | 50%\nBob Martin | 1982-02-02 | 50%"
        result = await check_ubos(text, "FR", sanctions_sources, pep_registry)
        assert result.check == "UBO Screening"
        assert result.severity == Severity.GREEN
        assert result.evidence["totalOwnership"] == 100
        assert len(result.evidence["owners"]) == 2

    @pytest.mark.asyncio
    async def test_total_70_amber(self, sanctions_sources, pep_registry):
        text = "Alice Martin | 1980-01-01 | 40%\nBob Martin | 1982-02-02 | 30%"
        result = await check_ubos(text, "FR", sanctions_sources, pep_registry)
        assert result.severity == Severity.AMBER
        assert "70" in result.reason

    @pytest.mark.asyncio
    async def test_total_60_mentions_total(self, sanctions_sources, pep_registry):
        text = "Alice Martin | 1980-01-01 | 60%"
        result = await check_ubos(text, "FR", sanctions_sources, pep_registry)
        assert result.severity == Severity.AMBER
        assert "60%" in result.reason

    @pytest.mark.asyncio
    async def test_within_tolerance_no_sum_finding(self, sanctions_sources, pep_registry):
        text = "Alice Martin | 1980-01-01 | 33.3%\nBob Martin | 1982-02-02 | 33.3%\nCarl Martin | 1984-03-03 | 33.3%"
        result = await check_ubos(text, "FR", sanctions_sources, pep_registry)
        assert result.severity == Severity.GREEN

    @pytest.mark.asyncio
    async def test_no_owners_amber(self, sanctions_sources, pep_registry):
        result = await check_ubos("", "FR", sanctions_sources, pep_registry)
        assert result.severity == Severity.AMBER
        assert result.reason == "No UBO information provided"

    @pytest.mark.asyncio
    async def test_only_malformed_lines_amber(self, sanctions_sources, pep_registry):
        result = await check_ubos("just a name", "FR", sanctions_sources, pep_registry)
        assert result.severity == Severity.AMBER

    @pytest.mark.asyncio
    async def test_sanctioned_owner_red(self, sanctions_sources, pep_registry):
        text = "Viktor Petrov | 1970-05-05 | 60%\nAlice Martin | 1980-01-01 | 40%"
        result = await check_ubos(text, "FR", sanctions_sources, pep_registry)
        assert result.severity == Severity.RED
        assert "Viktor Petrov" in result.reason
        owners = {o["name"]: o for o in result.evidence["owners"]}
        assert owners["Viktor Petrov"]["sanctions"] == "RED"
        assert owners["Alice Martin"]["sanctions"] == "GREEN"

    @pytest.mark.asyncio
    async def test_pep_owner_amber(self, sanctions_sources, pep_registry):
        text = "Anne Hidalgo | 1959-06-19 | 100%"
        result = await check_ubos(text, "FR", sanctions_sources, pep_registry)
        assert result.severity == Severity.AMBER
        assert "Anne Hidalgo" in result.reason

    @pytest.mark.asyncio
    async def test_red_outranks_sum_finding(self, sanctions_sources, pep_registry):
        text = "Ali Hassan | 1975-01-01 | 30%"
        result = await check_ubos(text, "FR", sanctions_sources, pep_registry)
        assert result.severity == Severity.RED
        assert "30%" in result.reason

    @pytest.mark.asyncio
    async def test_pre_parsed_owners(self, sanctions_sources, pep_registry):
        owners = parse_ubo_list("Alice Martin | 1980-01-01 | 100%")
        result = await check_ubos(None, "FR", sanctions_sources, pep_registry, owners=owners)
        assert result.severity == Severity.GREEN

    @pytest.mark.asyncio
    async def test_out_of_range_share_reported(self, sanctions_sources, pep_registry):
        result = await check_ubos("Alice Martin | 1980-01-01 | 150%", "FR", sanctions_sources, pep_registry)
        assert result.severity == Severity.AMBER
        assert "Alice Martin: ownership 150% is outside 0-100%" in result.reason
        assert "UBO ownership totals 150%" in result.reason
        assert result.evidence["owners"][0]["ownershipPercentage"] == 150.0


class RegistryFailingFor:
    """PEP register that raises a non-source error for one owner's name."""

    def __init__(self, registry, failing_name: str, on_supports: bool = False) -> None:
        self.registry = registry
        self.failing_name = failing_name
        self.on_supports = on_supports

    def supports(self, country):
        if self.on_supports:
            raise RuntimeError("register index corrupted")
        return self.registry.supports(country)

    async def search(self, subject, country, threshold):
        if subject == self.failing_name:
            raise RuntimeError("unexpected register response")
        return await self.registry.search(subject, country, threshold)


class TestCheckUbosFailures:
    @pytest.mark.asyncio
    async def test_failed_pep_lookup_keeps_sanctions_red(self, sanctions_sources, pep_registry):
        text = "Viktor Petrov | 1970-05-05 | 50%\nBob Martin | 1982-02-02 | 50%"
        registry = RegistryFailingFor(pep_registry, "Bob Martin")
        result = await check_ubos(text, "FR", sanctions_sources, registry)
        assert result.severity == Severity.RED
        owners = {o["name"]: o for o in result.evidence["owners"]}
        assert owners["Viktor Petrov"]["sanctions"] == "RED"
        assert owners["Bob Martin"]["pep"] == "AMBER"

    @pytest.mark.asyncio
    async def test_raising_owner_check_becomes_amber_finding(self, sanctions_sources, pep_registry):
        text = "Viktor Petrov | 1970-05-05 | 50%\nBob Martin | 1982-02-02 | 50%"
        registry = RegistryFailingFor(pep_registry, "", on_supports=True)
        result = await check_ubos(text, "FR", sanctions_sources, registry)
        assert result.severity == Severity.RED
        assert "Bob Martin: PEP screening could not be completed" in result.reason
        owners = {o["name"]: o for o in result.evidence["owners"]}
        assert owners["Bob Martin"]["pep"] == "AMBER"
        assert owners["Bob Martin"]["sanctions"] == "GREEN"

    @pytest.mark.asyncio
    async def test_raising_owner_check_alone_is_amber(self, sanctions_sources, pep_registry):
        text = "Alice Martin | 1980-01-01 | 100%"
        registry = RegistryFailingFor(pep_registry, "", on_supports=True)
        result = await check_ubos(text, "FR", sanctions_sources, registry)
        assert result.severity == Severity.AMBER
