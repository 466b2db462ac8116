"""Tests for payroll rule administration."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payout_engine.errors import NotFoundError, ValidationError
from payout_engine.services import PayrollRuleService
from payout_engine.services.rule_service import DEFAULT_RULES, validate_rule_fields
from payout_engine.types import RateType


class TestValidateRuleFields:
    def test_valid_rule(self):
        errors = validate_rule_fields(
            {"name": "Dev", "role": "developer", "rate_type": "hourly", "amount": "75"}
        )

        assert errors == []

    def test_requires_a_target(self):
        errors = validate_rule_fields({"name": "Nobody", "rate_type": "salary", "amount": 1})

        assert any("At least one target" in e for e in errors)

    def test_rejects_percentage_over_100(self):
        errors = validate_rule_fields(
            {"name": "Too much", "role": "x", "rate_type": "percentage", "amount": "150"}
        )

        assert "Percentage rules must be between 0 and 100" in errors

    def test_rejects_unknown_rate_type_and_bad_amount(self):
        errors = validate_rule_fields(
            {"name": "Bad", "role": "x", "rate_type": "weekly", "amount": "abc"}
        )

        assert "Invalid rate type: 'weekly'" in errors
        assert "Amount must be a number" in errors

    def test_rejects_inverted_dates(self):
        errors = validate_rule_fields(
            {
                "name": "Window",
                "role": "x",
                "rate_type": "salary",
                "amount": 1,
                "effective_date": date(2024, 6, 1),
                "expiration_date": date(2024, 5, 1),
            }
        )

        assert "Expiration date must be on or after the effective date" in errors


class TestPayrollRuleService:
    """Test rule CRUD."""

    @pytest.mark.asyncio
    async def test_create_rule(self, session):
        rules = PayrollRuleService(session)

        rule = await rules.create_rule(
            name="Agent share",
            agent_id=uuid4(),
            rate_type=RateType.PERCENTAGE,
            amount="15",
        )

        assert rule.id is not None
        assert rule.rate_type == "percentage"
        assert rule.is_percentage is True
        assert rule.amount == Decimal("15")
        assert rule.is_active is True
        assert rule.effective_date == date.today()

    @pytest.mark.asyncio
    async def test_blank_targets_count_as_unset(self, session):
        rules = PayrollRuleService(session)

        with pytest.raises(ValidationError):
            await rules.create_rule(
                name="Blank", role="  ", department="", rate_type="salary", amount=100
            )

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, session):
        rules = PayrollRuleService(session)

        with pytest.raises(ValidationError):
            await rules.create_rule(name="x", role="y", rate_type="salary", amount=1, bonus=5)

    @pytest.mark.asyncio
    async def test_update_validates_merged_rule(self, session, make_rule):
        rule = await make_rule(role="developer", rate_type="hourly", is_percentage=False,
                               amount=Decimal("150"))
        rules = PayrollRuleService(session)

        with pytest.raises(ValidationError):
            await rules.update_rule(rule.id, rate_type="percentage")

        updated = await rules.update_rule(rule.id, amount=Decimal("80"), priority=3)
        assert updated.amount == Decimal("80")
        assert updated.priority == 3

    @pytest.mark.asyncio
    async def test_update_cannot_remove_last_target(self, session, make_rule):
        rule = await make_rule(role="developer")
        rules = PayrollRuleService(session)

        with pytest.raises(ValidationError):
            await rules.update_rule(rule.id, role=None)

    @pytest.mark.asyncio
    async def test_delete_rule(self, session, make_rule):
        rule = await make_rule(role="developer")
        rules = PayrollRuleService(session)

        await rules.delete_rule(rule.id)

        with pytest.raises(NotFoundError):
            await rules.get_rule(rule.id)

    @pytest.mark.asyncio
    async def test_list_rules_active_only(self, session, make_rule):
        active = await make_rule(role="a", priority=1)
        await make_rule(role="b", is_active=False)
        rules = PayrollRuleService(session)

        assert [r.id for r in await rules.list_rules(active_only=True)] == [active.id]
        assert len(await rules.list_rules()) == 2

    @pytest.mark.asyncio
    async def test_seed_default_rules_is_repeatable(self, session):
        rules = PayrollRuleService(session)

        created = await rules.seed_default_rules()
        again = await rules.seed_default_rules()

        assert len(created) == len(DEFAULT_RULES)
        assert again == []
        roles = {rule.role for rule in await rules.list_rules()}
        assert roles == {
            "service_agent",
            "content_creator",
            "developer",
            "designer",
            "marketing_specialist",
        }
