"""Unit coverage for the rule-driven payroll calculator."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

import pytest

from crossledger.backend.app.models import MAX_AMOUNT
from crossledger.backend.app.services.calculators import (
    CalculationStatus,
    calculate_payroll,
)
from crossledger.backend.app.services.calculators.payroll import PAYROLL_EVALUATORS
from crossledger.backend.config.rule_config import (
    ConfigurationError,
    RuleType,
    TaxRule,
)

NL_PLAN = (
    RuleType.THIRTY_PERCENT_RULING,
    RuleType.WAGE_TAX,
    RuleType.SOCIAL_SECURITY,
)


def make_rule(rule_id: str, rule_type: RuleType, details: dict[str, Any]) -> TaxRule:
    return TaxRule.model_validate(
        {
            "id": rule_id,
            "jurisdiction": "NL",
            "type": rule_type.value,
            "valid_from": date(2025, 1, 1),
            "details": details,
        }
    )


WAGE_TAX = make_rule(
    "wage",
    RuleType.WAGE_TAX,
    {
        "brackets": [
            {"threshold": 0, "rate": "0.3710"},
            {"threshold": 7551800, "rate": "0.4950"},
        ]
    },
)
SOCIAL_SECURITY = make_rule(
    "social",
    RuleType.SOCIAL_SECURITY,
    {"employeeRate": "0.12", "employerRate": "0.20", "maxIncome": 75864},
)
RULING = make_rule(
    "ruling", RuleType.THIRTY_PERCENT_RULING, {"taxFreePercentage": "0.30"}
)
NL_RULES = {
    RuleType.WAGE_TAX: WAGE_TAX,
    RuleType.SOCIAL_SECURITY: SOCIAL_SECURITY,
    RuleType.THIRTY_PERCENT_RULING: RULING,
}


def calculate_nl(gross: int, ruling: bool, rules=NL_RULES):
    return calculate_payroll(
        gross,
        jurisdiction="NL",
        thirty_percent_ruling=ruling,
        active_rules=rules,
        plan=NL_PLAN,
    )


def test_reference_salary_without_ruling() -> None:
    result = calculate_nl(500000, ruling=False)

    assert result.wage_tax == 185500
    assert result.social_security == 160000
    assert result.net_salary == 154500
    assert result.taxable_income == 500000
    assert result.tax_free_allowance == 0
    assert result.status is CalculationStatus.COMPUTED
    assert result.applied_rules == ("wage", "social")
    assert result.missing_rules == ()


def test_reference_salary_with_ruling() -> None:
    result = calculate_nl(500000, ruling=True)

    assert result.tax_free_allowance == 150000
    assert result.taxable_income == 350000
    assert result.wage_tax == 129850
    # social security stays on gross pay
    assert result.social_security == 160000
    assert result.social_security_base == 500000
    assert result.net_salary == 210150
    assert result.applied_rules == ("ruling", "wage", "social")


def test_salary_on_bracket_threshold_adds_nothing_from_upper_bracket() -> None:
    result = calculate_nl(7551800, ruling=False)

    lower, upper = result.wage_tax_slices
    assert lower.amount == 7551800
    assert upper.amount == 0
    assert upper.tax == 0
    assert result.wage_tax == lower.tax


def test_salary_above_threshold_spans_both_brackets_and_caps_contributions() -> None:
    result = calculate_nl(8000000, ruling=False)

    lower, upper = result.wage_tax_slices
    assert (lower.amount, lower.tax) == (7551800, 2801718)
    assert (upper.amount, upper.tax) == (448200, 221859)
    assert upper.upper is None
    assert result.wage_tax == 3023577
    assert result.social_security_base == 7586400
    assert result.social_security == 2427648
    assert result.net_salary == 8000000 - 3023577 - 2427648


@pytest.mark.parametrize("gross", [0, 1, 500000, 12345678])
@pytest.mark.parametrize("ruling", [True, False])
def test_jurisdiction_without_payroll_plan_withholds_nothing(gross: int, ruling: bool) -> None:
    result = calculate_payroll(
        gross,
        jurisdiction="UK",
        thirty_percent_ruling=ruling,
        active_rules=NL_RULES,
        plan=(),
    )

    assert result.wage_tax == 0
    assert result.social_security == 0
    assert result.net_salary == gross
    assert result.status is CalculationStatus.NO_WITHHOLDING


def test_ruling_flag_outside_plan_is_reported() -> None:
    result = calculate_payroll(
        500000,
        jurisdiction="UK",
        thirty_percent_ruling=True,
        active_rules={},
        plan=(),
    )

    assert [notice.code for notice in result.notices] == ["ruling_not_applicable"]
    assert result.taxable_income == 500000


@pytest.mark.parametrize("gross", [100, 250000, 500000, 9000000])
def test_ruling_lowers_wage_tax_and_raises_net(gross: int) -> None:
    without = calculate_nl(gross, ruling=False)
    with_ruling = calculate_nl(gross, ruling=True)

    assert with_ruling.wage_tax < without.wage_tax
    assert with_ruling.net_salary > without.net_salary
    assert with_ruling.social_security == without.social_security


def test_missing_wage_tax_rule_is_partial() -> None:
    rules = {RuleType.SOCIAL_SECURITY: SOCIAL_SECURITY}

    result = calculate_nl(500000, ruling=False, rules=rules)

    assert result.wage_tax == 0
    assert result.social_security == 160000
    assert result.missing_rules == (RuleType.WAGE_TAX,)
    assert result.status is CalculationStatus.PARTIAL_RULES
    assert any(
        notice.code == "missing_rule" and notice.rule_type is RuleType.WAGE_TAX
        for notice in result.notices
    )


def test_missing_rules_are_not_reported_as_computed(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING"):
        result = calculate_nl(500000, ruling=True, rules={})

    assert result.status is CalculationStatus.NO_APPLICABLE_RULES
    assert result.missing_rules == (RuleType.WAGE_TAX, RuleType.SOCIAL_SECURITY)
    assert result.net_salary == 500000
    # the statutory percentage still applies without a published ruling rule
    assert result.tax_free_allowance == 150000
    codes = [notice.code for notice in result.notices]
    assert "ruling_default_percentage" in codes
    assert "computed without rules" in caplog.text


def test_ruling_percentage_comes_from_the_active_rule() -> None:
    custom = make_rule(
        "ruling-27", RuleType.THIRTY_PERCENT_RULING, {"taxFreePercentage": 0.27}
    )
    rules = {**NL_RULES, RuleType.THIRTY_PERCENT_RULING: custom}

    result = calculate_nl(500000, ruling=True, rules=rules)

    assert result.tax_free_allowance == 135000
    assert result.taxable_income == 365000


def test_tax_free_allowance_rounds_half_up() -> None:
    result = calculate_nl(5, ruling=True)

    assert result.tax_free_allowance == 2
    assert result.taxable_income == 3


def test_uncapped_social_security_uses_full_gross() -> None:
    uncapped = make_rule(
        "social-uncapped",
        RuleType.SOCIAL_SECURITY,
        {"employeeRate": 0.1, "employerRate": 0.1},
    )
    rules = {**NL_RULES, RuleType.SOCIAL_SECURITY: uncapped}

    result = calculate_nl(50000000, ruling=False, rules=rules)

    assert result.social_security_base == 50000000
    assert result.social_security == 10000000


@pytest.mark.parametrize("gross", [-1, 12.5, True, "500000", None, MAX_AMOUNT + 1, 10**30])
def test_invalid_gross_salary_is_rejected(gross: Any) -> None:
    with pytest.raises(ValueError):
        calculate_nl(gross, ruling=False)


def test_largest_accepted_gross_salary_is_computed() -> None:
    breakdown = calculate_nl(MAX_AMOUNT, ruling=True)

    assert breakdown.gross_salary == MAX_AMOUNT
    assert breakdown.social_security_base == 7586400
    assert 0 < breakdown.net_salary < MAX_AMOUNT


@pytest.mark.parametrize(
    "brackets",
    [
        [],
        [{"threshold": 100, "rate": 0.1}],
        [{"threshold": 0, "rate": 0.1}, {"threshold": 0, "rate": 0.2}],
        [{"threshold": 0, "rate": 0.3}, {"threshold": 5000, "rate": 0.2}, {"threshold": 4000, "rate": 0.4}],
        [{"threshold": 0, "rate": 1.2}],
    ],
)
def test_malformed_brackets_raise_configuration_error(brackets: list[dict[str, Any]]) -> None:
    broken = make_rule("broken", RuleType.WAGE_TAX, {"brackets": brackets})
    rules = {**NL_RULES, RuleType.WAGE_TAX: broken}

    with pytest.raises(ConfigurationError):
        calculate_nl(500000, ruling=False, rules=rules)


def test_plan_without_registered_evaluator_is_a_configuration_error() -> None:
    assert RuleType.VAT not in PAYROLL_EVALUATORS

    with pytest.raises(ConfigurationError):
        calculate_payroll(
            500000,
            jurisdiction="NL",
            thirty_percent_ruling=False,
            active_rules=NL_RULES,
            plan=(RuleType.VAT,),
        )


def test_breakdown_serialises_slices_and_status() -> None:
    payload = calculate_nl(500000, ruling=True).as_dict()

    assert payload["status"] == "computed"
    assert payload["wage_tax_slices"][0]["rate"] == str(Decimal("0.3710"))
    assert payload["wage_tax_slices"][0]["rate_label"] == "37.1%"
    assert payload["wage_tax_slices"][1]["upper"] is None
    assert payload["missing_rules"] == []
