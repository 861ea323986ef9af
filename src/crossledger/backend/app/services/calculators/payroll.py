"""Payroll withholding calculator driven by versioned jurisdiction rules.

Each jurisdiction publishes an ordered ``payroll_rules`` plan in its rule book.
Every entry in the plan is resolved to an evaluator registered below, so new
jurisdictions plug in through configuration rather than code branches. The
evaluators mutate a private running state; the caller only ever sees the
frozen :class:`PayrollBreakdown`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, NamedTuple

from crossledger.backend.app.models.records import MAX_AMOUNT
from crossledger.backend.config.rule_config import (
    ConfigurationError,
    RuleType,
    SocialSecurityDetails,
    TaxRule,
    ThirtyPercentRulingDetails,
    WageTaxDetails,
    parse_rule_details,
)

from .utils import (
    MINOR_UNITS_PER_MAJOR,
    BracketSlice,
    allocate_progressive_tax,
    apply_rate,
    format_percentage,
)

_LOGGER = logging.getLogger(__name__)

DEFAULT_RULING_PERCENTAGE = Decimal("0.30")


class CalculationStatus(str, Enum):
    """How completely the jurisdiction's rule plan could be evaluated."""

    COMPUTED = "computed"
    PARTIAL_RULES = "partial_rules"
    NO_APPLICABLE_RULES = "no_applicable_rules"
    NO_WITHHOLDING = "no_withholding"


@dataclass(frozen=True)
class PayrollNotice:
    """Informational message attached to a calculation."""

    code: str
    message: str
    rule_type: RuleType | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.rule_type is not None:
            payload["rule_type"] = self.rule_type.value
        return payload


@dataclass(frozen=True)
class PayrollBreakdown:
    """Rounded result of a payroll calculation, all amounts in minor units."""

    jurisdiction: str
    gross_salary: int
    taxable_income: int
    tax_free_allowance: int
    wage_tax: int
    wage_tax_slices: tuple[BracketSlice, ...]
    social_security: int
    social_security_base: int
    net_salary: int
    applied_rules: tuple[str, ...]
    missing_rules: tuple[RuleType, ...]
    notices: tuple[PayrollNotice, ...]
    status: CalculationStatus

    @property
    def has_missing_rules(self) -> bool:
        return bool(self.missing_rules)

    def as_dict(self) -> dict[str, Any]:
        return {
            "jurisdiction": self.jurisdiction,
            "gross_salary": self.gross_salary,
            "taxable_income": self.taxable_income,
            "tax_free_allowance": self.tax_free_allowance,
            "wage_tax": self.wage_tax,
            "wage_tax_slices": [
                {
                    "threshold": entry.threshold,
                    "upper": entry.upper,
                    "rate": str(entry.rate),
                    "rate_label": format_percentage(entry.rate),
                    "amount": entry.amount,
                    "tax": entry.tax,
                }
                for entry in self.wage_tax_slices
            ],
            "social_security": self.social_security,
            "social_security_base": self.social_security_base,
            "net_salary": self.net_salary,
            "applied_rules": list(self.applied_rules),
            "missing_rules": [rule_type.value for rule_type in self.missing_rules],
            "notices": [notice.as_dict() for notice in self.notices],
            "status": self.status.value,
        }


@dataclass
class _PayrollState:
    gross_salary: int
    thirty_percent_ruling: bool
    taxable_income: int
    tax_free_allowance: int = 0
    wage_tax: int = 0
    wage_tax_slices: list[BracketSlice] = field(default_factory=list)
    social_security: int = 0
    social_security_base: int = 0
    applied_rules: list[str] = field(default_factory=list)
    missing_rules: list[RuleType] = field(default_factory=list)
    notices: list[PayrollNotice] = field(default_factory=list)

    def record_missing(self, rule_type: RuleType, jurisdiction: str) -> None:
        self.missing_rules.append(rule_type)
        self.notices.append(
            PayrollNotice(
                code="missing_rule",
                message=(
                    f"No active {rule_type.value} rule for {jurisdiction}; "
                    "the contribution was not computed"
                ),
                rule_type=rule_type,
            )
        )


Evaluator = Callable[[_PayrollState, TaxRule | None, str], None]


class _RegisteredEvaluator(NamedTuple):
    evaluate: Evaluator
    requires_rule: bool


_EVALUATORS: dict[RuleType, _RegisteredEvaluator] = {}
PAYROLL_EVALUATORS: Mapping[RuleType, _RegisteredEvaluator] = MappingProxyType(_EVALUATORS)


def register_evaluator(
    rule_type: RuleType, *, requires_rule: bool = True
) -> Callable[[Evaluator], Evaluator]:
    """Register ``func`` as the payroll evaluator for ``rule_type``."""

    def decorator(func: Evaluator) -> Evaluator:
        _EVALUATORS[rule_type] = _RegisteredEvaluator(func, requires_rule)
        return func

    return decorator


@register_evaluator(RuleType.THIRTY_PERCENT_RULING, requires_rule=False)
def _evaluate_ruling(state: _PayrollState, rule: TaxRule | None, jurisdiction: str) -> None:
    if not state.thirty_percent_ruling:
        return

    percentage = DEFAULT_RULING_PERCENTAGE
    if rule is None:
        state.notices.append(
            PayrollNotice(
                code="ruling_default_percentage",
                message=(
                    f"No active ruling rule for {jurisdiction}; "
                    f"applied the statutory {format_percentage(percentage)} exemption"
                ),
                rule_type=RuleType.THIRTY_PERCENT_RULING,
            )
        )
    else:
        details: ThirtyPercentRulingDetails = parse_rule_details(rule)
        percentage = details.tax_free_percentage
        state.applied_rules.append(rule.id)

    state.tax_free_allowance = apply_rate(state.gross_salary, percentage)
    state.taxable_income = state.gross_salary - state.tax_free_allowance


@register_evaluator(RuleType.WAGE_TAX)
def _evaluate_wage_tax(state: _PayrollState, rule: TaxRule | None, jurisdiction: str) -> None:
    if rule is None:
        state.record_missing(RuleType.WAGE_TAX, jurisdiction)
        return

    details: WageTaxDetails = parse_rule_details(rule)
    slices = allocate_progressive_tax(state.taxable_income, details.brackets)
    state.wage_tax_slices = slices
    state.wage_tax = sum(entry.tax for entry in slices)
    state.applied_rules.append(rule.id)


@register_evaluator(RuleType.SOCIAL_SECURITY)
def _evaluate_social_security(
    state: _PayrollState, rule: TaxRule | None, jurisdiction: str
) -> None:
    if rule is None:
        state.record_missing(RuleType.SOCIAL_SECURITY, jurisdiction)
        return

    details: SocialSecurityDetails = parse_rule_details(rule)
    # contributions use gross pay; the ruling only shields wage tax
    base = state.gross_salary
    if details.max_income is not None:
        base = min(base, details.max_income * MINOR_UNITS_PER_MAJOR)
    state.social_security_base = base
    state.social_security = apply_rate(base, details.combined_rate)
    state.applied_rules.append(rule.id)


def _resolve_status(
    plan: Sequence[RuleType], missing: Sequence[RuleType]
) -> CalculationStatus:
    if not plan:
        return CalculationStatus.NO_WITHHOLDING

    required = [rule_type for rule_type in plan if _EVALUATORS[rule_type].requires_rule]
    if not missing:
        return CalculationStatus.COMPUTED
    if len(missing) == len(required):
        return CalculationStatus.NO_APPLICABLE_RULES
    return CalculationStatus.PARTIAL_RULES


def calculate_payroll(
    gross_salary: int,
    *,
    jurisdiction: str,
    thirty_percent_ruling: bool,
    active_rules: Mapping[RuleType, TaxRule],
    plan: Sequence[RuleType],
) -> PayrollBreakdown:
    """Compute wage tax, social security and net pay for ``gross_salary``.

    ``plan`` lists the rule types the jurisdiction withholds, in evaluation
    order; ``active_rules`` holds the rule version active for the pay period
    per type. Missing rules resolve to a zero contribution and are reported
    through ``missing_rules`` and ``status`` instead of raising.
    """

    if isinstance(gross_salary, bool) or not isinstance(gross_salary, int):
        raise ValueError("Gross salary must be an integer amount of minor units")
    if gross_salary < 0:
        raise ValueError("Gross salary cannot be negative")
    if gross_salary > MAX_AMOUNT:
        raise ValueError(f"Gross salary must not exceed {MAX_AMOUNT} minor units")

    for rule_type in plan:
        if rule_type not in _EVALUATORS:
            raise ConfigurationError(
                f"No payroll evaluator registered for rule type '{rule_type.value}'"
            )

    state = _PayrollState(
        gross_salary=gross_salary,
        thirty_percent_ruling=thirty_percent_ruling,
        taxable_income=gross_salary,
    )

    if thirty_percent_ruling and RuleType.THIRTY_PERCENT_RULING not in plan:
        state.notices.append(
            PayrollNotice(
                code="ruling_not_applicable",
                message=f"The 30% ruling does not apply to {jurisdiction} payroll",
                rule_type=RuleType.THIRTY_PERCENT_RULING,
            )
        )

    for rule_type in plan:
        evaluator = _EVALUATORS[rule_type]
        evaluator.evaluate(state, active_rules.get(rule_type), jurisdiction)

    if state.missing_rules:
        _LOGGER.warning(
            "Payroll for %s computed without rules: %s",
            jurisdiction,
            ", ".join(rule_type.value for rule_type in state.missing_rules),
        )

    net_salary = gross_salary - state.wage_tax - state.social_security

    return PayrollBreakdown(
        jurisdiction=jurisdiction,
        gross_salary=gross_salary,
        taxable_income=state.taxable_income,
        tax_free_allowance=state.tax_free_allowance,
        wage_tax=state.wage_tax,
        wage_tax_slices=tuple(state.wage_tax_slices),
        social_security=state.social_security,
        social_security_base=state.social_security_base,
        net_salary=net_salary,
        applied_rules=tuple(state.applied_rules),
        missing_rules=tuple(state.missing_rules),
        notices=tuple(state.notices),
        status=_resolve_status(plan, state.missing_rules),
    )


__all__ = [
    "CalculationStatus",
    "DEFAULT_RULING_PERCENTAGE",
    "PAYROLL_EVALUATORS",
    "PayrollBreakdown",
    "PayrollNotice",
    "calculate_payroll",
    "register_evaluator",
]
