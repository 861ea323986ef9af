"""Selection of the rule versions in force on a reference date."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date

from crossledger.backend.config.rule_config import (
    JurisdictionRuleBook,
    RuleType,
    TaxRule,
    available_jurisdictions,
    load_rule_book,
)

_LOGGER = logging.getLogger(__name__)


def resolve_rule_book(code: str) -> JurisdictionRuleBook:
    """Return the rule book for ``code`` or raise ``ValueError`` if unknown."""

    normalised = (code or "").strip().upper()
    if normalised not in available_jurisdictions():
        supported = ", ".join(available_jurisdictions())
        raise ValueError(
            f"Unsupported jurisdiction '{normalised}' (supported: {supported})"
        )
    return load_rule_book(normalised)


def select_active_rule(
    rules: Iterable[TaxRule], rule_type: RuleType, on: date
) -> TaxRule | None:
    """Return the ``rule_type`` version active on ``on``.

    A version is active when ``valid_from <= on < valid_to`` (or it has no
    end date). When overlapping versions qualify, the latest ``valid_from``
    wins; ties keep the version listed first.
    """

    selected: TaxRule | None = None
    for rule in rules:
        if rule.rule_type is not rule_type or not rule.is_active_on(on):
            continue
        if selected is None or rule.valid_from > selected.valid_from:
            selected = rule
    return selected


def active_rules_for(
    code: str, on: date, rule_types: Sequence[RuleType] | None = None
) -> dict[RuleType, TaxRule]:
    """Return the active rule per type for jurisdiction ``code`` on ``on``."""

    book = resolve_rule_book(code)
    wanted = rule_types if rule_types is not None else tuple(RuleType)
    active: dict[RuleType, TaxRule] = {}
    for rule_type in wanted:
        rule = select_active_rule(book.rules, rule_type, on)
        if rule is not None:
            active[rule_type] = rule
        else:
            _LOGGER.debug(
                "No active %s rule for %s on %s", rule_type.value, code, on.isoformat()
            )
    return active


def list_rules(code: str, rule_type: RuleType | None = None) -> list[TaxRule]:
    """Return every published version for ``code``, newest first per type."""

    book = resolve_rule_book(code)
    rules = [
        rule for rule in book.rules if rule_type is None or rule.rule_type is rule_type
    ]
    return sorted(
        rules, key=lambda rule: (rule.rule_type.value, -rule.valid_from.toordinal())
    )


def serialise_rule(rule: TaxRule) -> dict[str, object]:
    return {
        "id": rule.id,
        "jurisdiction": rule.jurisdiction,
        "rule_type": rule.rule_type.value,
        "description": rule.description,
        "valid_from": rule.valid_from.isoformat(),
        "valid_to": rule.valid_to.isoformat() if rule.valid_to else None,
        "details": dict(rule.details),
    }


__all__ = [
    "active_rules_for",
    "list_rules",
    "resolve_rule_book",
    "select_active_rule",
    "serialise_rule",
]
