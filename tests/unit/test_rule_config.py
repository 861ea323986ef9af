"""Unit coverage for rule book discovery and parsing utilities."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from crossledger.backend.config import rule_config
from crossledger.backend.config.rule_config import (
    ConfigurationError,
    RuleType,
    SocialSecurityDetails,
    WageTaxDetails,
    parse_rule_details,
)


def _rewrite(path: Path, mutate) -> None:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    mutate(data)
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    rule_config.clear_caches()


def test_manifest_lists_configured_jurisdictions() -> None:
    assert rule_config.available_jurisdictions() == ("UK", "NL")
    assert rule_config.base_currency() == "GBP"


def test_jurisdiction_metadata_is_loaded() -> None:
    uk, nl = rule_config.load_jurisdictions()

    assert (uk.code, uk.currency, uk.tax_authority) == ("UK", "GBP", "HMRC")
    assert list(uk.payroll_rules) == []
    assert (nl.code, nl.currency) == ("NL", "EUR")
    assert list(nl.payroll_rules) == [
        RuleType.THIRTY_PERCENT_RULING,
        RuleType.WAGE_TAX,
        RuleType.SOCIAL_SECURITY,
    ]


def test_rule_book_lookup_is_case_insensitive() -> None:
    assert rule_config.load_rule_book("nl").jurisdiction.code == "NL"
    assert rule_config.load_rule_book("NL") is rule_config.load_rule_book("NL")


def test_rules_inherit_the_jurisdiction_code() -> None:
    book = rule_config.load_rule_book("NL")

    assert {rule.jurisdiction for rule in book.rules} == {"NL"}


def test_yaml_rates_are_parsed_as_exact_decimals() -> None:
    book = rule_config.load_rule_book("NL")
    wage_tax = next(rule for rule in book.rules if rule.id == "nl-wage-tax-2025")
    social = next(rule for rule in book.rules if rule.id == "nl-social-security-2025")

    brackets = parse_rule_details(wage_tax)
    contributions = parse_rule_details(social)

    assert isinstance(brackets, WageTaxDetails)
    assert [bracket.rate for bracket in brackets.brackets] == [
        Decimal("0.371"),
        Decimal("0.495"),
    ]
    assert isinstance(contributions, SocialSecurityDetails)
    assert contributions.combined_rate == Decimal("0.32")
    assert contributions.max_income == 75864


def test_every_published_rule_has_valid_details() -> None:
    for code in rule_config.available_jurisdictions():
        for rule in rule_config.load_rule_book(code).rules:
            parse_rule_details(rule)


def test_unknown_jurisdiction_raises_file_not_found() -> None:
    with pytest.raises(FileNotFoundError):
        rule_config.load_rule_book("DE")


def test_missing_rule_file_is_reported(isolated_config_directory: Path) -> None:
    (isolated_config_directory / "nl.yaml").unlink()

    with pytest.raises(FileNotFoundError, match="nl.yaml"):
        rule_config.load_rule_book("NL")


def test_rule_window_must_end_after_it_starts(isolated_config_directory: Path) -> None:
    def mutate(data) -> None:
        data["rules"][0]["valid_to"] = data["rules"][0]["valid_from"]

    _rewrite(isolated_config_directory / "nl.yaml", mutate)

    with pytest.raises(ConfigurationError, match="valid_to"):
        rule_config.load_rule_book("NL")


def test_duplicate_rule_ids_are_rejected(isolated_config_directory: Path) -> None:
    def mutate(data) -> None:
        data["rules"].append(dict(data["rules"][0]))

    _rewrite(isolated_config_directory / "nl.yaml", mutate)

    with pytest.raises(ConfigurationError, match="Duplicate rule identifier"):
        rule_config.load_rule_book("NL")


def test_payroll_plan_rejects_non_payroll_rules(isolated_config_directory: Path) -> None:
    def mutate(data) -> None:
        data["jurisdiction"]["payroll_rules"] = ["vat"]

    _rewrite(isolated_config_directory / "uk.yaml", mutate)

    with pytest.raises(ConfigurationError, match="do not apply to payroll"):
        rule_config.load_rule_book("UK")


def test_payroll_plan_applies_ruling_before_wage_tax(
    isolated_config_directory: Path,
) -> None:
    def mutate(data) -> None:
        data["jurisdiction"]["payroll_rules"] = [
            "wage_tax",
            "thirty_percent_ruling",
            "social_security",
        ]

    _rewrite(isolated_config_directory / "nl.yaml", mutate)

    with pytest.raises(ConfigurationError, match="before wage tax"):
        rule_config.load_rule_book("NL")


def test_mismatched_jurisdiction_code_is_rejected(isolated_config_directory: Path) -> None:
    def mutate(data) -> None:
        data["jurisdiction"]["code"] = "BE"

    _rewrite(isolated_config_directory / "nl.yaml", mutate)

    with pytest.raises(ConfigurationError, match="mismatch"):
        rule_config.load_rule_book("NL")


def test_new_jurisdiction_is_discovered_from_manifest(
    isolated_config_directory: Path,
) -> None:
    ie_book = {
        "jurisdiction": {
            "code": "IE",
            "name": "Ireland",
            "currency": "EUR",
            "payroll_rules": ["wage_tax"],
        },
        "rules": [
            {
                "id": "ie-paye-2025",
                "type": "wage_tax",
                "valid_from": "2025-01-01",
                "details": {"brackets": [{"threshold": 0, "rate": 0.2}]},
            }
        ],
    }
    (isolated_config_directory / "ie.yaml").write_text(
        yaml.safe_dump(ie_book, sort_keys=False), encoding="utf-8"
    )
    _rewrite(
        isolated_config_directory / "manifest.yaml",
        lambda data: data["jurisdictions"].append({"code": "ie"}),
    )

    assert rule_config.available_jurisdictions() == ("UK", "NL", "IE")
    assert rule_config.load_rule_book("IE").rules[0].id == "ie-paye-2025"
