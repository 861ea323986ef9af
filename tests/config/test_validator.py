from datetime import date

from crossledger.backend.config.rule_config import RuleType, load_rule_book
from crossledger.backend.config.validator import (
    main,
    validate_all_jurisdictions,
    validate_rule_book,
)


def test_current_rule_books_are_valid() -> None:
    results = validate_all_jurisdictions()

    assert set(results) == {"UK", "NL"}
    assert all(not issues for issues in results.values()), results


def test_validator_flags_overlapping_rule_versions() -> None:
    book = load_rule_book("NL")
    wage_tax_2024 = next(rule for rule in book.rules if rule.id == "nl-wage-tax-2024")
    overlapping = wage_tax_2024.model_copy(
        update={"id": "nl-wage-tax-2024-revised", "valid_from": date(2024, 7, 1)}
    )
    broken = book.model_copy(update={"rules": (*book.rules, overlapping)})

    errors = validate_rule_book(broken)

    assert any(
        "rules.wage_tax" in error and "'nl-wage-tax-2024-revised'" in error
        for error in errors
    ), errors


def test_validator_flags_plan_entries_without_rules() -> None:
    book = load_rule_book("NL")
    without_social = tuple(
        rule for rule in book.rules if rule.rule_type is not RuleType.SOCIAL_SECURITY
    )
    broken = book.model_copy(update={"rules": without_social})

    errors = validate_rule_book(broken)

    assert errors == [
        "jurisdiction.payroll_rules: no 'social_security' rule versions are published"
    ]


def test_validator_flags_malformed_rule_details() -> None:
    book = load_rule_book("NL")
    ruling = next(
        rule for rule in book.rules if rule.rule_type is RuleType.THIRTY_PERCENT_RULING
    )
    malformed = ruling.model_copy(update={"details": {"taxFreePercentage": 1.5}})
    broken = book.model_copy(
        update={"rules": tuple(malformed if rule is ruling else rule for rule in book.rules)}
    )

    errors = validate_rule_book(broken)

    assert len(errors) == 1
    assert errors[0].startswith("rules.nl-thirty-percent-ruling-2025:")


def test_cli_reports_success(capsys) -> None:
    assert main(["nl"]) == 0

    assert "[NL] OK" in capsys.readouterr().out


def test_cli_reports_unknown_jurisdiction(capsys) -> None:
    assert main(["FR"]) == 1

    assert "[FR] failed to load rules" in capsys.readouterr().out
