"""Utilities for validating rule book data and surfacing issues."""

from __future__ import annotations

import argparse
from collections import defaultdict
from typing import Iterable, Sequence

from .rule_config import (
    ConfigurationError,
    JurisdictionRuleBook,
    RuleType,
    TaxRule,
    available_jurisdictions,
    load_rule_book,
    parse_rule_details,
)


def _format_scope(scope: str, message: str) -> str:
    return f"{scope}: {message}"


def _validate_details(rules: Iterable[TaxRule]) -> list[str]:
    errors: list[str] = []
    for rule in rules:
        try:
            parse_rule_details(rule)
        except ConfigurationError as error:
            errors.append(_format_scope(f"rules.{rule.id}", str(error)))
    return errors


def _windows_overlap(first: TaxRule, second: TaxRule) -> bool:
    first_ends_after = first.valid_to is None or first.valid_to > second.valid_from
    second_ends_after = second.valid_to is None or second.valid_to > first.valid_from
    return first_ends_after and second_ends_after


def _validate_windows(rules: Iterable[TaxRule]) -> list[str]:
    errors: list[str] = []
    grouped: dict[RuleType, list[TaxRule]] = defaultdict(list)
    for rule in rules:
        grouped[rule.rule_type].append(rule)

    for rule_type, versions in grouped.items():
        ordered = sorted(versions, key=lambda rule: rule.valid_from)
        for index, current in enumerate(ordered):
            for later in ordered[index + 1 :]:
                if _windows_overlap(current, later):
                    errors.append(
                        _format_scope(
                            f"rules.{rule_type.value}",
                            (
                                f"validity windows of '{current.id}' and "
                                f"'{later.id}' overlap"
                            ),
                        )
                    )
    return errors


def _validate_payroll_plan(book: JurisdictionRuleBook) -> list[str]:
    errors: list[str] = []
    published = {rule.rule_type for rule in book.rules}
    for rule_type in book.jurisdiction.payroll_rules:
        if rule_type is RuleType.THIRTY_PERCENT_RULING:
            # the ruling falls back to the statutory 30% without a published rule
            continue
        if rule_type not in published:
            errors.append(
                _format_scope(
                    "jurisdiction.payroll_rules",
                    f"no '{rule_type.value}' rule versions are published",
                )
            )
    return errors


def _validate_metadata(book: JurisdictionRuleBook) -> list[str]:
    errors: list[str] = []
    url = book.jurisdiction.tax_authority_url
    if url and not url.startswith(("http://", "https://")):
        errors.append(
            _format_scope("jurisdiction", "tax authority URL must be absolute"),
        )
    return errors


def validate_rule_book(book: JurisdictionRuleBook) -> list[str]:
    """Return a list of validation issues for the provided rule book."""

    errors: list[str] = []

    errors.extend(_validate_metadata(book))
    errors.extend(_validate_details(book.rules))
    errors.extend(_validate_windows(book.rules))
    errors.extend(_validate_payroll_plan(book))

    return errors


def validate_all_jurisdictions(
    codes: Sequence[str] | None = None,
) -> dict[str, list[str]]:
    """Validate all configured jurisdictions and return issues keyed by code."""

    targets = codes or available_jurisdictions()
    results: dict[str, list[str]] = {}

    for code in targets:
        book = load_rule_book(code)
        results[book.jurisdiction.code] = validate_rule_book(book)

    return results


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate the configured tax rule book and report issues."
    )
    parser.add_argument(
        "codes",
        nargs="*",
        help="Jurisdiction codes to validate (defaults to all configured)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    codes = [code.upper() for code in args.codes] or list(available_jurisdictions())

    if not codes:
        parser.print_help()
        return 1

    exit_code = 0

    for code in codes:
        try:
            book = load_rule_book(code)
        except (FileNotFoundError, ConfigurationError) as error:
            print(f"[{code}] failed to load rules: {error}")
            exit_code = 1
            continue

        issues = validate_rule_book(book)
        if issues:
            exit_code = 1
            print(f"[{code}] {len(issues)} issue(s) detected:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print(f"[{code}] OK ({len(book.rules)} rule versions)")

    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
