"""Rule book loader wrapping the shared schema models."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

import yaml
from pydantic import ValidationError

from .schema import (
    ConfigurationError,
    CorporationTaxDetails,
    DoubleTaxationTreatyDetails,
    Jurisdiction,
    JurisdictionRuleBook,
    RuleManifest,
    RuleManifestEntry,
    RuleType,
    SocialSecurityDetails,
    TaxRule,
    ThirtyPercentRulingDetails,
    VatDetails,
    WageTaxBracket,
    WageTaxDetails,
    parse_rule_details,
)

CONFIG_DIRECTORY = Path(__file__).resolve().parent / "data"
MANIFEST_FILE = CONFIG_DIRECTORY / "manifest.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Rule files must define a mapping at the top level")
    return data


@lru_cache(maxsize=1)
def load_manifest() -> RuleManifest:
    """Load and cache the rule manifest."""

    if not MANIFEST_FILE.exists():
        raise FileNotFoundError("Rule manifest not found")

    raw_manifest = _load_yaml(MANIFEST_FILE)

    try:
        return RuleManifest.model_validate(raw_manifest)
    except ValidationError as error:
        raise ConfigurationError(f"Manifest validation failed: {error}") from error


def manifest_entries() -> Sequence[RuleManifestEntry]:
    """Expose the configured manifest entries."""

    return load_manifest().jurisdictions


def base_currency() -> str:
    """Return the reporting currency every ledger entry is normalised into."""

    return load_manifest().base_currency


@lru_cache(maxsize=16)
def load_rule_book(code: str) -> JurisdictionRuleBook:
    """Load the rule book for the jurisdiction ``code`` from disk."""

    normalised = code.strip().upper()
    try:
        manifest_entry = load_manifest().get_entry(normalised)
    except KeyError as exc:
        raise FileNotFoundError(
            f"Rules for jurisdiction {normalised} not declared in manifest"
        ) from exc

    rule_file = CONFIG_DIRECTORY / manifest_entry.resolved_filename
    if not rule_file.exists():
        raise FileNotFoundError(
            f"Rule file for jurisdiction {normalised} missing: {rule_file.name}"
        )

    raw_book = _load_yaml(rule_file)

    try:
        book = JurisdictionRuleBook.model_validate(raw_book)
    except ValidationError as error:
        raise ConfigurationError(
            f"Rule validation failed for {normalised}: {error}"
        ) from error

    if book.jurisdiction.code != normalised:
        raise ConfigurationError(
            f"Jurisdiction mismatch: expected {normalised}, found {book.jurisdiction.code}"
        )

    return book


def available_jurisdictions() -> Sequence[str]:
    """Return the jurisdiction codes declared in the manifest."""

    return load_manifest().supported_codes


def load_jurisdictions() -> tuple[Jurisdiction, ...]:
    """Return metadata for every configured jurisdiction in manifest order."""

    return tuple(load_rule_book(code).jurisdiction for code in available_jurisdictions())


def clear_caches() -> None:
    """Drop cached manifest and rule books, e.g. after editing the YAML files."""

    load_rule_book.cache_clear()
    load_manifest.cache_clear()


__all__ = [
    "CONFIG_DIRECTORY",
    "ConfigurationError",
    "CorporationTaxDetails",
    "DoubleTaxationTreatyDetails",
    "Jurisdiction",
    "JurisdictionRuleBook",
    "MANIFEST_FILE",
    "RuleManifest",
    "RuleManifestEntry",
    "RuleType",
    "SocialSecurityDetails",
    "TaxRule",
    "ThirtyPercentRulingDetails",
    "VatDetails",
    "WageTaxBracket",
    "WageTaxDetails",
    "available_jurisdictions",
    "base_currency",
    "clear_caches",
    "load_jurisdictions",
    "load_manifest",
    "load_rule_book",
    "manifest_entries",
    "parse_rule_details",
]
