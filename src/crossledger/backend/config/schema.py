"""Pydantic models describing the versioned tax rule book."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)
from typing_extensions import Self


class ConfigurationError(ValueError):
    """Raised when rule data violates schema expectations."""


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class RuleType(str, Enum):
    """Kinds of rules a jurisdiction can publish."""

    WAGE_TAX = "wage_tax"
    SOCIAL_SECURITY = "social_security"
    THIRTY_PERCENT_RULING = "thirty_percent_ruling"
    VAT = "vat"
    CORPORATION_TAX = "corporation_tax"
    DOUBLE_TAXATION_TREATY = "double_taxation_treaty"


def _coerce_decimal(value: Any) -> Any:
    # floats read from YAML go through ``str`` so 0.371 stays 0.371
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def _ensure_fraction(value: Decimal | None, label: str) -> None:
    if value is None:
        return
    if value < 0 or value > 1:
        raise ConfigurationError(f"{label} must be between 0 and 1")


class WageTaxBracket(ImmutableModel):
    """Progressive bracket starting at ``threshold`` minor units."""

    threshold: int
    rate: Decimal

    @field_validator("rate", mode="before")
    @classmethod
    def _coerce_rate(cls, value: Any) -> Any:
        return _coerce_decimal(value)

    @model_validator(mode="after")
    def _validate_values(self) -> WageTaxBracket:
        if self.threshold < 0:
            raise ConfigurationError("Bracket thresholds must be non-negative")
        _ensure_fraction(self.rate, "Bracket rates")
        return self


class WageTaxDetails(ImmutableModel):
    """Ordered bracket table used for wage tax withholding."""

    brackets: Sequence[WageTaxBracket]
    description: str | None = None

    @field_validator("brackets", mode="before")
    @classmethod
    def _coerce_brackets(cls, value: Any) -> Sequence[Any]:
        if value is None:
            return ()
        if isinstance(value, Iterable) and not isinstance(value, (str, Mapping)):
            return tuple(value)
        raise ConfigurationError("'brackets' must be a list of bracket mappings")

    @model_validator(mode="after")
    def _validate_brackets(self) -> WageTaxDetails:
        if not self.brackets:
            raise ConfigurationError("Wage tax rules must define at least one bracket")
        if self.brackets[0].threshold != 0:
            raise ConfigurationError("The first wage tax bracket must start at 0")
        previous: int | None = None
        for bracket in self.brackets:
            if previous is not None and bracket.threshold <= previous:
                raise ConfigurationError("Wage tax brackets must be in ascending order")
            previous = bracket.threshold
        return self


class SocialSecurityDetails(ImmutableModel):
    """Combined employee/employer contribution rates with an income cap."""

    employee_rate: Decimal = Field(alias="employeeRate")
    employer_rate: Decimal = Field(alias="employerRate")
    max_income: int | None = Field(default=None, alias="maxIncome")
    description: str | None = None

    @field_validator("employee_rate", "employer_rate", mode="before")
    @classmethod
    def _coerce_rates(cls, value: Any) -> Any:
        return _coerce_decimal(value)

    @model_validator(mode="after")
    def _validate_rates(self) -> SocialSecurityDetails:
        _ensure_fraction(self.employee_rate, "Employee contribution rate")
        _ensure_fraction(self.employer_rate, "Employer contribution rate")
        if self.max_income is not None and self.max_income < 0:
            raise ConfigurationError("Social security 'maxIncome' must be non-negative")
        return self

    @computed_field
    @property
    def combined_rate(self) -> Decimal:
        return self.employee_rate + self.employer_rate


class ThirtyPercentRulingDetails(ImmutableModel):
    """Share of gross salary excluded from wage tax for qualifying expats."""

    tax_free_percentage: Decimal = Field(
        default=Decimal("0.30"), alias="taxFreePercentage"
    )
    max_duration_months: int | None = Field(default=None, alias="maxDuration")
    description: str | None = None

    @field_validator("tax_free_percentage", mode="before")
    @classmethod
    def _coerce_percentage(cls, value: Any) -> Any:
        return _coerce_decimal(value)

    @model_validator(mode="after")
    def _validate_values(self) -> ThirtyPercentRulingDetails:
        _ensure_fraction(self.tax_free_percentage, "Tax free percentage")
        if self.max_duration_months is not None and self.max_duration_months <= 0:
            raise ConfigurationError("Ruling 'maxDuration' must be a positive number of months")
        return self


class VatDetails(ImmutableModel):
    """Standard and reduced VAT/BTW rates."""

    standard_rate: Decimal = Field(alias="standardRate")
    reduced_rate: Decimal | None = Field(default=None, alias="reducedRate")
    zero_rate: Decimal | None = Field(default=None, alias="zeroRate")
    registration_threshold: int | None = Field(
        default=None, alias="registrationThreshold"
    )
    filing_frequency: str | None = Field(default=None, alias="filingFrequency")
    description: str | None = None

    @field_validator("standard_rate", "reduced_rate", "zero_rate", mode="before")
    @classmethod
    def _coerce_rates(cls, value: Any) -> Any:
        return _coerce_decimal(value)

    @model_validator(mode="after")
    def _validate_rates(self) -> VatDetails:
        _ensure_fraction(self.standard_rate, "VAT standard rate")
        _ensure_fraction(self.reduced_rate, "VAT reduced rate")
        _ensure_fraction(self.zero_rate, "VAT zero rate")
        return self


class CorporationTaxDetails(ImmutableModel):
    """Flat corporation tax rate."""

    rate: Decimal
    threshold: int = 0
    description: str | None = None

    @field_validator("rate", mode="before")
    @classmethod
    def _coerce_rate(cls, value: Any) -> Any:
        return _coerce_decimal(value)

    @model_validator(mode="after")
    def _validate_rate(self) -> CorporationTaxDetails:
        _ensure_fraction(self.rate, "Corporation tax rate")
        return self


class DoubleTaxationTreatyDetails(BaseModel):
    """Descriptive treaty metadata; the shape is intentionally open."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    treaty_name: str = Field(alias="treatyName")
    relief_method: str | None = Field(default=None, alias="reliefMethod")


RuleDetails = (
    WageTaxDetails
    | SocialSecurityDetails
    | ThirtyPercentRulingDetails
    | VatDetails
    | CorporationTaxDetails
    | DoubleTaxationTreatyDetails
)

PAYROLL_RULE_TYPES: frozenset[RuleType] = frozenset(
    {
        RuleType.THIRTY_PERCENT_RULING,
        RuleType.WAGE_TAX,
        RuleType.SOCIAL_SECURITY,
    }
)

RULE_DETAIL_MODELS: Mapping[RuleType, type[BaseModel]] = {
    RuleType.WAGE_TAX: WageTaxDetails,
    RuleType.SOCIAL_SECURITY: SocialSecurityDetails,
    RuleType.THIRTY_PERCENT_RULING: ThirtyPercentRulingDetails,
    RuleType.VAT: VatDetails,
    RuleType.CORPORATION_TAX: CorporationTaxDetails,
    RuleType.DOUBLE_TAXATION_TREATY: DoubleTaxationTreatyDetails,
}


class TaxRule(ImmutableModel):
    """A single version of a jurisdiction rule with its validity window."""

    id: str
    jurisdiction: str
    rule_type: RuleType = Field(alias="type")
    description: str = ""
    valid_from: date
    valid_to: date | None = None
    details: Mapping[str, Any] = Field(default_factory=dict)

    @field_validator("jurisdiction", mode="before")
    @classmethod
    def _normalise_code(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("details", mode="before")
    @classmethod
    def _coerce_details(cls, value: Any) -> Mapping[str, Any]:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return dict(value)
        raise ConfigurationError("Rule 'details' must be a mapping")

    @model_validator(mode="after")
    def _validate_window(self) -> Self:
        if self.valid_to is not None and self.valid_to <= self.valid_from:
            raise ConfigurationError(
                f"Rule '{self.id}' must end after it starts (valid_to > valid_from)"
            )
        return self

    def is_active_on(self, day: date) -> bool:
        """Return ``True`` when ``day`` falls inside ``[valid_from, valid_to)``."""

        if self.valid_from > day:
            return False
        return self.valid_to is None or self.valid_to > day


def parse_rule_details(rule: TaxRule) -> Any:
    """Validate the opaque ``details`` payload against its rule type schema."""

    model = RULE_DETAIL_MODELS[rule.rule_type]
    try:
        return model.model_validate(rule.details)
    except ValidationError as error:
        raise ConfigurationError(
            f"Rule '{rule.id}' has invalid {rule.rule_type.value} details: {error}"
        ) from error


class Jurisdiction(ImmutableModel):
    """Taxing country context with its currency and payroll rule plan."""

    code: str
    name: str
    currency: str
    tax_authority: str | None = None
    tax_authority_url: str | None = None
    payroll_rules: Sequence[RuleType] = Field(default_factory=tuple)

    @field_validator("code", "currency", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("payroll_rules", mode="before")
    @classmethod
    def _coerce_plan(cls, value: Any) -> Sequence[Any]:
        if value is None:
            return ()
        if isinstance(value, Iterable) and not isinstance(value, (str, Mapping)):
            return tuple(value)
        raise ConfigurationError("'payroll_rules' must be a list of rule types")

    @model_validator(mode="after")
    def _validate_plan(self) -> Jurisdiction:
        if len(set(self.payroll_rules)) != len(self.payroll_rules):
            raise ConfigurationError(
                f"Jurisdiction {self.code} lists a payroll rule more than once"
            )
        unsupported = [rule for rule in self.payroll_rules if rule not in PAYROLL_RULE_TYPES]
        if unsupported:
            names = ", ".join(rule.value for rule in unsupported)
            raise ConfigurationError(
                f"Jurisdiction {self.code} lists rules that do not apply to payroll: {names}"
            )
        plan = list(self.payroll_rules)
        if (
            RuleType.THIRTY_PERCENT_RULING in plan
            and RuleType.WAGE_TAX in plan
            and plan.index(RuleType.THIRTY_PERCENT_RULING) > plan.index(RuleType.WAGE_TAX)
        ):
            raise ConfigurationError(
                f"Jurisdiction {self.code} must apply the 30% ruling before wage tax"
            )
        if len(self.currency) != 3:
            raise ConfigurationError(
                f"Jurisdiction {self.code} currency must be a three-letter code"
            )
        return self


class JurisdictionRuleBook(ImmutableModel):
    """Jurisdiction metadata together with every published rule version."""

    jurisdiction: Jurisdiction
    rules: Sequence[TaxRule] = Field(default_factory=tuple)

    @model_validator(mode="before")
    @classmethod
    def _attach_jurisdiction(cls, data: Any) -> Mapping[str, Any]:
        if not isinstance(data, Mapping):
            raise ConfigurationError("Rule files must define a mapping at the top level")

        prepared = dict(data)
        meta = prepared.get("jurisdiction")
        if not isinstance(meta, Mapping) or "code" not in meta:
            raise ConfigurationError("Rule files require a 'jurisdiction' section with a code")

        code = meta["code"]
        rules = prepared.get("rules") or []
        if not isinstance(rules, Iterable) or isinstance(rules, (str, Mapping)):
            raise ConfigurationError("'rules' must be a list of rule versions")

        attached = []
        for entry in rules:
            if not isinstance(entry, Mapping):
                raise ConfigurationError("Each rule version must be a mapping")
            item = dict(entry)
            item.setdefault("jurisdiction", code)
            attached.append(item)
        prepared["rules"] = attached
        return prepared

    @model_validator(mode="after")
    def _validate_rules(self) -> JurisdictionRuleBook:
        seen: set[str] = set()
        for rule in self.rules:
            if rule.id in seen:
                raise ConfigurationError(f"Duplicate rule identifier '{rule.id}'")
            seen.add(rule.id)
            if rule.jurisdiction != self.jurisdiction.code:
                raise ConfigurationError(
                    f"Rule '{rule.id}' belongs to {rule.jurisdiction}, "
                    f"not {self.jurisdiction.code}"
                )
        return self


class RuleManifestEntry(ImmutableModel):
    """Entry describing a jurisdiction rule file in the manifest."""

    code: str
    filename: str | None = None
    status: str = "active"

    @field_validator("code", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @computed_field
    @property
    def resolved_filename(self) -> str:
        return self.filename or f"{self.code.lower()}.yaml"


class RuleManifest(ImmutableModel):
    """Manifest describing the base currency and available jurisdictions."""

    base_currency: str = "GBP"
    jurisdictions: Sequence[RuleManifestEntry]

    @field_validator("base_currency", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def _validate_entries(self) -> RuleManifest:
        seen: set[str] = set()
        for entry in self.jurisdictions:
            if entry.code in seen:
                raise ConfigurationError(
                    f"Duplicate jurisdiction {entry.code} declared in the rule manifest"
                )
            seen.add(entry.code)
        return self

    def get_entry(self, code: str) -> RuleManifestEntry:
        for entry in self.jurisdictions:
            if entry.code == code:
                return entry
        raise KeyError(code)

    @computed_field
    @property
    def supported_codes(self) -> tuple[str, ...]:
        return tuple(entry.code for entry in self.jurisdictions)


__all__ = [
    "ConfigurationError",
    "CorporationTaxDetails",
    "DoubleTaxationTreatyDetails",
    "ImmutableModel",
    "PAYROLL_RULE_TYPES",
    "Jurisdiction",
    "JurisdictionRuleBook",
    "RULE_DETAIL_MODELS",
    "RuleDetails",
    "RuleManifest",
    "RuleManifestEntry",
    "RuleType",
    "SocialSecurityDetails",
    "TaxRule",
    "ThirtyPercentRulingDetails",
    "ValidationError",
    "VatDetails",
    "WageTaxBracket",
    "WageTaxDetails",
    "parse_rule_details",
]
