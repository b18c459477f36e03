"""
Settings cascade resolver.

Given the persisted settings and a partial set of caller changes, decides the
full set of fields to write. Each field gets a source tag once per request:

  explicit : supplied by the caller; never overwritten by a formula
  derived  : recomputed in this call from its inputs
  current  : carried over from the persisted row

Derivation order:
  1. monthly_contribution_target  ← annual_turnover, gross_margin_pct
  2. contribution_per_box         ← base_box_price, target_install_pct,
                                    target_extras_pct, gross_margin_pct
  3. target_boxes_per_month/week  ← outputs of 1 and 2
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from app.domain import formulas
from app.domain.errors import SettingsValidationError
from app.utils.validation import parse_non_negative_decimal, parse_non_negative_int


class FieldSource(str, Enum):
    EXPLICIT = "explicit"
    DERIVED = "derived"
    CURRENT = "current"


# Fields a caller may change (the settings contract)
ALLOWED_FIELDS: tuple[str, ...] = (
    "annual_turnover",
    "base_box_price",
    "gross_margin_pct",
    "monthly_contribution_target",
    "survival_contribution",
    "target_boxes_per_month",
    "target_boxes_per_week",
    "target_install_pct",
    "target_extras_pct",
    "contribution_per_box",
    "cost_compliance_target",
    "right_first_time_target",
)

PERCENT_FIELDS = frozenset({
    "target_install_pct",
    "target_extras_pct",
    "gross_margin_pct",
    "cost_compliance_target",
    "right_first_time_target",
})

INTEGER_FIELDS = frozenset({"target_boxes_per_month", "target_boxes_per_week"})

# May be cleared with null
NULLABLE_FIELDS = frozenset({"annual_turnover", "base_box_price"})

DEFAULT_GROSS_MARGIN_PCT = Decimal("0.35")

DEFAULT_SETTINGS: dict[str, Any] = {
    "annual_turnover": None,
    "base_box_price": None,
    "gross_margin_pct": DEFAULT_GROSS_MARGIN_PCT,
    "monthly_contribution_target": Decimal("0"),
    "survival_contribution": Decimal("0"),
    "target_boxes_per_month": 0,
    "target_boxes_per_week": 0,
    "target_install_pct": Decimal("0"),
    "target_extras_pct": Decimal("0"),
    "contribution_per_box": Decimal("0"),
    "cost_compliance_target": Decimal("0.90"),
    "right_first_time_target": Decimal("0.95"),
}

MONTHLY_CONTRIBUTION_INPUTS = frozenset({"annual_turnover", "gross_margin_pct"})
CONTRIBUTION_PER_BOX_INPUTS = frozenset({
    "base_box_price", "target_install_pct", "target_extras_pct", "gross_margin_pct",
})
TARGET_BOX_FIELDS = frozenset({"target_boxes_per_month", "target_boxes_per_week"})


@dataclass(frozen=True)
class SettingsResolution:
    """Outcome of resolve(): merged values, fields to write and where each came from."""
    values: dict[str, Any]
    changes: dict[str, Any]
    sources: dict[str, FieldSource] = field(default_factory=dict)

    @property
    def is_noop(self) -> bool:
        return not self.changes

    def fields_with_source(self, source: FieldSource) -> list[str]:
        return [name for name in ALLOWED_FIELDS if self.sources.get(name) == source]


def validate_changes(current: Mapping[str, Any], requested: Mapping[str, Any]) -> dict[str, Any]:
    """
    Check allow-list, ranges and the install + extras sum.

    Returns:
        Parsed values (Decimal, or int for box targets, or None for cleared inputs)

    Raises:
        SettingsValidationError: on the first violation; nothing is resolved
    """
    unknown = sorted(name for name in requested if name not in ALLOWED_FIELDS)
    if unknown:
        raise SettingsValidationError(
            f"Unknown settings field(s): {', '.join(unknown)}", field=unknown[0]
        )

    cleaned: dict[str, Any] = {}
    for name, raw in requested.items():
        if raw is None or raw == "":
            if name in NULLABLE_FIELDS:
                cleaned[name] = None
                continue
            raise SettingsValidationError(f"{name} is required", field=name)

        try:
            if name in INTEGER_FIELDS:
                value = parse_non_negative_int(raw, formulas.MAX_COUNT)
            else:
                value = parse_non_negative_decimal(raw, formulas.MAX_AMOUNT)
        except ValueError as exc:
            raise SettingsValidationError(f"Invalid value for {name}: {exc}", field=name) from exc

        if name in PERCENT_FIELDS and value > 1:
            raise SettingsValidationError(f"{name} cannot exceed 1.0 (100%)", field=name)
        if name == "gross_margin_pct" and value == 0:
            raise SettingsValidationError("gross_margin_pct must be greater than 0", field=name)
        cleaned[name] = value

    if "target_install_pct" in cleaned or "target_extras_pct" in cleaned:
        install = cleaned.get("target_install_pct", formulas.to_decimal(current.get("target_install_pct")))
        extras = cleaned.get("target_extras_pct", formulas.to_decimal(current.get("target_extras_pct")))
        if install + extras > 1:
            raise SettingsValidationError(
                "Install % + Extras % cannot exceed 100%", field="target_install_pct"
            )

    return cleaned


def resolve(current: Mapping[str, Any], requested: Mapping[str, Any] | None) -> SettingsResolution:
    """
    Resolve a settings change against the persisted record.

    Args:
        current: persisted settings (all derived fields already populated)
        requested: field -> new value, restricted to ALLOWED_FIELDS

    Returns:
        SettingsResolution; changes == {} when nothing was requested

    Raises:
        SettingsValidationError: before any derivation happens
    """
    requested = dict(requested or {})
    explicit = validate_changes(current, requested)

    values: dict[str, Any] = {name: current.get(name) for name in ALLOWED_FIELDS}
    sources: dict[str, FieldSource] = {name: FieldSource.CURRENT for name in ALLOWED_FIELDS}

    if not explicit:
        return SettingsResolution(values=values, changes={}, sources=sources)

    values.update(explicit)
    for name in explicit:
        sources[name] = FieldSource.EXPLICIT

    supplied = explicit.keys()
    margin = values.get("gross_margin_pct")
    if margin is None:
        margin = DEFAULT_GROSS_MARGIN_PCT
    derived: dict[str, Any] = {}

    # 1. Monthly contribution target
    if supplied & MONTHLY_CONTRIBUTION_INPUTS and "monthly_contribution_target" not in supplied:
        monthly = formulas.monthly_contribution(values.get("annual_turnover"), margin)
        if monthly is not None:
            derived["monthly_contribution_target"] = monthly

    # 2. Contribution per box
    if supplied & CONTRIBUTION_PER_BOX_INPUTS and "contribution_per_box" not in supplied:
        per_box = formulas.contribution_per_box(
            values.get("base_box_price"),
            values.get("target_install_pct"),
            values.get("target_extras_pct"),
            margin,
        )
        if per_box is not None:
            derived["contribution_per_box"] = per_box

    values.update(derived)

    for name, value in derived.items():
        if value >= formulas.MAX_AMOUNT:
            raise SettingsValidationError(f"Derived {name} is out of range", field=name)

    # 3. Box targets (need both operands positive, fresh or persisted)
    if not supplied & TARGET_BOX_FIELDS:
        try:
            per_month, per_week = formulas.target_boxes(
                values.get("monthly_contribution_target"),
                values.get("contribution_per_box"),
            )
        except ValueError as exc:
            raise SettingsValidationError(str(exc), field="target_boxes_per_month") from exc
        if per_month is not None:
            derived["target_boxes_per_month"] = per_month
            derived["target_boxes_per_week"] = per_week
            values["target_boxes_per_month"] = per_month
            values["target_boxes_per_week"] = per_week

    for name in derived:
        sources[name] = FieldSource.DERIVED

    changes = {**explicit, **derived}
    return SettingsResolution(values=values, changes=changes, sources=sources)
