"""
Business formulas and RAG thresholds shared by the settings cascade and the dashboard.

  Monthly contribution = annual turnover / 12 × gross margin
  Contribution per box = base box price × (1 + install % + extras %) × gross margin
  Target boxes / month = round(monthly contribution / contribution per box)
  Target boxes / week  = round(target boxes per month / 4.33)
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

MONTHS_PER_YEAR = Decimal("12")
WEEKS_PER_MONTH = Decimal("4.33")

ZERO = Decimal("0")
ONE = Decimal("1")
_CENTS = Decimal("0.01")

# RAG statuses
RAG_RED = "red"
RAG_AMBER = "amber"
RAG_GREEN = "green"

# Fixed organisational thresholds (not stored in settings)
CONTRIBUTION_PER_BOX_RED_BELOW = Decimal("600")
CONTRIBUTION_PER_BOX_GREEN_FROM = Decimal("640")
REWORK_PER_BOX_AMBER_FROM = Decimal("0.25")
REWORK_PER_BOX_RED_FROM = Decimal("0.5")

# Exclusive upper bounds matching the storage columns
MAX_AMOUNT = Decimal(10 ** 12)  # Numeric(14, 2)
MAX_HOURS = Decimal(10 ** 8)  # Numeric(10, 2)
MAX_COUNT = 2 ** 31  # Integer


def to_decimal(value) -> Decimal:
    """None / empty → 0, everything else through str() so floats keep their printed value."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO


def money(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(ONE, rounding=ROUND_HALF_UP))


def safe_ratio(numerator, denominator) -> Decimal:
    """numerator / denominator, or 0 when the denominator is 0"""
    den = to_decimal(denominator)
    if den == 0:
        return ZERO
    return to_decimal(numerator) / den


# ── Derivations ──────────────────────────────────────────────────────────────

def monthly_contribution(annual_turnover, gross_margin_pct) -> Decimal | None:
    turnover = to_decimal(annual_turnover)
    margin = to_decimal(gross_margin_pct)
    if turnover <= 0 or margin <= 0:
        return None
    return money(turnover / MONTHS_PER_YEAR * margin)


def contribution_per_box(base_box_price, install_pct, extras_pct, gross_margin_pct) -> Decimal | None:
    price = to_decimal(base_box_price)
    margin = to_decimal(gross_margin_pct)
    if price <= 0 or margin <= 0:
        return None
    expected_sale = price * (ONE + to_decimal(install_pct) + to_decimal(extras_pct))
    return money(expected_sale * margin)


def target_boxes(monthly_target, per_box) -> tuple[int | None, int | None]:
    """
    (per month, per week), or (None, None) unless both operands are positive

    Raises:
        ValueError: the monthly box count would not fit in MAX_COUNT
    """
    monthly = to_decimal(monthly_target)
    box = to_decimal(per_box)
    if monthly <= 0 or box <= 0:
        return None, None
    ratio = monthly / box
    if ratio >= MAX_COUNT - Decimal("0.5"):
        raise ValueError(f"target boxes per month would exceed {MAX_COUNT - 1:,}")
    per_month = round_half_up(ratio)
    per_week = round_half_up(Decimal(per_month) / WEEKS_PER_MONTH)
    return per_month, per_week


# ── RAG classification ───────────────────────────────────────────────────────

def rag_against_target(value: Decimal, target: Decimal) -> str:
    """Two-band, higher-is-better: red below target, else green."""
    return RAG_RED if value < target else RAG_GREEN


def rag_banded(value: Decimal, red_below: Decimal, green_from: Decimal) -> str:
    """Three-band, higher-is-better: red < red_below ≤ amber < green_from ≤ green."""
    if value < red_below:
        return RAG_RED
    if value < green_from:
        return RAG_AMBER
    return RAG_GREEN


def rag_penalty(value: Decimal, amber_from: Decimal, red_from: Decimal) -> str:
    """Three-band, lower-is-better: green < amber_from ≤ amber < red_from ≤ red."""
    if value >= red_from:
        return RAG_RED
    if value >= amber_from:
        return RAG_AMBER
    return RAG_GREEN
