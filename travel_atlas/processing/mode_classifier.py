"""
NSW Travel-to-Work Atlas - Mode Classifier
Maps free-text census method-of-travel labels to planning categories

The rule list below is ORDERED and first match wins. Order is part of
the contract: "Train, Car as driver" is mixed mode only because the
mixed rule is tested before the public transport rule, and every
"Worked at home" label is WFH because that rule precedes everything
except the non-informative one.

Matching is case-insensitive substring matching on the raw label.
Unrecognized labels fall through to OTHER; classification never fails.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Tuple

import pandas as pd

from travel_atlas.utils.logging import get_logger

logger = get_logger(__name__)


class ModeGroup(str, Enum):
    """Planning mode categories"""

    NON_INFORMATIVE = "NON_INFORMATIVE"
    WFH = "WFH"
    MIXED_PT_PRIVATE = "MIXED_PT_PRIVATE"
    PUBLIC_TRANSPORT = "PUBLIC_TRANSPORT"
    ACTIVE_TRANSPORT = "ACTIVE_TRANSPORT"
    PRIVATE_VEHICLE = "PRIVATE_VEHICLE"
    OTHER = "OTHER"


NON_INFORMATIVE_TERMS = ("NOT APPLICABLE", "DID NOT GO TO WORK", "NOT STATED")
WFH_TERMS = ("WORKED AT HOME",)
PUBLIC_TRANSPORT_TERMS = ("BUS", "TRAIN", "FERRY", "TRAM", "LIGHT RAIL")
# Private-side terms that make a public transport trip "mixed"
MIXED_PRIVATE_TERMS = ("CAR", "TRUCK", "MOTORBIKE", "SCOOTER", "DRIVER", "PASSENGER")
ACTIVE_TERMS = ("WALKED ONLY", "BICYCLE")
# Any of these disqualifies a walk/cycle label from ACTIVE_TRANSPORT
ACTIVE_EXCLUDED_TERMS = PUBLIC_TRANSPORT_TERMS + ("CAR", "TRUCK", "MOTORBIKE", "SCOOTER")
PRIVATE_VEHICLE_TERMS = ("CAR", "TRUCK", "MOTORBIKE", "SCOOTER", "TAXI")

# Label spellings folded before storage
LABEL_REPLACEMENTS = (
    ("Car, as driver", "Car as driver"),
    ("Car, as passenger", "Car as passenger"),
)


def _contains_any(label: str, terms: Tuple[str, ...]) -> bool:
    return any(term in label for term in terms)


@dataclass(frozen=True)
class ModeRule:
    """One (predicate, category) step of the ordered classifier."""

    name: str
    category: ModeGroup
    predicate: Callable[[str], bool]  # receives the uppercased label

    def matches(self, label: str) -> bool:
        return self.predicate(label)


MODE_RULES: Tuple[ModeRule, ...] = (
    ModeRule(
        name="non_informative",
        category=ModeGroup.NON_INFORMATIVE,
        predicate=lambda label: _contains_any(label, NON_INFORMATIVE_TERMS),
    ),
    ModeRule(
        name="worked_at_home",
        category=ModeGroup.WFH,
        predicate=lambda label: _contains_any(label, WFH_TERMS),
    ),
    ModeRule(
        name="public_and_private",
        category=ModeGroup.MIXED_PT_PRIVATE,
        predicate=lambda label: _contains_any(label, PUBLIC_TRANSPORT_TERMS)
        and _contains_any(label, MIXED_PRIVATE_TERMS),
    ),
    ModeRule(
        name="public_transport",
        category=ModeGroup.PUBLIC_TRANSPORT,
        predicate=lambda label: _contains_any(label, PUBLIC_TRANSPORT_TERMS),
    ),
    ModeRule(
        name="walk_or_cycle_only",
        category=ModeGroup.ACTIVE_TRANSPORT,
        predicate=lambda label: _contains_any(label, ACTIVE_TERMS)
        and not _contains_any(label, ACTIVE_EXCLUDED_TERMS),
    ),
    ModeRule(
        name="private_vehicle",
        category=ModeGroup.PRIVATE_VEHICLE,
        predicate=lambda label: _contains_any(label, PRIVATE_VEHICLE_TERMS),
    ),
)

DEFAULT_MODE_GROUP = ModeGroup.OTHER


def classify_mode(label) -> ModeGroup:
    """
    Classify one raw method-of-travel label.

    Args:
        label: Raw census label (any case; None/NaN allowed)

    Returns:
        The category of the first matching rule, else OTHER
    """
    if label is None or pd.isna(label):
        return DEFAULT_MODE_GROUP

    upper = str(label).upper()
    for rule in MODE_RULES:
        if rule.matches(upper):
            return rule.category

    return DEFAULT_MODE_GROUP


def is_informative(category: ModeGroup) -> bool:
    """True unless the label says nothing about travel behaviour."""
    return ModeGroup(category) != ModeGroup.NON_INFORMATIVE


def normalize_mode_label(label):
    """Fold comma variants of the car labels, then TRIM/UPPER."""
    if label is None or pd.isna(label):
        return pd.NA

    text = str(label)
    for old, new in LABEL_REPLACEMENTS:
        text = text.replace(old, new)
    return text.strip().upper()


def classify_modes(df: pd.DataFrame, label_col: str = "mode_raw") -> pd.DataFrame:
    """
    Add mode_raw_norm, mode_group and is_informative columns.

    Each distinct label is classified once and mapped back.

    Args:
        df: Frame with a raw label column
        label_col: Name of the raw label column

    Returns:
        Copy of df with the three classification columns
    """
    result = df.copy()
    labels = result[label_col].astype("string")

    distinct = labels.dropna().unique()
    groups = {label: classify_mode(label).value for label in distinct}
    norms = {label: normalize_mode_label(label) for label in distinct}

    result["mode_raw_norm"] = labels.map(norms).astype("string")
    result["mode_group"] = labels.map(groups).fillna(DEFAULT_MODE_GROUP.value).astype("string")
    result["is_informative"] = result["mode_group"] != ModeGroup.NON_INFORMATIVE.value
    result["is_informative"] = result["is_informative"].astype(bool)

    counts = result["mode_group"].value_counts()
    logger.debug(f"Mode groups: {counts.to_dict()}")

    return result
