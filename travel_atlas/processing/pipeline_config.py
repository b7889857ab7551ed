"""
NSW Travel-to-Work Atlas - Pipeline Configuration
Validated, immutable analysis parameters

Built once from settings before any feed is read. Any violation
(weights not summing to 1.0, negative weight or threshold, unknown
census year, base year not before candidate year) raises
ConfigurationError immediately.
"""

import math
from dataclasses import dataclass, field, fields
from typing import Tuple

from travel_atlas.utils.year_policy import CENSUS_YEARS, is_census_year


class ConfigurationError(ValueError):
    """Pipeline parameters that would silently skew the results."""


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the five composite score components"""

    cbd_volume: float = 0.40
    cbd_growth: float = 0.20
    pt_gap: float = 0.20
    wfh_gap: float = 0.10
    mixed_mode: float = 0.10

    def __post_init__(self):
        for weight in fields(self):
            value = getattr(self, weight.name)
            if value is None or math.isnan(value) or value < 0:
                raise ConfigurationError(f"Weight {weight.name} must be >= 0, got {value}")

        total = self.total()
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ConfigurationError(f"Scoring weights must sum to 1.0, got {total:.6f}")

    def total(self) -> float:
        return sum(getattr(self, weight.name) for weight in fields(self))

    def as_dict(self) -> dict:
        return {weight.name: getattr(self, weight.name) for weight in fields(self)}


@dataclass(frozen=True)
class PipelineConfig:
    """
    Analysis parameters for one pipeline run.

    Attributes:
        jurisdiction: Residence-side state filter
        cbd_region_name: SA3 name whose member SA2s stand in for the CBD
        excluded_workplace_codes: Reserved non-geographic workplace codes
        min_cbd_commuters: Eligibility floor on CBD-bound commuters
        min_total_commuters: Eligibility floor on total OD commuters
        candidate_year: Census year the shortlist is scored for
        growth_base_year: Earlier census the CBD growth is measured from
        weights: Composite score weights
    """

    jurisdiction: str = "New South Wales"
    cbd_region_name: str = "Sydney Inner City"
    excluded_workplace_codes: Tuple[str, ...] = ("197979799",)
    min_cbd_commuters: int = 50
    min_total_commuters: int = 500
    candidate_year: int = 2021
    growth_base_year: int = 2016
    weights: ScoringWeights = field(default_factory=ScoringWeights)

    def __post_init__(self):
        if not self.jurisdiction or not self.jurisdiction.strip():
            raise ConfigurationError("Jurisdiction name must not be empty")

        if not self.cbd_region_name or not self.cbd_region_name.strip():
            raise ConfigurationError("CBD proxy region name must not be empty")

        # Accept any iterable of codes but store an immutable tuple
        object.__setattr__(
            self,
            "excluded_workplace_codes",
            tuple(str(code).strip() for code in self.excluded_workplace_codes),
        )

        for name in ("min_cbd_commuters", "min_total_commuters"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {getattr(self, name)}")

        for name in ("candidate_year", "growth_base_year"):
            if not is_census_year(getattr(self, name)):
                raise ConfigurationError(
                    f"{name}={getattr(self, name)} is not one of the census years {list(CENSUS_YEARS)}"
                )

        if self.growth_base_year >= self.candidate_year:
            raise ConfigurationError(
                f"Growth base year ({self.growth_base_year}) must precede "
                f"candidate year ({self.candidate_year})"
            )

    @classmethod
    def from_settings(cls, settings) -> "PipelineConfig":
        """
        Build a validated configuration from application settings.

        Args:
            settings: config.settings.Settings instance

        Returns:
            PipelineConfig

        Raises:
            ConfigurationError: If any parameter is invalid
        """
        return cls(
            jurisdiction=settings.JURISDICTION_NAME,
            cbd_region_name=settings.CBD_PROXY_SA3_NAME,
            excluded_workplace_codes=tuple(settings.EXCLUDED_WORKPLACE_CODES),
            min_cbd_commuters=settings.MIN_CBD_COMMUTERS,
            min_total_commuters=settings.MIN_TOTAL_COMMUTERS,
            candidate_year=settings.CANDIDATE_YEAR,
            growth_base_year=settings.GROWTH_BASE_YEAR,
            weights=ScoringWeights(
                cbd_volume=settings.WEIGHT_CBD_VOLUME,
                cbd_growth=settings.WEIGHT_CBD_GROWTH,
                pt_gap=settings.WEIGHT_PT_GAP,
                wfh_gap=settings.WEIGHT_WFH_GAP,
                mixed_mode=settings.WEIGHT_MIXED_MODE,
            ),
        )
