"""U.S. Census ACS 5-year demographics per ZIP and a simple TAM/SAM/SOM estimate."""

from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog

from forecasta.core.config import settings

logger = structlog.get_logger(__name__)

ACS_URL = "https://api.census.gov/data/2021/acs/acs5"

# total population, median household income, median home value,
# median age, households, per capita income
ACS_VARIABLES = ("B01003_001E", "B19013_001E", "B25077_001E", "B01002_001E", "B11001_001E", "B19301_001E")


def _float(v: Any) -> Optional[float]:
    # ACS encodes missing or suppressed estimates as large negatives (-666666666 ...)
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if f >= 0 else None


def _int(v: Any) -> Optional[int]:
    f = _float(v)
    return int(f) if f is not None else None


class CensusCollector:
    def __init__(self, api_key: Optional[str] = None, http_client: Optional[httpx.Client] = None):
        self.api_key = api_key if api_key is not None else settings.census_api_key
        self.http_client = http_client

    def _get(self, params: dict[str, str]) -> httpx.Response:
        if self.http_client is not None:
            return self.http_client.get(ACS_URL, params=params)
        with httpx.Client(timeout=settings.http_timeout_seconds) as client:
            return client.get(ACS_URL, params=params)

    def demographics(self, zip_code: str) -> Optional[dict[str, Any]]:
        params = {"get": ",".join(ACS_VARIABLES), "for": f"zip code tabulation area:{zip_code}"}
        if self.api_key:
            params["key"] = self.api_key

        try:
            r = self._get(params)
            r.raise_for_status()
            rows = r.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("census_request_failed", zip_code=zip_code, error=str(e))
            return None

        # [[header...], [values...]]
        if not isinstance(rows, list) or len(rows) < 2:
            logger.info("census_no_data", zip_code=zip_code)
            return None

        values = rows[1]
        out = {
            "zip_code": values[6] if len(values) > 6 else zip_code,
            "population": _int(values[0]) or 0,
            "median_household_income": _int(values[1]),
            "median_home_value": _int(values[2]),
            "median_age": _float(values[3]),
            "household_count": _int(values[4]) or None,
            "per_capita_income": _int(values[5]) or None,
        }
        logger.info("census_demographics", zip_code=zip_code, population=out["population"])
        return out

    def market_size(
        self,
        zip_code: str,
        average_transaction_value: float = 1000,
        penetration_rate: float = 0.05,
        serviceable_rate: float = 0.5,
        obtainable_rate: float = 0.1,
    ) -> Optional[dict[str, Any]]:
        demographics = self.demographics(zip_code)
        if not demographics:
            return None
        return {
            "demographics": demographics,
            **estimate_market_size(
                demographics,
                average_transaction_value,
                penetration_rate=penetration_rate,
                serviceable_rate=serviceable_rate,
                obtainable_rate=obtainable_rate,
            ),
            "insights": market_insights(demographics),
        }


def estimate_market_size(
    demographics: dict[str, Any],
    average_transaction_value: float,
    penetration_rate: float = 0.05,
    serviceable_rate: float = 0.5,
    obtainable_rate: float = 0.1,
) -> dict[str, Any]:
    population = demographics.get("population") or 0
    customers = int(population * penetration_rate)
    serviceable = int(customers * serviceable_rate)
    obtainable = int(serviceable * obtainable_rate)
    return {
        "population": population,
        "household_count": demographics.get("household_count") or 0,
        "median_income": demographics.get("median_household_income"),
        "estimated_customers": customers,
        "tam": customers * average_transaction_value,
        "sam": serviceable * average_transaction_value,
        "som": obtainable * average_transaction_value,
    }


def market_insights(demographics: dict[str, Any]) -> list[str]:
    insights = []
    income = demographics.get("median_household_income")
    population = demographics.get("population") or 0
    if income is not None:
        if income > 75000:
            insights.append("High-income area - premium pricing viable")
        elif income < 50000:
            insights.append("Budget-conscious market - value pricing recommended")
    if population > 50000:
        insights.append("Large population - sufficient market density")
    elif population < 10000:
        insights.append("Small population - may need to expand service area")
    return insights
