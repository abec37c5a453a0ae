from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from forecasta.services.collectors.census import CensusCollector
from forecasta.services.collectors.meta_ads import MetaAdsCollector
from forecasta.services.collectors.website import ScrapeError, WebsiteScraper

router = APIRouter(prefix="/collectors", tags=["collectors"])


class ScrapeRequest(BaseModel):
    url: str


@router.post("/website")
def scrape_website(body: ScrapeRequest):
    try:
        return WebsiteScraper().scrape(body.url)
    except ScrapeError as e:
        raise HTTPException(status_code=500, detail={"error": "Failed to scrape website", "details": str(e)})


@router.get("/census/{zip_code}")
def census_market(
    zip_code: str,
    average_transaction_value: float = Query(default=1000, gt=0),
):
    if not (zip_code.isdigit() and len(zip_code) == 5):
        raise HTTPException(status_code=400, detail="zip_code must be 5 digits")
    data = CensusCollector().market_size(zip_code, average_transaction_value=average_transaction_value)
    if data is None:
        raise HTTPException(status_code=404, detail="No census data for zip code")
    return data


@router.get("/meta-ads")
def meta_ads(
    q: str = Query(..., min_length=1),
    country: str = Query(default="US"),
    limit: int = Query(default=25, ge=1, le=100),
    competitor: Optional[bool] = Query(default=False),
):
    collector = MetaAdsCollector()
    if competitor:
        return {"competitor": collector.analyze_competitor(q, countries=[country])}
    return {"ads": collector.search_ads(q, countries=[country], limit=limit)}
