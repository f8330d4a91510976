# app/services/discount_resolution.py
"""
Discount resolution over active sale occasions.

Two modes exist because two read paths need different answers when campaigns
overlap for the same product:

* ``MAX_PERCENT``: catalog listings and product pages. The highest
  ``sale_percent`` among the active campaigns wins.
* ``LATEST_START``: the single-campaign sale page. The campaign that started
  most recently wins, whatever its percent.

Everything here is pure; campaigns come from the time-window resolver.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional


class ResolutionMode(str, enum.Enum):
    MAX_PERCENT = "max_percent"
    LATEST_START = "latest_start"


@dataclass(frozen=True)
class SaleEntry:
    product_id: int
    sale_quantity: int
    sale_percent: Decimal


@dataclass(frozen=True)
class ActiveCampaign:
    sale_id: int
    name: str
    start_at: datetime
    end_at: datetime
    entries: Mapping[int, SaleEntry] = field(default_factory=dict)


@dataclass(frozen=True)
class SaleDiscount:
    product_id: int
    sale_percent: Decimal
    sale_quantity: int
    sale_id: int
    sale_name: str
    sale_start: datetime
    sale_end: datetime


def _rank(mode: ResolutionMode, campaign: ActiveCampaign, entry: SaleEntry) -> tuple:
    # ties are broken on campaign fields so storage order never matters
    if mode is ResolutionMode.MAX_PERCENT:
        return (entry.sale_percent, campaign.start_at, -campaign.sale_id)
    if mode is ResolutionMode.LATEST_START:
        return (campaign.start_at, campaign.sale_id)
    raise ValueError(f"Unknown resolution mode: {mode}")


def resolve_discount(
    product_id: int,
    campaigns: Iterable[ActiveCampaign],
    mode: ResolutionMode = ResolutionMode.MAX_PERCENT,
) -> Optional[SaleDiscount]:
    """
    Pick the campaign entry that applies to ``product_id``.
    Returns None when no campaign lists the product; callers then fall back
    to the product's static discount.
    """
    best = None
    best_rank = None
    for campaign in campaigns:
        entry = campaign.entries.get(product_id)
        if entry is None:
            continue
        rank = _rank(mode, campaign, entry)
        if best_rank is None or rank > best_rank:
            best, best_rank = (campaign, entry), rank

    if best is None:
        return None

    campaign, entry = best
    return SaleDiscount(
        product_id=product_id,
        sale_percent=entry.sale_percent,
        sale_quantity=entry.sale_quantity,
        sale_id=campaign.sale_id,
        sale_name=campaign.name,
        sale_start=campaign.start_at,
        sale_end=campaign.end_at,
    )


def resolve_discounts(
    product_ids: Iterable[int],
    campaigns: Iterable[ActiveCampaign],
    mode: ResolutionMode = ResolutionMode.MAX_PERCENT,
) -> Dict[int, SaleDiscount]:
    """Batch form of resolve_discount; products without a campaign are left out."""
    campaigns = list(campaigns)
    resolved = {}
    for product_id in product_ids:
        discount = resolve_discount(product_id, campaigns, mode)
        if discount is not None:
            resolved[product_id] = discount
    return resolved


def campaign_product_ids(campaigns: Iterable[ActiveCampaign]) -> List[int]:
    seen = {}
    for campaign in campaigns:
        for product_id in campaign.entries:
            seen.setdefault(product_id, None)
    return list(seen)


def select_campaign(
    campaigns: Iterable[ActiveCampaign],
    mode: ResolutionMode = ResolutionMode.LATEST_START,
) -> Optional[ActiveCampaign]:
    """Choose one campaign out of several active ones."""
    best = None
    best_rank = None
    for campaign in campaigns:
        if mode is ResolutionMode.LATEST_START:
            rank = (campaign.start_at, campaign.sale_id)
        else:
            top = max((e.sale_percent for e in campaign.entries.values()), default=Decimal("0"))
            rank = (top, campaign.start_at, -campaign.sale_id)
        if best_rank is None or rank > best_rank:
            best, best_rank = campaign, rank
    return best
