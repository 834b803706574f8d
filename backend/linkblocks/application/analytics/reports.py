import csv
import io
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy import func, select

from linkblocks.extensions import db
from linkblocks.models import Click, ContentBlock

COUNTRY_NAMES = {
    "US": "United States", "CA": "Canada", "GB": "United Kingdom",
    "DE": "Germany", "FR": "France", "ES": "Spain", "IT": "Italy",
    "NL": "Netherlands", "AU": "Australia", "JP": "Japan", "CN": "China",
    "IN": "India", "BR": "Brazil", "MX": "Mexico", "KR": "South Korea",
    "SG": "Singapore", "CH": "Switzerland", "SE": "Sweden", "NO": "Norway",
    "DK": "Denmark", "FI": "Finland", "BE": "Belgium", "AT": "Austria",
    "IE": "Ireland", "PT": "Portugal", "PL": "Poland", "CZ": "Czech Republic",
    "GR": "Greece", "TR": "Turkey", "IL": "Israel", "AE": "UAE",
    "ZA": "South Africa", "NG": "Nigeria", "KE": "Kenya", "AR": "Argentina",
    "NZ": "New Zealand", "UA": "Ukraine", "RO": "Romania",
}

CSV_HEADERS = [
    "Timestamp",
    "Block Slug",
    "Block Title",
    "Target URL",
    "Referrer",
    "User Agent",
    "IP Address",
    "Country Code",
    "Country Name",
]


class DateRange(NamedTuple):
    start: datetime
    end: datetime


def country_name(code: Optional[str]) -> str:
    if not code:
        return ""
    return COUNTRY_NAMES.get(code.upper(), code)


def _in_range(query, date_range: Optional[DateRange]):
    if date_range is None:
        return query
    return query.where(Click.timestamp >= date_range.start, Click.timestamp <= date_range.end)


def block_analytics(block_id: str, *, days: int = 30) -> Dict[str, Any]:
    since = datetime.now(timezone.utc) - timedelta(days=days)

    total = db.session.execute(
        select(func.count(Click.id)).where(Click.block_id == block_id)
    ).scalar() or 0

    recent = (
        Click.query
        .filter(Click.block_id == block_id)
        .order_by(Click.timestamp.desc())
        .limit(10)
        .all()
    )

    day = func.date(Click.timestamp)
    daily = db.session.execute(
        select(day.label("date"), func.count(Click.id).label("count"))
        .where(Click.block_id == block_id, Click.timestamp >= since)
        .group_by(day)
        .order_by(day)
    ).all()

    return {
        "total_clicks": total,
        "recent_clicks": recent,
        "daily_stats": [{"date": str(row.date), "count": row.count} for row in daily],
    }


def clicks_by_country(date_range: Optional[DateRange] = None, *, limit: int = 20) -> List[Dict[str, Any]]:
    query = (
        select(Click.country, func.count(Click.id).label("clicks"))
        .where(Click.country.is_not(None))
        .group_by(Click.country)
        .order_by(func.count(Click.id).desc())
        .limit(limit)
    )
    rows = db.session.execute(_in_range(query, date_range)).all()

    return [
        {"country": row.country, "name": country_name(row.country), "clicks": row.clicks}
        for row in rows
    ]


def export_csv(date_range: Optional[DateRange] = None) -> str:
    query = (
        select(Click, ContentBlock.slug, ContentBlock.renderer, ContentBlock.data)
        .join(ContentBlock, Click.block_id == ContentBlock.id)
        .order_by(Click.timestamp.desc())
    )
    rows = db.session.execute(_in_range(query, date_range)).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    for click, slug, renderer, data in rows:
        data = data if isinstance(data, dict) else {}
        writer.writerow([
            click.timestamp.isoformat(),
            slug,
            data.get("title") or slug,
            data.get("url", "") if renderer == "redirect" else "",
            click.referrer or "",
            click.user_agent or "",
            click.ip_address or "",
            click.country or "",
            country_name(click.country),
        ])

    return buffer.getvalue()
