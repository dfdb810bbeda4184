"""Data transformation and normalization of Graph API payloads and legacy exports."""

from datetime import datetime

import pandas as pd

from civicscrape.models.comment import ScrapedComment
from civicscrape.models.fields import to_utc, utcnow
from civicscrape.models.page import PageMetadata
from civicscrape.models.post import PageReference, ScrapedPost


def normalize_count(count_str: str | int | None) -> int:
    """
    Convert count strings to integers.

    Examples:
        "1.2K" -> 1200
        "1M" -> 1000000
        "500" -> 500
        "1,234" -> 1234
    """
    if count_str is None:
        return 0
    if isinstance(count_str, int):
        return count_str

    count_str = count_str.strip().upper().replace(",", "")

    if not count_str:
        return 0

    multipliers = {
        "K": 1_000,
        "M": 1_000_000,
        "B": 1_000_000_000,
    }

    for suffix, multiplier in multipliers.items():
        if count_str.endswith(suffix):
            try:
                number = float(count_str[:-1])
                return int(number * multiplier)
            except ValueError:
                return 0

    try:
        return int(float(count_str))
    except ValueError:
        return 0


def parse_graph_time(date_str: str | None) -> datetime | None:
    """
    Parse Graph API and legacy export timestamps into UTC datetimes.

    Examples:
        "2024-01-05T10:00:00+0000" -> datetime(2024, 1, 5, 10, tzinfo=UTC)
        "2016-03-01 09:30" -> datetime(2016, 3, 1, 9, 30, tzinfo=UTC)
    """
    if not date_str or not date_str.strip():
        return None

    date_str = date_str.strip()

    # Graph API: "2024-01-05T10:00:00+0000"
    try:
        return to_utc(datetime.strptime(date_str, "%Y-%m-%dT%H:%M:%S%z"))
    except ValueError:
        pass

    try:
        return to_utc(datetime.fromisoformat(date_str.replace("Z", "+00:00")))
    except ValueError:
        pass

    # Spreadsheet exports: "3/1/2016 9:30", "01 Mar 2016", ...
    try:
        parsed = pd.to_datetime(date_str)
    except (ValueError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return to_utc(parsed.to_pydatetime())


def _summary_count(raw: dict, key: str) -> int:
    return normalize_count(raw.get(key, {}).get("summary", {}).get("total_count"))


def transform_page(raw: dict, scraped_at: datetime | None = None) -> PageMetadata:
    """
    Transform a raw Graph page object to a validated PageMetadata model.

    Args:
        raw: Page object with id, name, category, fan_count, link, about
        scraped_at: Scrape timestamp, defaults to now

    Returns:
        Validated PageMetadata model
    """
    scraped_at = scraped_at or utcnow()
    return PageMetadata(
        id=raw["id"],
        name=raw.get("name"),
        category=raw.get("category"),
        fan_count=raw.get("fan_count"),
        link=raw.get("link"),
        about=raw.get("about"),
        created=scraped_at,
        last_scraped=scraped_at,
    )


def transform_post(raw: dict, page: PageMetadata, scraped_at: datetime | None = None) -> ScrapedPost:
    """
    Transform a raw Graph post object to a validated ScrapedPost model.

    Args:
        raw: Post object from the ``/{page}/posts`` edge
        page: Page that published the post
        scraped_at: Ingestion timestamp, defaults to now

    Returns:
        Validated ScrapedPost model
    """
    return ScrapedPost(
        id=raw["id"],
        page=PageReference(id=page.id, name=page.name),
        created_time=parse_graph_time(raw.get("created_time")),
        scraped=scraped_at or utcnow(),
        message=raw.get("message"),
        story=raw.get("story"),
        type=raw.get("status_type") or raw.get("type"),
        permalink_url=raw.get("permalink_url"),
        link=raw.get("link"),
        reactions_count=_summary_count(raw, "reactions"),
        comments_count=_summary_count(raw, "comments"),
        shares_count=normalize_count(raw.get("shares", {}).get("count")),
    )


def transform_comment(raw: dict, post_id: str, scraped_at: datetime | None = None) -> ScrapedComment:
    """Transform a raw Graph comment object to a validated ScrapedComment model."""
    return ScrapedComment(
        id=raw["id"],
        post_id=post_id,
        created_time=parse_graph_time(raw.get("created_time")),
        scraped=scraped_at or utcnow(),
        message=raw.get("message"),
        from_name=(raw.get("from") or {}).get("name"),
        like_count=normalize_count(raw.get("like_count")),
        parent_id=(raw.get("parent") or {}).get("id"),
    )
