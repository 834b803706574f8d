def normalize_click(click):
    return {
        "id": click.id,
        "block_id": click.block_id,
        "timestamp": click.timestamp.isoformat() if click.timestamp else None,
        "referrer": click.referrer,
        "user_agent": click.user_agent,
        "country": click.country,
    }


def normalize_block_analytics(block, analytics):
    return {
        "block_id": block.id,
        "slug": block.slug,
        "total_clicks": analytics["total_clicks"],
        "recent_clicks": [normalize_click(c) for c in analytics["recent_clicks"]],
        "daily_stats": analytics["daily_stats"],
    }
