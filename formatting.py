from datetime import datetime
from typing import Optional


def time_ago(created_on: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    hours = max(int((now - created_on).total_seconds() // 3600), 0)
    days = hours // 24

    if hours == 0:
        return "just a while ago"
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"
    if days > 1:
        return f"{days} days ago"
    return "1 day ago"


def comments_label(count: int) -> str:
    if count == 0:
        return "no comments"
    if count == 1:
        return "1 comment"
    return f"{count} comments"
