import enum
from typing import Optional

from errors import NotFound, Unauthenticated
from storage import ForumStorage


class Outcome(str, enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


def require_signed_in(session_user: Optional[str], return_to: Optional[str] = None) -> str:
    if not session_user:
        raise Unauthenticated(return_to)
    return session_user


def post_exists(storage: ForumStorage, post_id: int) -> bool:
    return post_id in storage.list_post_ids()


def comment_exists(storage: ForumStorage, comment_id: int) -> bool:
    return comment_id in storage.list_comment_ids()


def is_owner(record, session_user: Optional[str]) -> bool:
    return session_user is not None and record.username == session_user


def authorize_post(storage: ForumStorage, post_id: int, session_user: Optional[str]) -> Outcome:
    """Check that the post exists and belongs to the session user.

    The stored owner is always re-read from the database.
    """
    if not post_exists(storage, post_id):
        return Outcome.NOT_FOUND
    try:
        post = storage.find_post(post_id)
    except NotFound:
        return Outcome.NOT_FOUND
    return Outcome.OK if is_owner(post, session_user) else Outcome.FORBIDDEN


def authorize_comment(
    storage: ForumStorage,
    comment_id: int,
    session_user: Optional[str],
    post_id: Optional[int] = None,
) -> Outcome:
    if not comment_exists(storage, comment_id):
        return Outcome.NOT_FOUND
    try:
        comment = storage.find_comment(comment_id)
    except NotFound:
        return Outcome.NOT_FOUND
    if post_id is not None and comment.post_id != post_id:
        return Outcome.NOT_FOUND
    return Outcome.OK if is_owner(comment, session_user) else Outcome.FORBIDDEN
