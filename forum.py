"""Request-level forum operations.

Each function takes the storage handle and the session username, checks
paging, existence and ownership, and only then touches the store.
"""
from typing import List, Optional, Tuple

from authorization import (
    Outcome,
    authorize_comment,
    authorize_post,
    post_exists,
    require_signed_in,
)
from errors import NotFound, ValidationError
from models import Comment, PageWindow, PostDetail, PostSummary
from pagination import resolve_page
from storage import ForumStorage

TITLE_MAX_LENGTH = 100


def validate_title(title: str, data: Optional[dict] = None) -> str:
    title = title.strip()
    if not 1 <= len(title) <= TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Title must be between 1 and {TITLE_MAX_LENGTH} characters.", data
        )
    return title


def validate_content(content: str, message: str, data: Optional[dict] = None) -> str:
    if not content or not content.strip():
        raise ValidationError(message, data)
    return content


def posts_page(
    storage: ForumStorage, raw_page: Optional[str]
) -> Tuple[PageWindow, List[PostSummary]]:
    window = resolve_page(raw_page, storage.count_posts())
    return window, storage.list_posts(window.offset, window.limit)


def load_post(storage: ForumStorage, post_id: int) -> PostDetail:
    if not post_exists(storage, post_id):
        raise NotFound("The post does not exist.")
    return storage.find_post(post_id)


def post_page(
    storage: ForumStorage, post_id: int, raw_page: Optional[str]
) -> Tuple[PostDetail, PageWindow, List[Comment]]:
    post = load_post(storage, post_id)
    window = resolve_page(raw_page, post.comments)
    return post, window, storage.list_comments(post_id, window.offset, window.limit)


def profile_page(
    storage: ForumStorage, session_user: Optional[str], raw_page: Optional[str]
) -> Tuple[PageWindow, List[PostSummary]]:
    username = require_signed_in(session_user)
    window = resolve_page(raw_page, storage.count_posts_by_user(username))
    return window, storage.list_posts_by_user(username, window.offset, window.limit)


def create_post(
    storage: ForumStorage, session_user: Optional[str], title: str, content: str
) -> int:
    username = require_signed_in(session_user)
    data = {"title": title, "content": content}
    title = validate_title(title, data)
    validate_content(content, "Post content cannot be empty!", data)
    return storage.create_post(username, title, content)


def edit_post(
    storage: ForumStorage, session_user: Optional[str], post_id: int, content: str
) -> Outcome:
    require_signed_in(session_user)
    outcome = authorize_post(storage, post_id, session_user)
    if outcome is Outcome.OK:
        validate_content(content, "Post content cannot be empty!", {"content": content})
        storage.edit_post(post_id, content)
    return outcome


def delete_post(storage: ForumStorage, session_user: Optional[str], post_id: int) -> Outcome:
    require_signed_in(session_user)
    outcome = authorize_post(storage, post_id, session_user)
    if outcome is Outcome.OK:
        storage.delete_post(post_id)
    return outcome


def add_comment(
    storage: ForumStorage, session_user: Optional[str], post_id: int, content: str
) -> int:
    username = require_signed_in(session_user)
    if not post_exists(storage, post_id):
        raise NotFound("The post does not exist.")
    validate_content(content, "Comment cannot be empty!", {"content": content})
    return storage.add_comment(post_id, username, content)


def load_own_comment(
    storage: ForumStorage, session_user: Optional[str], post_id: int, comment_id: int
) -> Comment:
    require_signed_in(session_user)
    if authorize_comment(storage, comment_id, session_user, post_id) is not Outcome.OK:
        raise NotFound("The comment does not exist.")
    return storage.find_comment(comment_id)


def edit_comment(
    storage: ForumStorage,
    session_user: Optional[str],
    post_id: int,
    comment_id: int,
    content: str,
) -> Outcome:
    require_signed_in(session_user)
    outcome = authorize_comment(storage, comment_id, session_user, post_id)
    if outcome is Outcome.OK:
        validate_content(content, "Comment cannot be empty!", {"comment_content": content})
        storage.edit_comment(comment_id, content)
    return outcome


def delete_comment(
    storage: ForumStorage, session_user: Optional[str], post_id: int, comment_id: int
) -> Outcome:
    require_signed_in(session_user)
    outcome = authorize_comment(storage, comment_id, session_user, post_id)
    if outcome is Outcome.OK:
        storage.delete_comment(comment_id)
    return outcome
