import logging
from typing import List

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from errors import NotFound, StoreError
from models import Comment, Post, PostDetail, PostSummary, User

logger = logging.getLogger(__name__)


class ForumStorage:
    """Data access for users, posts and comments.

    Every statement is a SQLAlchemy construct, so user input only reaches the
    database as bound parameters. Lookups raise NotFound instead of returning
    an empty record. No ownership checks happen at this layer.
    """

    def __init__(self, session: Session):
        self.session = session

    def _exec(self, statement):
        logger.debug("%s", statement)
        try:
            return self.session.exec(statement)
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("query failed")
            raise StoreError() from exc

    def _commit(self):
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("commit failed")
            raise StoreError() from exc

    def _insert(self, record) -> int:
        """Add a row and commit it, returning the generated id."""
        try:
            self.session.add(record)
            self.session.flush()
            record_id = record.id
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("insert failed")
            raise StoreError() from exc
        return record_id

    def _first_or_404(self, statement, message: str):
        row = self._exec(statement).first()
        if row is None:
            raise NotFound(message)
        return row

    # users

    def find_user(self, username: str) -> User:
        return self._first_or_404(
            select(User).where(User.username == username), "The user does not exist."
        )

    def delete_user(self, username: str) -> None:
        user = self.find_user(username)
        self.session.delete(user)
        self._commit()
        logger.info("deleted user %s", username)

    # posts

    def create_post(self, username: str, title: str, content: str) -> int:
        post_id = self._insert(Post(username=username, title=title, content=content))
        logger.info("created post %s by %s", post_id, username)
        return post_id

    def _summaries(self, statement, offset: int) -> List[PostSummary]:
        return [
            PostSummary(
                id=row.id,
                username=row.username,
                title=row.title,
                created_on=row.created_on,
                comments=row.comment_count,
                rank=offset + index + 1,
            )
            for index, row in enumerate(self._exec(statement).all())
        ]

    def _summary_select(self):
        comment_count = func.count(col(Comment.id)).label("comment_count")
        statement = (
            select(Post.id, Post.username, Post.title, Post.created_on, comment_count)
            .join(Comment, col(Comment.post_id) == col(Post.id), isouter=True)
            .group_by(col(Post.id), col(Post.username), col(Post.title), col(Post.created_on))
        )
        return statement, comment_count

    def list_posts(self, offset: int, limit: int) -> List[PostSummary]:
        """Posts with the most comments first, newest first among equals."""
        statement, comment_count = self._summary_select()
        statement = (
            statement.order_by(
                comment_count.desc(), col(Post.created_on).desc(), col(Post.id).desc()
            )
            .offset(offset)
            .limit(limit)
        )
        return self._summaries(statement, offset)

    def count_posts(self) -> int:
        return self._exec(select(func.count(col(Post.id)))).one()

    def list_post_ids(self) -> List[int]:
        return list(self._exec(select(Post.id)).all())

    def find_post(self, post_id: int) -> PostDetail:
        post = self._first_or_404(
            select(Post).where(Post.id == post_id), "The post does not exist."
        )
        return PostDetail(
            id=post.id,
            username=post.username,
            title=post.title,
            content=post.content,
            created_on=post.created_on,
            comments=self._count_comments(post_id),
        )

    def edit_post(self, post_id: int, content: str) -> None:
        post = self._first_or_404(
            select(Post).where(Post.id == post_id), "The post does not exist."
        )
        post.content = content
        self.session.add(post)
        self._commit()
        logger.info("edited post %s", post_id)

    def delete_post(self, post_id: int) -> None:
        post = self._first_or_404(
            select(Post).where(Post.id == post_id), "The post does not exist."
        )
        self.session.delete(post)
        self._commit()
        logger.info("deleted post %s", post_id)

    def list_posts_by_user(self, username: str, offset: int, limit: int) -> List[PostSummary]:
        statement, _ = self._summary_select()
        statement = (
            statement.where(Post.username == username)
            .order_by(col(Post.created_on).desc(), col(Post.id).desc())
            .offset(offset)
            .limit(limit)
        )
        return self._summaries(statement, offset)

    def count_posts_by_user(self, username: str) -> int:
        return self._exec(
            select(func.count(col(Post.id))).where(Post.username == username)
        ).one()

    # comments

    def _count_comments(self, post_id: int) -> int:
        return self._exec(
            select(func.count(col(Comment.id))).where(Comment.post_id == post_id)
        ).one()

    def add_comment(self, post_id: int, username: str, content: str) -> int:
        comment_id = self._insert(Comment(post_id=post_id, username=username, content=content))
        logger.info("added comment %s on post %s by %s", comment_id, post_id, username)
        return comment_id

    def list_comments(self, post_id: int, offset: int, limit: int) -> List[Comment]:
        statement = (
            select(Comment)
            .where(Comment.post_id == post_id)
            .order_by(col(Comment.id).desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self._exec(statement).all())

    def find_comment(self, comment_id: int) -> Comment:
        return self._first_or_404(
            select(Comment).where(Comment.id == comment_id), "The comment does not exist."
        )

    def list_comment_ids(self) -> List[int]:
        return list(self._exec(select(Comment.id)).all())

    def edit_comment(self, comment_id: int, content: str) -> None:
        comment = self.find_comment(comment_id)
        comment.content = content
        self.session.add(comment)
        self._commit()
        logger.info("edited comment %s", comment_id)

    def delete_comment(self, comment_id: int) -> None:
        comment = self.find_comment(comment_id)
        self.session.delete(comment)
        self._commit()
        logger.info("deleted comment %s", comment_id)
