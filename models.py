from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    __tablename__ = "users"

    username: str = Field(sa_column=Column(String(100), primary_key=True))
    password: str = Field(sa_column=Column(Text, unique=True, nullable=False))


class Post(SQLModel, table=True):
    __tablename__ = "posts"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(
        sa_column=Column(Text, ForeignKey("users.username", ondelete="CASCADE"), nullable=False)
    )
    title: str = Field(sa_column=Column(String(100), nullable=False))
    content: str = Field(sa_column=Column(Text, nullable=False))
    created_on: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=False, server_default=func.now())
    )


class Comment(SQLModel, table=True):
    __tablename__ = "comments"

    id: Optional[int] = Field(default=None, primary_key=True)
    post_id: int = Field(
        sa_column=Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    )
    username: str = Field(
        sa_column=Column(Text, ForeignKey("users.username", ondelete="CASCADE"), nullable=False)
    )
    content: str = Field(sa_column=Column(Text, nullable=False))
    created_on: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=False, server_default=func.now())
    )


class PostSummary(SQLModel):
    id: int
    username: str
    title: str
    created_on: datetime
    comments: int = 0
    rank: int


class PostDetail(SQLModel):
    id: int
    username: str
    title: str
    content: str
    created_on: datetime
    comments: int = 0


class PageWindow(SQLModel):
    page: int
    max_page: int
    offset: int
    limit: int
