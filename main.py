import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Form, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
import uvicorn

import forum
from authorization import Outcome, require_signed_in
from config import settings
from database import build_engine, create_db_and_tables, get_storage
from errors import InvalidPage, NotFound, StoreError, Unauthenticated, ValidationError
from formatting import comments_label, time_ago
from security import authenticate
from storage import ForumStorage

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

PAGE_PARAMS = ["page", "post_comments_page", "posts_profile_page"]
POST_ID_PARAMS = ("id", "post_id")

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=302)


def flash(request: Request, kind: str, message: str) -> None:
    request.session[kind] = message


def pop_flash(request: Request) -> dict:
    return {kind: request.session.pop(kind) for kind in ("success", "error") if kind in request.session}


def signed_in(request: Request) -> str:
    return_to = None
    if request.method == "GET":
        return_to = request.url.path + (f"?{request.url.query}" if request.url.query else "")
    return require_signed_in(request.session.get("username"), return_to)


def present_post(post, now=None) -> dict:
    return {
        **post.model_dump(),
        "comments_label": comments_label(post.comments),
        "posted": time_ago(post.created_on, now),
    }


def present_comment(comment, now=None) -> dict:
    return {**comment.model_dump(), "posted": time_ago(comment.created_on, now)}


# Exception handlers


async def unauthenticated_handler(request: Request, exc: Unauthenticated):
    flash(request, "error", exc.message)
    if exc.return_to:
        request.session["return_to"] = exc.return_to
    return redirect("/users/signin")


async def invalid_page_handler(request: Request, exc: InvalidPage):
    flash(request, "error", exc.message)
    url = request.url.remove_query_params(PAGE_PARAMS)
    return redirect(url.path + (f"?{url.query}" if url.query else ""))


async def not_found_handler(request: Request, exc: NotFound):
    flash(request, "error", exc.message)
    return redirect("/")


async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse({"error": exc.message, "data": exc.data}, status_code=422)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    # malformed ids are treated like ids that do not exist
    bad_ids = {
        error["loc"][-1]
        for error in exc.errors()
        if error["loc"][0] in ("path", "query") and error["loc"][-1] in POST_ID_PARAMS + ("comment_id",)
    }
    if not bad_ids:
        fields = [str(error["loc"][-1]) for error in exc.errors()]
        return JSONResponse({"error": "Invalid input.", "data": {"fields": fields}}, status_code=422)

    if bad_ids & set(POST_ID_PARAMS):
        flash(request, "error", "The post does not exist.")
        return redirect("/")
    flash(request, "error", "The comment does not exist.")
    post_id = request.path_params.get("post_id") or request.query_params.get("post_id")
    return redirect(f"/post?id={post_id}")


async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse({"error": "Something went wrong."}, status_code=500)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        flash(request, "error", "Page not found!")
        return redirect("/")
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


# Posts


@router.get("/")
def index(
    request: Request,
    page: Optional[str] = None,
    username: str = Depends(signed_in),
    storage: ForumStorage = Depends(get_storage),
):
    window, posts = forum.posts_page(storage, page)
    return {
        "user": username,
        "flash": pop_flash(request),
        "page": window,
        "posts": [present_post(post) for post in posts],
    }


@router.get("/post")
def show_post(
    request: Request,
    id: int,
    post_comments_page: Optional[str] = None,
    username: str = Depends(signed_in),
    storage: ForumStorage = Depends(get_storage),
):
    post, window, comments = forum.post_page(storage, id, post_comments_page)
    return {
        "user": username,
        "flash": pop_flash(request),
        "post": present_post(post),
        "page": window,
        "comments": [present_comment(comment) for comment in comments],
    }


@router.get("/new")
def new_post(request: Request, username: str = Depends(signed_in)):
    return {"user": username, "flash": pop_flash(request), "title_max_length": forum.TITLE_MAX_LENGTH}


@router.post("/create")
def create_post(
    request: Request,
    title: str = Form(default=""),
    content: str = Form(default=""),
    username: str = Depends(signed_in),
    storage: ForumStorage = Depends(get_storage),
):
    post_id = forum.create_post(storage, username, title, content)
    flash(request, "success", "Yay! The post was created.")
    return redirect(f"/post?id={post_id}")


@router.post("/post/{post_id}/edit")
def edit_post(
    request: Request,
    post_id: int,
    content: str = Form(default=""),
    username: str = Depends(signed_in),
    storage: ForumStorage = Depends(get_storage),
):
    try:
        outcome = forum.edit_post(storage, username, post_id, content)
    except ValidationError as exc:
        flash(request, "error", exc.message)
        return redirect(f"/post?id={post_id}")

    if outcome is Outcome.OK:
        flash(request, "success", "The post has been saved.")
        return redirect(f"/post?id={post_id}")
    if outcome is Outcome.NOT_FOUND:
        flash(request, "error", "The post does not exist.")
    else:
        flash(request, "error", "You can only edit your own posts.")
    return redirect("/")


@router.post("/post/{post_id}/delete")
def delete_post(
    request: Request,
    post_id: int,
    username: str = Depends(signed_in),
    storage: ForumStorage = Depends(get_storage),
):
    outcome = forum.delete_post(storage, username, post_id)
    if outcome is Outcome.OK:
        flash(request, "success", "The post has been deleted.")
    elif outcome is Outcome.NOT_FOUND:
        flash(request, "error", "The post does not exist.")
    else:
        flash(request, "error", "You can only delete your own posts.")
    return redirect("/")


# Comments


@router.post("/post/{post_id}/add_comment")
@limiter.limit(settings.COMMENT_RATE_LIMIT)
def add_comment(
    request: Request,
    post_id: int,
    content: str = Form(default=""),
    username: str = Depends(signed_in),
    storage: ForumStorage = Depends(get_storage),
):
    try:
        forum.add_comment(storage, username, post_id, content)
    except ValidationError as exc:
        flash(request, "error", exc.message)
    else:
        flash(request, "success", "Your comment was added.")
    return redirect(f"/post?id={post_id}")


@router.get("/comment")
def show_comment(
    request: Request,
    post_id: int,
    comment_id: int,
    username: str = Depends(signed_in),
    storage: ForumStorage = Depends(get_storage),
):
    try:
        comment = forum.load_own_comment(storage, username, post_id, comment_id)
    except NotFound as exc:
        flash(request, "error", exc.message)
        return redirect(f"/post?id={post_id}")
    return {"user": username, "flash": pop_flash(request), "comment": present_comment(comment)}


@router.post("/post/{post_id}/comment/{comment_id}/edit")
def edit_comment(
    request: Request,
    post_id: int,
    comment_id: int,
    comment_content: str = Form(default=""),
    username: str = Depends(signed_in),
    storage: ForumStorage = Depends(get_storage),
):
    try:
        outcome = forum.edit_comment(storage, username, post_id, comment_id, comment_content)
    except ValidationError as exc:
        flash(request, "error", exc.message)
        return redirect(f"/comment?post_id={post_id}&comment_id={comment_id}")

    if outcome is Outcome.OK:
        flash(request, "success", "The comment has been saved.")
    elif outcome is Outcome.NOT_FOUND:
        flash(request, "error", "The comment does not exist.")
    else:
        flash(request, "error", "You can only edit your own comments.")
    return redirect(f"/post?id={post_id}")


@router.post("/post/{post_id}/comment/{comment_id}/delete")
def delete_comment(
    request: Request,
    post_id: int,
    comment_id: int,
    username: str = Depends(signed_in),
    storage: ForumStorage = Depends(get_storage),
):
    outcome = forum.delete_comment(storage, username, post_id, comment_id)
    if outcome is Outcome.OK:
        flash(request, "success", "The comment has been deleted.")
    elif outcome is Outcome.NOT_FOUND:
        flash(request, "error", "The comment does not exist.")
    else:
        flash(request, "error", "You can only delete your own comments.")
    return redirect(f"/post?id={post_id}")


# Users


@router.get("/profile")
def profile(
    request: Request,
    posts_profile_page: Optional[str] = None,
    username: str = Depends(signed_in),
    storage: ForumStorage = Depends(get_storage),
):
    window, posts = forum.profile_page(storage, username, posts_profile_page)
    return {
        "user": username,
        "flash": pop_flash(request),
        "page": window,
        "posts": [present_post(post) for post in posts],
    }


@router.get("/users/signin")
def signin_form(request: Request):
    if request.session.get("username"):
        return redirect("/")
    return {"flash": pop_flash(request)}


@router.post("/users/signin")
@limiter.limit(settings.SIGNIN_RATE_LIMIT)
def signin(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    storage: ForumStorage = Depends(get_storage),
):
    return_to = request.session.pop("return_to", None)
    if authenticate(storage, username, password):
        request.session["username"] = username
        flash(request, "success", "Welcome!")
        return redirect(return_to or "/")

    logger.warning("failed sign in for %s", username)
    if return_to:
        request.session["return_to"] = return_to
    return JSONResponse({"error": "Invalid credentials!", "username": username}, status_code=422)


@router.post("/users/signout")
def signout(request: Request):
    request.session.pop("username", None)
    return redirect("/users/signin")


def create_app(engine: Optional[Engine] = None) -> FastAPI:
    app = FastAPI()
    app.state.engine = engine if engine is not None else build_engine(settings.DATABASE_URL)
    app.state.limiter = limiter
    app.add_middleware(SessionMiddleware, secret_key=settings.SESSION_SECRET)

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(Unauthenticated, unauthenticated_handler)
    app.add_exception_handler(InvalidPage, invalid_page_handler)
    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.include_router(router)

    @app.on_event("startup")
    def on_startup():
        create_db_and_tables(app.state.engine)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host="127.0.0.1", port=8000)
