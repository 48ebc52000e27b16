import pytest
from sqlmodel import Session

from conftest import sign_in
from config import settings
from errors import StoreError
from storage import ForumStorage


def create_post(engine, username="alice", title="Hello", content="World"):
    with Session(engine) as session:
        return ForumStorage(session).create_post(username, title, content)


def test_pages_require_sign_in_and_remember_location(client):
    response = client.get("/profile?posts_profile_page=1", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/users/signin"
    assert client.get("/users/signin").json()["flash"] == {"error": "You must be signed in."}

    response = sign_in(client)
    assert response.status_code == 302
    assert response.headers["location"] == "/profile?posts_profile_page=1"


def test_sign_in_with_wrong_password(client):
    response = client.post("/users/signin", data={"username": "alice", "password": "nope"})

    assert response.status_code == 422
    assert response.json()["error"] == "Invalid credentials!"


def test_sign_in_and_out(client):
    sign_in(client)
    body = client.get("/").json()
    assert body["user"] == "alice"
    assert body["flash"] == {"success": "Welcome!"}
    assert body["page"]["max_page"] == 1
    assert body["posts"] == []

    client.post("/users/signout", follow_redirects=False)
    assert client.get("/", follow_redirects=False).headers["location"] == "/users/signin"


def test_create_post_flow(client):
    sign_in(client)

    response = client.post("/create", data={"title": "Hello", "content": "World"}, follow_redirects=False)
    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("/post?id=")

    body = client.get(location).json()
    assert body["flash"] == {"success": "Yay! The post was created."}
    assert body["post"]["title"] == "Hello"
    assert body["post"]["comments"] == 0
    assert body["post"]["comments_label"] == "no comments"
    assert body["comments"] == []


def test_create_post_with_long_title_keeps_form_data(client):
    sign_in(client)
    title = "x" * 101

    response = client.post("/create", data={"title": title, "content": "World"})

    assert response.status_code == 422
    assert response.json() == {
        "error": "Title must be between 1 and 100 characters.",
        "data": {"title": title, "content": "World"},
    }


def test_invalid_page_redirects_with_message(client, engine):
    post_id = create_post(engine)
    sign_in(client)

    response = client.get("/?page=3abc", follow_redirects=False)
    assert response.headers["location"] == "/"

    response = client.get(f"/post?id={post_id}&post_comments_page=2", follow_redirects=False)
    assert response.headers["location"] == f"/post?id={post_id}"
    assert client.get(f"/post?id={post_id}").json()["flash"]["error"] == "Invalid page!"


def test_missing_post_redirects_home(client):
    sign_in(client)

    response = client.get("/post?id=999", follow_redirects=False)

    assert response.headers["location"] == "/"
    assert client.get("/").json()["flash"]["error"] == "The post does not exist."


def test_non_owner_cannot_edit_or_delete(client, engine):
    post_id = create_post(engine, username="alice", content="original")
    sign_in(client, "bob")

    response = client.post(f"/post/{post_id}/edit", data={"content": "hijacked"}, follow_redirects=False)
    assert response.headers["location"] == "/"
    assert client.get("/").json()["flash"]["error"] == "You can only edit your own posts."

    client.post(f"/post/{post_id}/delete", follow_redirects=False)
    body = client.get(f"/post?id={post_id}").json()
    assert body["post"]["content"] == "original"


def test_owner_edits_and_deletes_post(client, engine):
    post_id = create_post(engine, username="alice", content="original")
    sign_in(client)

    client.post(f"/post/{post_id}/edit", data={"content": "revised"}, follow_redirects=False)
    body = client.get(f"/post?id={post_id}").json()
    assert body["flash"] == {"success": "The post has been saved."}
    assert body["post"]["content"] == "revised"

    client.post(f"/post/{post_id}/delete", follow_redirects=False)
    body = client.get("/").json()
    assert body["flash"] == {"success": "The post has been deleted."}
    assert body["posts"] == []


def test_comment_flow(client, engine):
    post_id = create_post(engine, username="alice")
    sign_in(client, "bob")

    client.post(f"/post/{post_id}/add_comment", data={"content": "   "}, follow_redirects=False)
    assert client.get(f"/post?id={post_id}").json()["flash"]["error"] == "Comment cannot be empty!"

    for n in range(3):
        client.post(f"/post/{post_id}/add_comment", data={"content": f"reply {n}"}, follow_redirects=False)
    body = client.get(f"/post?id={post_id}").json()
    assert body["post"]["comments"] == 3
    assert [c["content"] for c in body["comments"]] == ["reply 2", "reply 1", "reply 0"]

    comment_id = body["comments"][0]["id"]
    assert client.get(f"/comment?post_id={post_id}&comment_id={comment_id}").json()["comment"]["id"] == comment_id

    response = client.post(
        f"/post/{post_id}/comment/{comment_id}/edit",
        data={"comment_content": ""},
        follow_redirects=False,
    )
    assert response.headers["location"] == f"/comment?post_id={post_id}&comment_id={comment_id}"
    assert client.get(response.headers["location"]).json()["flash"] == {"error": "Comment cannot be empty!"}

    client.post(
        f"/post/{post_id}/comment/{comment_id}/edit",
        data={"comment_content": "edited"},
        follow_redirects=False,
    )
    body = client.get(f"/post?id={post_id}").json()
    assert body["flash"] == {"success": "The comment has been saved."}
    assert body["comments"][0]["content"] == "edited"

    client.post(f"/post/{post_id}/comment/{comment_id}/delete", follow_redirects=False)
    assert client.get(f"/post?id={post_id}").json()["post"]["comments"] == 2


def test_other_users_comment_is_not_shown_for_editing(client, engine):
    post_id = create_post(engine, username="alice")
    with Session(engine) as session:
        comment_id = ForumStorage(session).add_comment(post_id, "bob", "mine")
    sign_in(client)

    response = client.get(f"/comment?post_id={post_id}&comment_id={comment_id}", follow_redirects=False)

    assert response.headers["location"] == f"/post?id={post_id}"
    assert client.get(f"/post?id={post_id}").json()["flash"]["error"] == "The comment does not exist."


def test_profile_lists_own_posts(client, engine):
    create_post(engine, username="alice", title="mine")
    create_post(engine, username="bob", title="his")
    sign_in(client)

    body = client.get("/profile").json()

    assert [p["title"] for p in body["posts"]] == ["mine"]


def test_unknown_route_redirects_home(client):
    sign_in(client)

    response = client.get("/nowhere", follow_redirects=False)

    assert response.headers["location"] == "/"
    assert client.get("/").json()["flash"]["error"] == "Page not found!"


def rate_limit_amount(limit):
    return int(limit.split("/")[0])


@pytest.mark.parametrize("url", ["/post?id=abc", "/post", "/post?id="])
def test_malformed_post_id_redirects_home(client, url):
    sign_in(client)

    response = client.get(url, follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/"
    assert client.get("/").json()["flash"]["error"] == "The post does not exist."


def test_malformed_post_id_in_path_redirects_home(client):
    sign_in(client)

    response = client.post("/post/abc/delete", follow_redirects=False)

    assert response.headers["location"] == "/"
    assert client.get("/").json()["flash"]["error"] == "The post does not exist."


def test_malformed_comment_id_redirects_to_post(client, engine):
    post_id = create_post(engine)
    sign_in(client)

    response = client.get(f"/comment?post_id={post_id}&comment_id=x", follow_redirects=False)
    assert response.headers["location"] == f"/post?id={post_id}"
    assert client.get(f"/post?id={post_id}").json()["flash"]["error"] == "The comment does not exist."

    response = client.post(f"/post/{post_id}/comment/x/delete", follow_redirects=False)
    assert response.headers["location"] == f"/post?id={post_id}"


def test_missing_sign_in_fields_are_reported(client):
    response = client.post("/users/signin", data={"username": "alice"})

    assert response.status_code == 422
    assert response.json() == {"error": "Invalid input.", "data": {"fields": ["password"]}}


def test_sign_in_is_rate_limited(client):
    allowed = rate_limit_amount(settings.SIGNIN_RATE_LIMIT)
    statuses = [
        client.post("/users/signin", data={"username": "alice", "password": "nope"}).status_code
        for _ in range(allowed + 1)
    ]

    assert statuses[:allowed] == [422] * allowed
    assert statuses[-1] == 429


def test_commenting_is_rate_limited(client, engine):
    post_id = create_post(engine)
    sign_in(client, "bob")
    allowed = rate_limit_amount(settings.COMMENT_RATE_LIMIT)

    statuses = [
        client.post(
            f"/post/{post_id}/add_comment", data={"content": f"reply {n}"}, follow_redirects=False
        ).status_code
        for n in range(allowed + 1)
    ]

    assert statuses[:allowed] == [302] * allowed
    assert statuses[-1] == 429
    assert client.get(f"/post?id={post_id}").json()["post"]["comments"] == allowed


def test_store_failure_returns_generic_error(client, monkeypatch):
    sign_in(client)

    def unavailable(self):
        raise StoreError()

    monkeypatch.setattr(ForumStorage, "count_posts", unavailable)
    response = client.get("/")

    assert response.status_code == 500
    assert response.json() == {"error": "Something went wrong."}


def test_return_to_is_only_remembered_for_get(client):
    response = client.post("/create", data={"title": "Hello", "content": "World"}, follow_redirects=False)
    assert response.headers["location"] == "/users/signin"

    response = sign_in(client)

    assert response.headers["location"] == "/"


def test_invalid_profile_page_redirects_to_profile(client):
    sign_in(client)

    response = client.get("/profile?posts_profile_page=x", follow_redirects=False)

    assert response.headers["location"] == "/profile"
    assert client.get("/profile").json()["flash"]["error"] == "Invalid page!"
