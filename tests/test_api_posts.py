"""HTTP tests for the post editor, search and public profile routes."""
from tests.conftest import auth_headers


async def _publish(client, user_id, **fields):
    headers = auth_headers(user_id)
    response = await client.post("/api/v1/posts", headers=headers)
    assert response.status_code == 201
    post_id = response.json()["id"]
    response = await client.put(
        f"/api/v1/posts/{post_id}", json={"published": True, **fields}, headers=headers
    )
    assert response.status_code == 200
    return response.json()


async def test_create_save_and_search(client, subscriber):
    post = await _publish(
        client,
        subscriber.id,
        title="Programming in the Mountains",
        excerpt="Remote work notes",
        slug="mountains",
    )
    assert "programming" in post["search_queries"]

    response = await client.get("/api/v1/search", params={"q": "programing"})
    assert response.status_code == 200
    hits = response.json()
    assert hits[0]["id"] == post["id"]
    assert hits[0]["score"] > 0


async def test_search_without_query_lists_recent(client, subscriber):
    await _publish(client, subscriber.id, title="One", slug="one")
    await _publish(client, subscriber.id, title="Two", slug="two")
    response = await client.get("/api/v1/search")
    assert response.status_code == 200
    assert {h["slug"] for h in response.json()} == {"one", "two"}


async def test_search_limit_validation(client):
    assert (await client.get("/api/v1/search", params={"limit": 0})).status_code == 422
    assert (await client.get("/api/v1/search", params={"limit": 101})).status_code == 422


async def test_save_post_errors(client, subscriber, tenant):
    post = await _publish(client, subscriber.id, title="Mine", slug="mine")

    response = await client.put(
        f"/api/v1/posts/{post['id']}", json={"title": "Yours"}, headers=auth_headers(tenant.id)
    )
    assert response.status_code == 404

    response = await client.put(
        f"/api/v1/posts/{post['id']}", json={"slug": "Not A Slug"}, headers=auth_headers(subscriber.id)
    )
    assert response.status_code == 400

    other = await _publish(client, subscriber.id, title="Other", slug="other")
    response = await client.put(
        f"/api/v1/posts/{other['id']}", json={"slug": "mine"}, headers=auth_headers(subscriber.id)
    )
    assert response.status_code == 409


async def test_delete_post(client, subscriber):
    post = await _publish(client, subscriber.id, title="Bye", slug="bye")
    response = await client.delete(f"/api/v1/posts/{post['id']}", headers=auth_headers(subscriber.id))
    assert response.status_code == 204
    assert (await client.get("/alice/bye")).status_code == 404


async def test_public_profile_and_post(client, subscriber):
    await _publish(client, subscriber.id, title="Hello", excerpt="First!", content="<p>Hi</p>", slug="hello")

    response = await client.get("/alice")
    assert response.status_code == 200
    data = response.json()
    assert data["author"]["name"] == "alice"
    assert [p["slug"] for p in data["posts"]] == ["hello"]

    response = await client.get("/alice/hello")
    assert response.status_code == 200
    assert response.json()["content"] == "<p>Hi</p>"

    assert (await client.get("/nobody")).status_code == 404
    assert (await client.get("/alice/missing")).status_code == 404
