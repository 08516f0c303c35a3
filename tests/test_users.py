import pytest
from sqlalchemy import func, select

from pantry_api.models import Follow
from conftest import register


async def follow(client, user, target_id):
    return await client.post(f"/api/users/{target_id}/follow", headers=user["headers"])


@pytest.mark.asyncio
async def test_public_profile_hides_private_fields(client, alice):
    r = await client.get(f"/api/users/{alice['id']}")
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Alice"
    assert body["followers_count"] == 0
    assert "email" not in body
    assert "password_hash" not in body

    r = await client.get("/api/users/999")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_search_users(client, alice, bob, carol):
    r = await client.get("/api/users", params={"search": "ali"})
    assert [u["name"] for u in r.json()["items"]] == ["Alice"]

    r = await client.get("/api/users", params={"limit": 2})
    body = r.json()
    assert [u["name"] for u in body["items"]] == ["Alice", "Bob"]
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    r = await client.get("/api/users", params={"limit": 51})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_search_users_by_cuisine_ignores_list_syntax(client, alice, bob):
    r = await client.put(
        "/api/users/preferences",
        json={"favorite_cuisines": ["italian", "mexican"]},
        headers=alice["headers"],
    )
    assert r.status_code == 200

    async def names(search):
        r = await client.get("/api/users", params={"search": search})
        return [u["name"] for u in r.json()["items"]]

    assert await names("mexican") == ["Alice"]
    for term in ["[", "]", ",", '"', '", "']:
        assert await names(term) == [], term


@pytest.mark.asyncio
async def test_inactive_users_are_hidden(client, alice, bob):
    await follow(client, alice, bob["id"])
    await client.delete("/api/auth/profile", headers=alice["headers"])

    r = await client.get(f"/api/users/{alice['id']}")
    assert r.status_code == 404
    r = await client.get("/api/users")
    assert [u["name"] for u in r.json()["items"]] == ["Bob"]
    r = await client.get(f"/api/users/{bob['id']}")
    assert r.json()["followers_count"] == 0


@pytest.mark.asyncio
async def test_unfollow_deactivated_user(client, alice, bob):
    await follow(client, alice, bob["id"])
    await client.delete("/api/auth/profile", headers=bob["headers"])

    r = await follow(client, alice, bob["id"])
    assert r.status_code == 200
    assert r.json() == {"following": False, "followers_count": 0, "following_count": 0}

    r = await follow(client, alice, bob["id"])
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_update_preferences(client, alice):
    r = await client.put(
        "/api/users/preferences",
        json={"dietary_restrictions": ["vegan", "vegan", "gluten_free"]},
        headers=alice["headers"],
    )
    assert r.status_code == 200
    assert r.json()["preferences"] == {
        "dietary_restrictions": ["vegan", "gluten_free"],
        "favorite_cuisines": [],
        "cooking_skill": "beginner",
    }

    r = await client.put(
        "/api/users/preferences",
        json={"favorite_cuisines": ["italian"], "cooking_skill": "advanced"},
        headers=alice["headers"],
    )
    prefs = r.json()["preferences"]
    assert prefs["dietary_restrictions"] == ["vegan", "gluten_free"]
    assert prefs["favorite_cuisines"] == ["italian"]
    assert prefs["cooking_skill"] == "advanced"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"dietary_restrictions": ["carnivore"]},
        {"favorite_cuisines": ["other"]},
        {"cooking_skill": "chef"},
    ],
)
async def test_update_preferences_validation(client, alice, payload):
    r = await client.put("/api/users/preferences", json=payload, headers=alice["headers"])
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_preferences_require_auth(client):
    r = await client.put("/api/users/preferences", json={"cooking_skill": "advanced"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_self_follow_rejected_without_change(client, alice, db_session):
    r = await follow(client, alice, alice["id"])
    assert r.status_code == 400
    assert await db_session.scalar(select(func.count()).select_from(Follow)) == 0


@pytest.mark.asyncio
async def test_follow_unknown_user(client, alice):
    r = await follow(client, alice, 999)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_follow_toggle_is_symmetric(client, alice, bob):
    r = await follow(client, alice, bob["id"])
    assert r.status_code == 200
    assert r.json() == {"following": True, "followers_count": 1, "following_count": 1}

    r = await client.get(f"/api/users/{bob['id']}/followers")
    assert [u["id"] for u in r.json()["items"]] == [alice["id"]]
    r = await client.get(f"/api/users/{alice['id']}/following")
    assert [u["id"] for u in r.json()["items"]] == [bob["id"]]

    r = await follow(client, alice, bob["id"])
    assert r.json() == {"following": False, "followers_count": 0, "following_count": 0}

    r = await client.get(f"/api/users/{bob['id']}/followers")
    assert r.json()["items"] == []
    r = await client.get(f"/api/users/{alice['id']}/following")
    assert r.json()["items"] == []


@pytest.mark.asyncio
async def test_follow_counts_and_pagination(client, alice, bob, carol):
    dave = await register(client, "dave@pantry.io", "Dave")
    for user in (bob, carol, dave):
        await follow(client, user, alice["id"])
    await follow(client, alice, bob["id"])

    r = await client.get(f"/api/users/{alice['id']}")
    assert r.json()["followers_count"] == 3
    assert r.json()["following_count"] == 1

    r = await client.get(f"/api/users/{alice['id']}/followers", params={"limit": 2, "page": 2})
    body = r.json()
    assert len(body["items"]) == 1
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}
    assert body["items"][0]["followers_count"] in (0, 1)

    r = await client.get("/api/users/999/followers")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_user_stats(client, alice, bob):
    recipe = {
        "title": "Pan",
        "description": "Pan casero",
        "ingredients": [{"name": "harina", "quantity": "500 g"}],
        "instructions": ["Amasar", "Hornear"],
        "prep_time": 30,
        "cook_time": 40,
        "servings": 8,
        "category": "desayuno",
    }
    await client.post("/api/recipes", json=recipe, headers=alice["headers"])
    await client.post("/api/recipes", json={**recipe, "is_public": False}, headers=alice["headers"])
    await follow(client, bob, alice["id"])

    r = await client.get(f"/api/users/{alice['id']}/stats")
    assert r.status_code == 200
    body = r.json()
    assert body["followers_count"] == 1
    assert body["following_count"] == 0
    assert body["recipes_count"] == 2
    assert body["public_recipes_count"] == 1
    assert body["is_active"] is True
    assert body["join_date"]
