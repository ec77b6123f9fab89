"""Display names: validation and write-through to memberships."""

from handwash.services import family_service, profile_service
from handwash.utils import keys


def test_update_profile_validates_length(client, auth):
    r = client.put("/profile", json={"displayName": ""}, headers=auth("alice"))
    assert r.status_code == 400

    r = client.put("/profile", json={"displayName": "x" * 31}, headers=auth("alice"))
    assert r.status_code == 400

    r = client.put("/profile", json={"displayName": "x" * 30}, headers=auth("alice"))
    assert r.status_code == 200


def test_update_profile_writes_through_to_every_membership(client, auth):
    home = client.post("/families", json={"name": "Home"}, headers=auth("alice")).json()
    work = client.post("/families", json={"name": "Work"}, headers=auth("carol")).json()
    client.post("/families/join", json={"inviteCode": work["inviteCode"]}, headers=auth("alice"))

    r = client.put("/profile", json={"displayName": "  Alice  "}, headers=auth("alice"))
    assert r.json() == {"ok": True, "displayName": "Alice"}

    for family in (home, work):
        r = client.get("/families/members", params={"familyId": family["familyId"]}, headers=auth("alice"))
        names = {m["sub"]: m.get("displayName") for m in r.json()["members"]}
        assert names["alice"] == "Alice"

    r = client.get("/me", headers=auth("alice"))
    assert r.json()["displayName"] == "Alice"


def test_join_copies_existing_display_name(client, auth):
    client.put("/profile", json={"displayName": "Bobby"}, headers=auth("bob"))
    family = client.post("/families", json={"name": "Home"}, headers=auth("alice")).json()
    client.post("/families/join", json={"inviteCode": family["inviteCode"]}, headers=auth("bob"))

    r = client.get("/families/members", params={"familyId": family["familyId"]}, headers=auth("alice"))
    names = {m["sub"]: m.get("displayName") for m in r.json()["members"]}
    assert names == {"alice": None, "bob": "Bobby"}


def test_member_list_falls_back_to_profile_when_cache_is_stale(store):
    family = family_service.create_family(store, "alice", "Home")
    profile_service.update_profile(store, "alice", "Alice")

    # Simulate a fan-out that never reached this membership
    membership = store.get(keys.user_pk("alice"), keys.membership_sk(family["familyId"]))
    membership.pop("displayName")
    store.put(membership)

    result = family_service.list_members(store, "alice", family["familyId"])
    assert result["members"][0]["displayName"] == "Alice"


def test_fan_out_keeps_index_attributes(store):
    family = family_service.create_family(store, "alice", "Home")
    profile_service.update_profile(store, "alice", "Alice")

    members = store.query_index(keys.family_pk(family["familyId"]), begins_with=keys.MEMBER_PREFIX)
    assert [(m["userSub"], m["role"], m["displayName"]) for m in members] == [("alice", "owner", "Alice")]
