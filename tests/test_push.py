"""Push subscriptions, owner-initiated sends and delivery outcomes."""

import json

import pytest
import requests

from handwash.errors import InvalidArgument
from handwash.services import family_service, push_service
from handwash.services.notification_service import (
    DeliveryResult,
    NotificationDispatcher,
    VapidCredentials,
)
from handwash.utils import keys
from handwash.utils.security import hash_endpoint


def setup_family(client, auth):
    family = client.post("/families", json={"name": "Home"}, headers=auth("alice")).json()
    client.post("/families/join", json={"inviteCode": family["inviteCode"]}, headers=auth("bob"))
    return family["familyId"]


def subscribe(client, auth, sub, family_id, subscription):
    return client.post(
        "/push/subscribe",
        json={"familyId": family_id, "subscription": subscription, "userAgent": "pytest"},
        headers=auth(sub),
    )


def endpoints_of(store, user_id):
    return [i["endpoint"] for i in push_service.list_for_user(store, user_id)]


# --- Subscribe ---

def test_vapid_public_key_needs_no_auth(client):
    r = client.get("/push/vapid-public-key")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "publicKey": "test-public-key"}


def test_subscribe_rejects_incomplete_subscription(client, auth):
    family_id = setup_family(client, auth)

    r = subscribe(client, auth, "bob", family_id, {"endpoint": "https://push.example.com/x"})
    assert r.status_code == 400
    r = subscribe(client, auth, "bob", family_id, {"endpoint": "", "keys": {"p256dh": "a", "auth": "b"}})
    assert r.status_code == 400


def test_subscribe_requires_membership(client, auth, subscription):
    family_id = setup_family(client, auth)

    r = subscribe(client, auth, "mallory", family_id, subscription("m"))
    assert r.status_code == 403


def test_resubscribe_same_endpoint_overwrites(client, auth, subscription, fresh_store):
    family_id = setup_family(client, auth)
    sub = subscription("bob-phone")

    assert subscribe(client, auth, "bob", family_id, sub).status_code == 200
    sub["keys"]["auth"] = "rotated"
    assert subscribe(client, auth, "bob", family_id, sub).status_code == 200

    items = push_service.list_for_user(fresh_store(), "bob")
    assert len(items) == 1
    assert items[0]["keys"]["auth"] == "rotated"
    assert items[0]["sk"] == keys.push_sk(hash_endpoint(sub["endpoint"]))
    assert items[0]["userAgent"] == "pytest"


def test_family_listing_uses_index(client, auth, subscription, fresh_store):
    family_id = setup_family(client, auth)
    subscribe(client, auth, "alice", family_id, subscription("alice"))
    subscribe(client, auth, "bob", family_id, subscription("bob"))

    store = fresh_store()
    items = push_service.list_for_family(store, family_id)
    assert sorted(i["userSub"] for i in items) == ["alice", "bob"]
    # Membership rows share the index partition but are not subscriptions
    assert all(i["entity"] == keys.ENTITY_PUSH_SUB for i in items)
    assert len(push_service.list_all(store)) == 2


# --- Owner-initiated send ---

def test_send_requires_owner(client, auth):
    family_id = setup_family(client, auth)

    r = client.post("/push/send", json={"familyId": family_id, "targetSub": "alice"}, headers=auth("bob"))
    assert r.status_code == 403
    assert r.json()["message"] == "Only owner can send notifications"


def test_send_requires_target(client, auth):
    family_id = setup_family(client, auth)

    r = client.post("/push/send", json={"familyId": family_id}, headers=auth("alice"))
    assert r.status_code == 400
    assert r.json() == {"ok": False, "message": "targetSub is required"}

    r = client.post("/push/send", json={"familyId": family_id, "targetSub": "  "}, headers=auth("alice"))
    assert r.status_code == 400


def test_send_to_non_member_is_not_found(client, auth):
    family_id = setup_family(client, auth)

    r = client.post("/push/send", json={"familyId": family_id, "targetSub": "mallory"}, headers=auth("alice"))
    assert r.status_code == 404


def test_send_without_subscriptions_reports_nothing_sent(client, auth, push_sender):
    family_id = setup_family(client, auth)

    r = client.post("/push/send", json={"familyId": family_id, "targetSub": "bob"}, headers=auth("alice"))
    assert r.status_code == 200
    assert r.json() == {"ok": True, "sent": 0, "failed": 0}
    assert push_sender.calls == []


def test_send_counts_delivered_and_prunes_gone(client, auth, subscription, push_sender, fresh_store):
    family_id = setup_family(client, auth)
    phone, laptop = subscription("bob-phone"), subscription("bob-laptop")
    subscribe(client, auth, "bob", family_id, phone)
    subscribe(client, auth, "bob", family_id, laptop)
    push_sender.status_by_endpoint[laptop["endpoint"]] = 410

    r = client.post(
        "/push/send",
        json={"familyId": family_id, "targetSub": "bob", "message": "  dinner soon  "},
        headers=auth("alice"),
    )
    assert r.json() == {"ok": True, "sent": 1, "failed": 1}

    payload = json.loads(push_sender.calls[0]["data"])
    assert payload["body"] == "dinner soon"
    assert payload["url"] == "/wash/"

    assert endpoints_of(fresh_store(), "bob") == [phone["endpoint"]]


def test_send_uses_default_message(client, auth, subscription, push_sender):
    family_id = setup_family(client, auth)
    subscribe(client, auth, "bob", family_id, subscription("bob"))

    client.post("/push/send", json={"familyId": family_id, "targetSub": "bob"}, headers=auth("alice"))
    assert json.loads(push_sender.calls[0]["data"])["body"] == "Time to wash your hands!"


# --- Delivery outcomes ---

@pytest.fixture
def dispatcher(store, credentials, push_sender):
    return NotificationDispatcher(store, credentials, sender=push_sender)


def test_send_delivered(dispatcher, subscription, push_sender):
    assert dispatcher.send(subscription("ok"), "{}") is DeliveryResult.DELIVERED
    call = push_sender.calls[0]
    assert call["vapid_claims"] == {"sub": "mailto:test@example.com"}
    assert call["vapid_private_key"] == "test-private-key"


@pytest.mark.parametrize("status", [404, 410])
def test_gone_statuses(dispatcher, subscription, push_sender, status):
    sub = subscription("gone")
    push_sender.status_by_endpoint[sub["endpoint"]] = status
    assert dispatcher.send(sub, "{}") is DeliveryResult.GONE


def test_server_error_is_transient(dispatcher, subscription, push_sender):
    sub = subscription("flaky")
    push_sender.status_by_endpoint[sub["endpoint"]] = 500
    assert dispatcher.send(sub, "{}") is DeliveryResult.TRANSIENT_FAILURE


def test_network_error_is_transient(dispatcher, subscription, push_sender):
    sub = subscription("offline")
    push_sender.error_by_endpoint[sub["endpoint"]] = requests.ConnectionError("connection refused")
    assert dispatcher.send(sub, "{}") is DeliveryResult.TRANSIENT_FAILURE


def test_missing_credentials_is_transient(store, subscription, push_sender):
    dispatcher = NotificationDispatcher(store, VapidCredentials("", "", ""), sender=push_sender)
    assert dispatcher.send(subscription("x"), "{}") is DeliveryResult.TRANSIENT_FAILURE
    assert push_sender.calls == []


def test_malformed_subscription_raises(dispatcher):
    with pytest.raises(InvalidArgument):
        dispatcher.send({"endpoint": "https://push.example.com/x", "keys": {}}, "{}")


def test_deliver_keeps_subscription_on_transient_failure(store, dispatcher, subscription, push_sender):
    family = family_service.create_family(store, "alice", "Home")
    sub = subscription("alice")
    item = push_service.subscribe(store, "alice", family["familyId"], sub)
    push_sender.status_by_endpoint[sub["endpoint"]] = 503

    assert dispatcher.deliver(item, "{}") is DeliveryResult.TRANSIENT_FAILURE
    assert endpoints_of(store, "alice") == [sub["endpoint"]]


def test_deliver_prunes_gone_subscription(store, dispatcher, subscription, push_sender):
    family = family_service.create_family(store, "alice", "Home")
    sub = subscription("alice")
    item = push_service.subscribe(store, "alice", family["familyId"], sub)
    push_sender.status_by_endpoint[sub["endpoint"]] = 410

    assert dispatcher.deliver(item, "{}") is DeliveryResult.GONE
    assert endpoints_of(store, "alice") == []


def test_deliver_keeps_subscription_when_prune_fails(store, dispatcher, subscription, push_sender, reject_writes):
    family = family_service.create_family(store, "alice", "Home")
    sub = subscription("alice")
    item = push_service.subscribe(store, "alice", family["familyId"], sub)
    push_sender.status_by_endpoint[sub["endpoint"]] = 410
    reject_writes("DELETE", "USER#alice", "PUSH#")

    assert dispatcher.deliver(item, "{}") is DeliveryResult.TRANSIENT_FAILURE
    assert endpoints_of(store, "alice") == [sub["endpoint"]]
