# mypy: ignore-errors
"""Tests for connection endpoints."""

from fastapi import status


def _action(client, headers, target_id, action):
    return client.post(
        "/api/user/connections",
        json={"targetUserId": target_id, "action": action},
        headers=headers,
    )


def test_request_accept_and_list(client, alice, bob, alice_headers, bob_headers) -> None:
    sent = _action(client, alice_headers, bob.id, "send_request")
    assert sent.status_code == status.HTTP_200_OK
    connection = sent.json()["connection"]
    assert connection["status"] == "PENDING"
    assert connection["isRequester"] is True
    assert connection["user"]["id"] == bob.id

    incoming = client.get(
        "/api/user/connections/requests", params={"type": "received"}, headers=bob_headers
    ).json()
    assert [row["user"]["id"] for row in incoming["connections"]] == [alice.id]

    accepted = client.put(
        f"/api/user/connections/{connection['id']}",
        json={"action": "accept"},
        headers=bob_headers,
    )
    assert accepted.json()["connection"]["status"] == "ACCEPTED"

    listing = client.get("/api/user/connections", headers=alice_headers).json()
    assert [row["user"]["id"] for row in listing["connections"]] == [bob.id]

    state = client.get(f"/api/user/connections/status/{bob.id}", headers=alice_headers).json()
    assert state["status"] == "connected"
    assert state["canConnect"] is False


def test_duplicate_request_from_either_side(client, alice, bob, alice_headers, bob_headers) -> None:
    assert _action(client, alice_headers, bob.id, "send_request").status_code == 200
    assert _action(client, bob_headers, alice.id, "send_request").status_code == 409
    assert _action(client, alice_headers, bob.id, "send_request").status_code == 409


def test_self_connection_rejected(client, alice, alice_headers) -> None:
    response = _action(client, alice_headers, alice.id, "send_request")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Cannot connect to yourself"}


def test_requester_cannot_accept_own_request(client, bob, alice_headers) -> None:
    connection = _action(client, alice_headers, bob.id, "send_request").json()["connection"]
    response = client.put(
        f"/api/user/connections/{connection['id']}",
        json={"action": "accept"},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_block_is_terminal(client, alice, bob, alice_headers, bob_headers) -> None:
    _action(client, alice_headers, bob.id, "send_request")
    assert _action(client, bob_headers, alice.id, "block").status_code == 200
    assert _action(client, bob_headers, alice.id, "accept").status_code == 404

    state = client.get(f"/api/user/connections/status/{alice.id}", headers=bob_headers).json()
    assert state["status"] == "blocked"


def test_remove_connection(client, alice, bob, alice_headers, bob_headers) -> None:
    _action(client, alice_headers, bob.id, "send_request")
    _action(client, bob_headers, alice.id, "accept")
    removed = _action(client, bob_headers, alice.id, "remove")
    assert removed.status_code == status.HTTP_200_OK
    assert removed.json()["connection"] is None
    assert _action(client, bob_headers, alice.id, "remove").status_code == 404


def test_mutual_connections(client, alice, bob, carol, alice_headers, headers_for) -> None:
    carol_headers = headers_for(carol)
    for requester_headers, target in ((alice_headers, carol), (headers_for(bob), carol)):
        connection = _action(client, requester_headers, target.id, "send_request").json()
        client.put(
            f"/api/user/connections/{connection['connection']['id']}",
            json={"action": "accept"},
            headers=carol_headers,
        )

    mutual = client.get(f"/api/user/connections/mutual/{bob.id}", headers=alice_headers).json()
    assert mutual["count"] == 1
    assert mutual["users"][0]["id"] == carol.id


def test_connection_suggestions(client, alice, bob, carol, alice_headers, bob_headers) -> None:
    _action(client, alice_headers, bob.id, "send_request")

    response = client.get(
        "/api/user/connections/suggestions", params={"limit": 5}, headers=alice_headers
    )

    assert response.status_code == status.HTTP_200_OK
    [suggestion] = response.json()["suggestions"]
    assert suggestion["user"]["id"] == carol.id
    assert suggestion["suggestedBecause"] == "new_member"
    assert suggestion["mutualConnectionsCount"] == 0
    assert suggestion["mutualCommunities"] == []
