"""
Tests for the transactions API
"""
from flowmoney.domain import events


def _url(account) -> str:
    return f"/api/v1/joint-accounts/{account['id']}/transactions"


def test_member_adds_transaction(alice, bob, rent, join, broadcaster):
    join(alice, bob)
    response = bob.post(_url(rent), json={"amount": "500", "type": "EXPENSE", "category": "Food",
                                          "date": "2026-03-01"})

    assert response.status_code == 201
    body = response.json()
    assert body["added_by_user_name"] == "Bob"
    assert body["currency"] == "USD"
    assert broadcaster.of(events.TRANSACTION_ADDED)[0].exclude_user_id == bob.user["id"]

    listed = alice.get(_url(rent)).json()
    assert listed["total"] == 1
    assert listed["transactions"][0]["id"] == body["id"]


def test_viewer_gets_403_and_nothing_is_written(alice, login_as, rent, join):
    """VIEWER Carol: 500 EXPENSE Food → 403, транзакции нет"""
    carol = login_as("Carol")
    join(alice, carol, role="VIEWER")

    response = carol.post(_url(rent), json={"amount": "500", "type": "EXPENSE", "category": "Food"})

    assert response.status_code == 403
    assert response.json()["reason"] == "insufficient_role"
    assert alice.get(_url(rent)).json()["total"] == 0


def test_invalid_amount_is_400(alice, rent):
    response = alice.post(_url(rent), json={"amount": "-5", "type": "EXPENSE", "category": "Food"})
    assert response.status_code == 400
    assert response.json()["reason"] == "invariant_violation"


def test_unknown_transaction_is_404(alice):
    response = alice.get("/api/v1/transactions/missing")
    assert response.status_code == 404
    assert response.json()["reason"] == "not_found"


def test_update_and_delete(alice, rent):
    tx = alice.post(_url(rent), json={"amount": "10", "type": "EXPENSE", "category": "Food"}).json()

    updated = alice.put(f"/api/v1/transactions/{tx['id']}", json={"category": "Travel"})
    assert updated.status_code == 200
    assert updated.json()["category"] == "Travel"

    assert alice.delete(f"/api/v1/transactions/{tx['id']}").status_code == 200
    assert alice.get(_url(rent)).json()["total"] == 0


def test_list_filters_and_page_size(alice, rent):
    for amount, tx_type in (("10", "EXPENSE"), ("20", "INCOME"), ("30", "EXPENSE")):
        alice.post(_url(rent), json={"amount": amount, "type": tx_type, "category": "Misc"})

    expenses = alice.get(_url(rent), params={"type": "EXPENSE", "limit": 1}).json()
    assert expenses["total"] == 2
    assert len(expenses["transactions"]) == 1
    assert expenses["limit"] == 1

    assert alice.get(_url(rent), params={"limit": 0}).status_code == 422


def test_categories(client):
    response = client.get("/api/v1/transactions/categories")
    assert response.status_code == 200
    assert "Food" in str(response.json())
