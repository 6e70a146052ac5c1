from datetime import timedelta

from credit_ledger.core.security import create_access_token


def _cash_in(client, auth_headers, user_id: str, amount: int) -> dict:
    response = client.post(
        "/api/cash-requests",
        json={"direction": "cash_in", "amount": amount, "payment_method": "gcash", "reference_no": "R-1"},
        headers=auth_headers(user_id),
    )
    assert response.status_code == 201, response.text
    request = response.json()["request"]
    decision = client.post(
        f"/api/admin/cash-requests/{request['id']}/decision",
        json={"decision": "approve"},
        headers=auth_headers("root", "admin"),
    )
    assert decision.status_code == 200, decision.text
    return decision.json()["request"]


def test_health(app_client):
    response = app_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_requests_without_token_are_rejected(app_client):
    assert app_client.get("/api/wallets").status_code in (401, 403)


def test_expired_token_is_rejected(app_client, settings):
    token = create_access_token("alice", expires_delta=timedelta(seconds=-1), settings=settings)
    response = app_client.get("/api/wallets", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_cash_in_then_transfer(app_client, auth_headers):
    request = _cash_in(app_client, auth_headers, "alice", 100)
    assert request["status"] == "approved"

    response = app_client.post(
        "/api/wallets/transfer",
        json={"from_type": "main", "to_type": "task", "amount": 40},
        headers=auth_headers("alice"),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["balances"] == {"main": 60, "task": 40, "royalty": 0}

    balances = app_client.get("/api/wallets", headers=auth_headers("alice")).json()
    assert (balances["main"], balances["task"], balances["total"]) == (60, 40, 100)

    history = app_client.get("/api/wallets/transactions", headers=auth_headers("alice")).json()
    assert [entry["amount"] for entry in history["transactions"]][:2] in ([40, -40], [-40, 40])


def test_error_envelope_and_status_codes(app_client, auth_headers):
    _cash_in(app_client, auth_headers, "alice", 100)

    overdraft = app_client.post(
        "/api/wallets/transfer",
        json={"from_type": "main", "to_type": "task", "amount": 500},
        headers=auth_headers("alice"),
    )
    assert overdraft.status_code == 409
    assert overdraft.json() == {
        "success": False,
        "error": {"kind": "insufficient_balance", "message": overdraft.json()["error"]["message"]},
    }

    invalid = app_client.post(
        "/api/wallets/transfer",
        json={"from_type": "main", "to_type": "task", "amount": "ten"},
        headers=auth_headers("alice"),
    )
    assert invalid.status_code == 400
    assert invalid.json()["error"]["kind"] == "invalid_input"

    missing = app_client.get("/api/loans/does-not-exist", headers=auth_headers("alice"))
    assert missing.status_code == 404
    assert missing.json()["error"]["kind"] == "not_found"


def test_re_approval_is_already_finalized(app_client, auth_headers):
    request = _cash_in(app_client, auth_headers, "alice", 500)

    again = app_client.post(
        f"/api/admin/cash-requests/{request['id']}/decision",
        json={"decision": "approve"},
        headers=auth_headers("root", "admin"),
    )

    assert again.status_code == 409
    assert again.json()["error"]["kind"] == "already_finalized"
    balances = app_client.get("/api/wallets", headers=auth_headers("alice")).json()
    assert balances["main"] == 500


def test_admin_routes_require_admin_role(app_client, auth_headers):
    response = app_client.get("/api/admin/stats", headers=auth_headers("alice"))
    assert response.status_code == 403
    assert response.json()["error"]["kind"] == "unauthorized"


def test_member_sees_only_own_cash_requests(app_client, auth_headers):
    request = _cash_in(app_client, auth_headers, "alice", 300)

    own = app_client.get("/api/cash-requests", headers=auth_headers("alice")).json()
    assert [item["id"] for item in own["requests"]] == [request["id"]]
    other = app_client.get(f"/api/cash-requests/{request['id']}", headers=auth_headers("bob"))
    assert other.status_code == 404


def test_loan_lifecycle_over_http(app_client, auth_headers):
    _cash_in(app_client, auth_headers, "lender", 1000)
    _cash_in(app_client, auth_headers, "borrower", 100)

    offer = app_client.post(
        "/api/loans",
        json={"principal": 1000, "interest_rate": 0.03, "term_days": 7},
        headers=auth_headers("lender"),
    )
    assert offer.status_code == 201
    loan = offer.json()["loan"]
    assert (loan["interest_amount"], loan["total_repayment"], loan["status"]) == (30, 1022, "pending")

    offers = app_client.get("/api/loans/offers", headers=auth_headers("borrower")).json()
    assert [item["id"] for item in offers["loans"]] == [loan["id"]]

    accepted = app_client.post(f"/api/loans/{loan['id']}/accept", headers=auth_headers("borrower"))
    assert accepted.status_code == 200
    assert accepted.json()["loan"]["status"] == "active"

    second = app_client.post(f"/api/loans/{loan['id']}/accept", headers=auth_headers("third"))
    assert second.status_code == 409
    assert second.json()["error"]["kind"] == "already_accepted"

    repaid = app_client.post(f"/api/loans/{loan['id']}/repay", headers=auth_headers("borrower"))
    assert repaid.json()["loan"]["status"] == "repaid"

    stats = app_client.get("/api/admin/stats", headers=auth_headers("root", "admin")).json()
    assert stats["loans"]["counts"] == {"repaid": 1}
    assert stats["cash_requests"]["counts"]["cash_in"] == {"approved": 2}

    wallets = app_client.get("/api/admin/wallets/lender", headers=auth_headers("root", "admin")).json()
    assert all(wallets["reconciled"].values())
    sweep = app_client.post("/api/admin/loans/sweep", headers=auth_headers("root", "admin")).json()
    assert (sweep["repaid_count"], sweep["defaulted_count"], sweep["skipped"]) == (0, 0, False)


def test_feed_pushes_wallet_events(app_client, auth_headers, settings):
    _cash_in(app_client, auth_headers, "alice", 100)
    token = create_access_token("alice", settings=settings)

    with app_client.websocket_connect(f"/ws/feed?token={token}") as websocket:
        ready = websocket.receive_json()
        assert ready["type"] == "ready"
        assert ready["data"]["channels"] == ["alice"]

        app_client.post(
            "/api/wallets/transfer",
            json={"from_type": "main", "to_type": "royalty", "amount": 10},
            headers=auth_headers("alice"),
        )
        event = websocket.receive_json()
        assert event["type"] == "wallet.transfer"
        assert event["data"]["balances"] == {"main": 90, "task": 0, "royalty": 10}

        websocket.send_text("ping")
        assert websocket.receive_json() == {"type": "heartbeat"}
