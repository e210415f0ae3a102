import pytest

from fee_matcher.app import create_app
from fee_matcher.ledger import Ledger

REGISTRATIONS = "player\tamount\tnote\ttail\nAlice\t1000\t\t12345\nBob\t800\t\t54321"
BANK = (
    "date\ttime\tsummary\twithdrawal\tdeposit\tnote\tbank\ttail\tmessage\n"
    "2024/05/01\t10:00\tdeposit\t\t1000\t\t\t12345\t\n"
    "2024/05/02\t11:00\ttransfer\t\t600\t\t\t00000\tfee"
)


@pytest.fixture
def ledger():
    return Ledger()


@pytest.fixture
def client(ledger):
    app = create_app(ledger)
    app.config['TESTING'] = True
    with app.test_client() as client:
        client.post('/api/registrations/import', json={"text": REGISTRATIONS})
        client.post('/api/bank-entries/import', json={"text": BANK})
        yield client


def reg_id(ledger, name):
    return next(r.id for r in ledger.registrations if r.player_name == name)


def test_status(client):
    data = client.get('/api/status').get_json()

    assert data["matched"] == 1
    assert data["pending"] == 1
    assert data["total_expected"] == 1800.0
    assert data["total_received"] == 1600.0
    assert data["difference"] == -200.0


def test_import_requires_text(client):
    response = client.post('/api/registrations/import', json={})
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_registrations_listing(client):
    data = client.get('/api/registrations').get_json()
    assert [r["playerName"] for r in data] == ["Alice", "Bob"]
    assert data[0]["status"] == "matched"
    assert data[0]["reconciliationNote"].startswith("matched to bank deposit")

    pending = client.get('/api/registrations?status=pending').get_json()
    assert [r["playerName"] for r in pending] == ["Bob"]

    assert client.get('/api/registrations?status=bogus').status_code == 400


def test_unmatched_bank_entries(client):
    data = client.get('/api/bank-entries/unmatched').get_json()

    assert len(data) == 1
    assert data[0]["amount"] == 600.0
    assert data[0]["message"] == "fee"


def test_manual_payment_flow(client, ledger):
    bob = reg_id(ledger, "Bob")

    assert client.post('/api/manual-payment', json={"registration_id": bob, "reason": " "}).status_code == 400
    assert client.post('/api/manual-payment', json={"registration_id": "nope", "reason": "cash"}).status_code == 404

    response = client.post('/api/manual-payment', json={"registration_id": bob, "reason": "cash"})
    assert response.status_code == 200
    data = response.get_json()
    assert data["registration"]["status"] == "matched"
    assert data["registration"]["manual"] is True
    assert data["bank_entry"]["matchedId"] == bob
    assert data["bank_entry"]["amount"] == 800.0

    response = client.post('/api/manual-payment/undo', json={"registration_id": bob})
    assert response.status_code == 200
    assert response.get_json()["registration"]["status"] == "pending"
    assert len(ledger.bank_entries) == 2

    # Nothing left to undo
    assert client.post('/api/manual-payment/undo', json={"registration_id": bob}).status_code == 400


def test_candidates_and_confirm_match(client, ledger):
    bank_id = ledger.unmatched_bank_entries()[0].id
    bob = reg_id(ledger, "Bob")

    candidates = client.get(f'/api/bank-entries/{bank_id}/candidates').get_json()
    assert [c["playerName"] for c in candidates] == ["Bob"]
    assert "score" in candidates[0]
    assert client.get('/api/bank-entries/missing/candidates').status_code == 404

    response = client.post('/api/confirm-match', json={"bank_entry_id": bank_id, "registration_id": bob})
    assert response.status_code == 200
    data = response.get_json()
    assert data["registration"]["reconciliationNote"] == \
        "[manual binding] bank $600 (2024/05/02 11:00), difference -$200 (shortfall)"
    assert data["bank_entry"]["status"] == "matched"

    # Already bound
    response = client.post('/api/confirm-match', json={"bank_entry_id": bank_id, "registration_id": bob})
    assert response.status_code == 400


def test_confirm_match_unknown_ids(client, ledger):
    bob = reg_id(ledger, "Bob")
    response = client.post('/api/confirm-match', json={"bank_entry_id": "missing", "registration_id": bob})
    assert response.status_code == 404


def test_reconcile_endpoint(client):
    assert client.post('/api/reconcile').get_json() == {"changed": False}


def test_reset(client, ledger):
    assert client.post('/api/reset').get_json() == {"status": "success"}
    assert ledger.registrations == []
    assert client.get('/api/status').get_json()["matched"] == 0
