"""Tests for FastAPI endpoints."""

import json
from uuid import uuid4

import pytest
from httpx import Client

from journal_ledger.api.app import create_app
from journal_ledger.container import get_account_repository, get_posting_service
from journal_ledger.repositories.sqlite import (
    SQLiteAccountBalanceRepository,
    SQLiteAccountRepository,
    SQLiteDatabase,
    SQLiteJournalDocumentRepository,
    SQLiteJournalEntryRepository,
    SQLiteJournalEventRepository,
)
from journal_ledger.services.posting import PostingServiceImpl


@pytest.fixture
def test_db() -> SQLiteDatabase:
    """Create an in-memory test database with thread-safety disabled for testing."""
    db = SQLiteDatabase(":memory:", check_same_thread=False)
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def test_client(test_db: SQLiteDatabase) -> Client:
    """Create a test client wired to the test database."""
    from starlette.testclient import TestClient

    app = create_app()
    account_repo = SQLiteAccountRepository(test_db)
    service = PostingServiceImpl(
        store=test_db,
        account_repo=account_repo,
        document_repo=SQLiteJournalDocumentRepository(test_db),
        entry_repo=SQLiteJournalEntryRepository(test_db),
        balance_repo=SQLiteAccountBalanceRepository(test_db),
        event_repo=SQLiteJournalEventRepository(test_db),
    )

    app.dependency_overrides[get_posting_service] = lambda: service
    app.dependency_overrides[get_account_repository] = lambda: account_repo

    return TestClient(app)


def _create_account(client: Client, name: str, account_type: str, code: str) -> str:
    response = client.post(
        "/accounts", json={"name": name, "account_type": account_type, "code": code}
    )
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def accounts(test_client: Client) -> dict[str, str]:
    return {
        "cash": _create_account(test_client, "Cash", "asset", "1000"),
        "payable": _create_account(test_client, "Accounts Payable", "liability", "2000"),
        "revenue": _create_account(test_client, "Revenue", "income", "4000"),
    }


def _journal(number: str, debit_account: str, credit_account: str, amount: str) -> dict:
    return {
        "journal_number": number,
        "date": "2024-01-31",
        "description": "Test journal",
        "entries": [
            {"account_id": debit_account, "debit": amount},
            {"account_id": credit_account, "credit": amount},
        ],
    }


def _balance(client: Client, account_id: str) -> str:
    response = client.get(f"/accounts/{account_id}/balance")
    assert response.status_code == 200
    return response.json()["balance"]


class TestHealthEndpoint:
    def test_health_check_returns_ok(self, test_client: Client) -> None:
        response = test_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAccountEndpoints:
    def test_create_account_derives_normal_side(self, test_client: Client) -> None:
        response = test_client.post(
            "/accounts", json={"name": "Rent", "account_type": "expense"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["normal_side"] == "debit"
        assert data["code"] is None

    def test_create_account_invalid_type_returns_422(self, test_client: Client) -> None:
        response = test_client.post(
            "/accounts", json={"name": "Bad", "account_type": "widget"}
        )
        assert response.status_code == 422

    def test_list_accounts(self, test_client: Client, accounts: dict) -> None:
        response = test_client.get("/accounts")

        assert response.status_code == 200
        assert [a["code"] for a in response.json()] == ["1000", "2000", "4000"]

    def test_balance_of_fresh_account_is_zero(
        self, test_client: Client, accounts: dict
    ) -> None:
        assert _balance(test_client, accounts["cash"]) == "0"

    def test_balance_of_unknown_account_returns_422(self, test_client: Client) -> None:
        response = test_client.get(f"/accounts/{uuid4()}/balance")

        assert response.status_code == 422
        assert response.json()["error"] == "UNKNOWN_ACCOUNT"


class TestJournalLifecycle:
    def test_create_edit_delete_moves_balances(
        self, test_client: Client, accounts: dict
    ) -> None:
        cash, payable, revenue = accounts["cash"], accounts["payable"], accounts["revenue"]

        response = test_client.post(
            "/manual-journals", json=_journal("J-1", cash, revenue, "100")
        )
        assert response.status_code == 201
        document_id = response.json()["id"]
        assert _balance(test_client, cash) == "100"
        assert _balance(test_client, revenue) == "100"

        response = test_client.post(
            f"/manual-journals/{document_id}", json=_journal("J-1", cash, payable, "60")
        )
        assert response.status_code == 200
        assert response.json()["amount"] == "60"
        assert _balance(test_client, cash) == "60"
        assert _balance(test_client, revenue) == "0"
        assert _balance(test_client, payable) == "60"

        response = test_client.delete(f"/manual-journals/{document_id}")
        assert response.status_code == 204
        assert _balance(test_client, cash) == "0"
        assert _balance(test_client, payable) == "0"

        response = test_client.get(f"/manual-journals/{document_id}")
        assert response.status_code == 404

    def test_response_shape(self, test_client: Client, accounts: dict) -> None:
        response = test_client.post(
            "/manual-journals",
            json=_journal("J-1", accounts["cash"], accounts["revenue"], "250.50"),
        )

        data = response.json()
        assert data["journal_number"] == "J-1"
        assert data["date"] == "2024-01-31"
        assert data["amount"] == "250.50"
        assert data["transaction_type"] == "Journal"
        assert [(e["debit"], e["credit"]) for e in data["entries"]] == [
            ("250.50", None),
            (None, "250.50"),
        ]

    def test_get_journal_includes_entries(
        self, test_client: Client, accounts: dict
    ) -> None:
        created = test_client.post(
            "/manual-journals",
            json=_journal("J-1", accounts["cash"], accounts["revenue"], "10"),
        ).json()

        response = test_client.get(f"/manual-journals/{created['id']}")

        assert response.status_code == 200
        assert len(response.json()["entries"]) == 2

    def test_user_id_header_is_recorded(
        self, test_client: Client, accounts: dict
    ) -> None:
        user_id = str(uuid4())

        response = test_client.post(
            "/manual-journals",
            json=_journal("J-1", accounts["cash"], accounts["revenue"], "10"),
            headers={"X-User-Id": user_id},
        )

        assert response.json()["created_by"] == user_id
        history = test_client.get(
            f"/manual-journals/{response.json()['id']}/history"
        ).json()
        assert history[0]["user_id"] == user_id

    def test_invalid_user_id_header_returns_422(
        self, test_client: Client, accounts: dict
    ) -> None:
        response = test_client.post(
            "/manual-journals",
            json=_journal("J-1", accounts["cash"], accounts["revenue"], "10"),
            headers={"X-User-Id": "not-a-uuid"},
        )
        assert response.status_code == 422


class TestJournalErrors:
    def test_unbalanced_journal_returns_422(
        self, test_client: Client, accounts: dict
    ) -> None:
        payload = _journal("J-1", accounts["cash"], accounts["revenue"], "100")
        payload["entries"][1]["credit"] = "90"

        response = test_client.post("/manual-journals", json=payload)

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "UNBALANCED_JOURNAL"
        assert data["context"]["kind"] == "mismatch"
        assert test_client.get("/manual-journals").json() == []

    def test_line_with_both_sides_returns_422(
        self, test_client: Client, accounts: dict
    ) -> None:
        payload = _journal("J-1", accounts["cash"], accounts["revenue"], "100")
        payload["entries"][0]["credit"] = "100"

        response = test_client.post("/manual-journals", json=payload)

        assert response.status_code == 422
        assert response.json()["error"] == "INVALID_ENTRY"

    def test_unknown_account_returns_422(
        self, test_client: Client, accounts: dict
    ) -> None:
        missing = str(uuid4())

        response = test_client.post(
            "/manual-journals", json=_journal("J-1", accounts["cash"], missing, "5")
        )

        assert response.status_code == 422
        assert response.json()["context"]["account_ids"] == [missing]

    def test_duplicate_number_returns_409(
        self, test_client: Client, accounts: dict
    ) -> None:
        payload = _journal("J-1", accounts["cash"], accounts["revenue"], "100")
        assert test_client.post("/manual-journals", json=payload).status_code == 201

        response = test_client.post("/manual-journals", json=payload)

        assert response.status_code == 409
        assert response.json()["error"] == "DUPLICATE_JOURNAL_NUMBER"

    def test_missing_date_returns_422(self, test_client: Client, accounts: dict) -> None:
        payload = _journal("J-1", accounts["cash"], accounts["revenue"], "100")
        del payload["date"]

        response = test_client.post("/manual-journals", json=payload)
        assert response.status_code == 422

    def test_edit_missing_document_returns_404(
        self, test_client: Client, accounts: dict
    ) -> None:
        response = test_client.post(
            f"/manual-journals/{uuid4()}",
            json=_journal("J-1", accounts["cash"], accounts["revenue"], "100"),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "DOCUMENT_NOT_FOUND"

    def test_delete_twice_returns_404(self, test_client: Client, accounts: dict) -> None:
        document_id = test_client.post(
            "/manual-journals",
            json=_journal("J-1", accounts["cash"], accounts["revenue"], "100"),
        ).json()["id"]

        assert test_client.delete(f"/manual-journals/{document_id}").status_code == 204
        assert test_client.delete(f"/manual-journals/{document_id}").status_code == 404
        assert _balance(test_client, accounts["cash"]) == "0"


class TestJournalFilters:
    @pytest.fixture
    def posted(self, test_client: Client, accounts: dict) -> None:
        for number, amount in [("J-1", "100"), ("J-2", "500"), ("J-3", "20")]:
            response = test_client.post(
                "/manual-journals",
                json=_journal(number, accounts["cash"], accounts["revenue"], amount),
            )
            assert response.status_code == 201

    def test_list_without_filters(self, test_client: Client, posted) -> None:
        response = test_client.get("/manual-journals")

        assert response.status_code == 200
        assert [j["journal_number"] for j in response.json()] == ["J-1", "J-2", "J-3"]

    def test_amount_filter(self, test_client: Client, posted) -> None:
        roles = [{"field_key": "amount", "comparator": "bigger", "value": "50"}]

        response = test_client.get(
            "/manual-journals", params={"stringified_filter_roles": json.dumps(roles)}
        )

        assert response.status_code == 200
        assert [j["journal_number"] for j in response.json()] == ["J-1", "J-2"]

    def test_unknown_filter_field_returns_400(self, test_client: Client, posted) -> None:
        roles = [{"field_key": "colour", "value": "red"}]

        response = test_client.get(
            "/manual-journals", params={"stringified_filter_roles": json.dumps(roles)}
        )

        assert response.status_code == 400
        assert response.json()["context"]["fields"] == ["colour"]

    def test_malformed_filter_json_returns_400(self, test_client: Client) -> None:
        response = test_client.get(
            "/manual-journals", params={"stringified_filter_roles": "[{not json"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_FILTER_ROLE"

    def test_filter_json_object_returns_400(self, test_client: Client) -> None:
        response = test_client.get(
            "/manual-journals", params={"stringified_filter_roles": '{"a": 1}'}
        )

        assert response.status_code == 400
        assert response.json()["context"]["fields"] == ["stringified_filter_roles"]


class TestQuickJournal:
    def test_quick_journal_posts_two_lines(
        self, test_client: Client, accounts: dict
    ) -> None:
        response = test_client.post(
            "/quick-journal-entries",
            json={
                "journal_number": "Q-1",
                "date": "2024-02-01",
                "amount": "75",
                "debit_account_id": accounts["cash"],
                "credit_account_id": accounts["payable"],
                "note": "loan drawdown",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["transaction_type"] == "QuickJournal"
        assert {e["note"] for e in data["entries"]} == {"loan drawdown"}
        assert _balance(test_client, accounts["cash"]) == "75"
        assert _balance(test_client, accounts["payable"]) == "75"

    def test_non_positive_amount_returns_422(
        self, test_client: Client, accounts: dict
    ) -> None:
        response = test_client.post(
            "/quick-journal-entries",
            json={
                "journal_number": "Q-1",
                "date": "2024-02-01",
                "amount": "0",
                "debit_account_id": accounts["cash"],
                "credit_account_id": accounts["payable"],
            },
        )
        assert response.status_code == 422


class TestJournalHistory:
    def test_history_survives_delete(self, test_client: Client, accounts: dict) -> None:
        cash, revenue = accounts["cash"], accounts["revenue"]
        document_id = test_client.post(
            "/manual-journals", json=_journal("J-1", cash, revenue, "100")
        ).json()["id"]
        test_client.post(
            f"/manual-journals/{document_id}", json=_journal("J-1", cash, revenue, "80")
        )
        test_client.delete(f"/manual-journals/{document_id}")

        response = test_client.get(f"/manual-journals/{document_id}/history")

        assert response.status_code == 200
        assert [e["action"] for e in response.json()] == [
            "create",
            "supersede",
            "delete",
        ]
        assert response.json()[0]["amount"] == "100"

    def test_history_of_unknown_document_returns_404(self, test_client: Client) -> None:
        response = test_client.get(f"/manual-journals/{uuid4()}/history")
        assert response.status_code == 404
