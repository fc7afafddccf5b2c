import sqlite3
from datetime import date

import pytest

from builders import make_expense, make_group
from expense_tracker.db.migrate import CURRENT_SCHEMA_VERSION, apply_migrations
from expense_tracker.db.repository import RepositoryActionStatus
from expense_tracker.db.sqlite_repository import SqliteExpenseTrackerRepository
from expense_tracker.services.factory import expense_group_from_dto, expense_group_to_dto


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "repo.sqlite3"
    apply_migrations(path)
    return path


@pytest.fixture
def repo(db_path):
    return SqliteExpenseTrackerRepository(db_path)


def test_migrations_are_idempotent_and_seed_statuses(db_path):
    assert apply_migrations(db_path) == CURRENT_SCHEMA_VERSION
    with sqlite3.connect(db_path) as conn:
        rows = conn.execute(
            "SELECT id, description FROM expense_group_statuses ORDER BY id"
        ).fetchall()
    assert rows == [(1, "Open"), (2, "Confirmed"), (3, "Processed")]


def test_insert_assigns_ids_and_persists_expenses(repo):
    result = repo.insert_expense_group(
        make_group(expenses=[make_expense(10.0, "Taxi"), make_expense(25.0, "Lunch")])
    )
    assert result.status == RepositoryActionStatus.CREATED
    created = result.entity
    assert created.id is not None
    assert [e.description for e in created.expenses] == ["Taxi", "Lunch"]
    assert all(e.expense_group_id == created.id for e in created.expenses)

    fetched = repo.get_expense_group(created.id)
    assert fetched == created
    assert fetched.expenses[0].date == date(2024, 3, 1)


def test_get_missing_returns_none(repo):
    assert repo.get_expense_group(404) is None


def test_list_sorts_and_filters(repo):
    for title, status, user in [("b", 2, "u1"), ("a", 2, "u2"), ("c", 1, "u1")]:
        repo.insert_expense_group(make_group(user_id=user, title=title, status=status))

    by_title_desc = repo.list_expense_groups(sort=[("title", True)])
    assert [g.title for g in by_title_desc] == ["c", "b", "a"]

    confirmed_u1 = repo.list_expense_groups(status_id=2, user_id="u1")
    assert [g.title for g in confirmed_u1] == ["b"]

    with pytest.raises(ValueError):
        repo.list_expense_groups(sort=[("title; DROP TABLE expenses", False)])


def test_update_replaces_fields_and_expenses_but_not_owner(repo):
    created = repo.insert_expense_group(make_group(expenses=[make_expense()])).entity
    created.title = "Renamed"
    created.user_id = "intruder"
    created.expense_group_status_id = 3
    created.expenses = [make_expense(1.0, "Coffee"), make_expense(2.0, "Bus")]

    result = repo.update_expense_group(created)
    assert result.status == RepositoryActionStatus.UPDATED
    assert result.entity.title == "Renamed"
    assert result.entity.user_id == "u1"
    assert result.entity.expense_group_status_id == 3
    assert [e.description for e in result.entity.expenses] == ["Coffee", "Bus"]


def test_update_merges_expenses_by_id(repo):
    created = repo.insert_expense_group(
        make_group(expenses=[make_expense(1.0, "Coffee"), make_expense(2.0, "Bus")])
    ).entity
    coffee, bus = created.expenses
    coffee.amount = 1.5
    created.expenses = [coffee, make_expense(30.0, "Museum")]

    updated = repo.update_expense_group(created).entity
    assert updated.expenses[0].id == coffee.id
    assert updated.expenses[0].amount == 1.5
    assert updated.expenses[1].id not in (coffee.id, bus.id)
    assert [e.description for e in updated.expenses] == ["Coffee", "Museum"]

    again = repo.update_expense_group(updated).entity
    assert [e.id for e in again.expenses] == [e.id for e in updated.expenses]


def test_update_does_not_steal_expenses_from_other_groups(repo):
    other = repo.insert_expense_group(make_group(expenses=[make_expense()])).entity
    mine = repo.insert_expense_group(make_group(title="Mine")).entity
    mine.expenses = [other.expenses[0]]

    updated = repo.update_expense_group(mine).entity
    assert updated.expenses[0].id != other.expenses[0].id
    assert repo.get_expense_group(other.id).expenses == other.expenses


def test_update_unknown_group_is_not_found(repo):
    group = make_group()
    group.id = 999
    assert repo.update_expense_group(group).status == RepositoryActionStatus.NOT_FOUND


def test_update_with_invalid_status_reports_error(repo):
    created = repo.insert_expense_group(make_group()).entity
    created.expense_group_status_id = 42
    result = repo.update_expense_group(created)
    assert result.status == RepositoryActionStatus.ERROR
    assert isinstance(result.exception, sqlite3.IntegrityError)


def test_delete_cascades_to_expenses(repo, db_path):
    created = repo.insert_expense_group(make_group(expenses=[make_expense()])).entity
    assert repo.delete_expense_group(created.id).status == RepositoryActionStatus.DELETED
    assert repo.delete_expense_group(created.id).status == RepositoryActionStatus.NOT_FOUND
    with sqlite3.connect(db_path) as conn:
        assert conn.execute("SELECT COUNT(*) FROM expenses").fetchone()[0] == 0


def test_factory_round_trip(repo):
    entity = repo.insert_expense_group(
        make_group(title="Trip", description="Q3", status=2, expenses=[make_expense()])
    ).entity
    dto = expense_group_to_dto(entity)
    assert dto.name == "Trip"
    assert dto.status == 2
    assert dto.model_dump(by_alias=True)["userId"] == "u1"
    assert expense_group_from_dto(dto) == entity


def test_end_to_end_against_sqlite(sqlite_client):
    created = sqlite_client.post(
        "/api/expensegroups", json={"userId": "u1", "status": 1, "name": "Trip"}
    )
    assert created.status_code == 201
    group_id = created.json()["id"]

    patched = sqlite_client.patch(
        f"/api/expensegroups/{group_id}",
        json=[{"op": "replace", "path": "/status", "value": 2}],
    )
    assert patched.json()["status"] == 2

    listing = sqlite_client.get("/api/expensegroups", params={"status": "confirmed"})
    assert [g["id"] for g in listing.json()] == [group_id]

    assert sqlite_client.delete(f"/api/expensegroups/{group_id}").status_code == 204
    assert sqlite_client.get(f"/api/expensegroups/{group_id}").status_code == 404


def test_repeated_patch_is_idempotent_against_sqlite(sqlite_client):
    created = sqlite_client.post(
        "/api/expensegroups",
        json={
            "userId": "u1",
            "name": "Trip",
            "expenses": [{"description": "Taxi", "date": "2024-03-01", "amount": 12.5}],
        },
    ).json()
    url = f"/api/expensegroups/{created['id']}"
    ops = [{"op": "replace", "path": "/name", "value": "X"}]

    once = sqlite_client.patch(url, json=ops).json()
    twice = sqlite_client.patch(url, json=ops).json()
    assert once == twice
    assert once["expenses"] == created["expenses"]
