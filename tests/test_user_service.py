import asyncio

import httpx
import pytest

from userhub.app import create_app
from userhub.core.http import RequestDispatcher
from userhub.core.models import NewUser, Role, User, UserUpdate
from userhub.services.user_service import UserService


def mutating(sent):
    return [entry for entry in sent if entry[0] != "GET"]


@pytest.mark.asyncio
async def test_create_user_assigns_id_and_created_at(service, sent):
    res = await service.create_user({"name": "Dana", "email": "dana@example.com", "role": "user"})

    assert res.success is True
    assert isinstance(res.data, User)
    assert res.data.id == 5
    assert res.data.created_at is not None
    assert res.data.role is Role.USER
    assert ("POST", "/users") in sent


@pytest.mark.asyncio
async def test_create_user_on_fresh_collection(store):
    transport = httpx.ASGITransport(app=create_app(store))
    async with httpx.AsyncClient(transport=transport) as client:
        fresh = UserService(RequestDispatcher(client=client), base_url="http://testserver")
        res = await fresh.create_user(NewUser(name="First", email="first@example.com", role=Role.ADMIN))

    assert res.success is True
    assert res.data.id == 1
    assert res.data.role is Role.ADMIN


@pytest.mark.asyncio
async def test_create_user_ignores_client_supplied_identity(service, seeded_store):
    res = await service.create_user(
        {"id": 99, "createdAt": "1999-01-01T00:00:00Z", "name": "Eve", "email": "eve@example.com", "role": "guest"}
    )

    assert res.success is True
    assert res.data.id != 99
    assert res.data.created_at.year != 1999


@pytest.mark.asyncio
async def test_duplicate_email_rejected_without_post(service, sent):
    res = await service.create_user({"name": "Alice 2", "email": "ALICE@example.com", "role": "user"})

    assert res.success is False
    assert res.data is None
    assert res.error_code == "DUPLICATE_EMAIL"
    assert mutating(sent) == []


@pytest.mark.asyncio
async def test_invalid_role_rejected(service, sent):
    res = await service.create_user({"name": "Sam", "email": "sam@example.com", "role": "superadmin"})

    assert res.success is False
    assert res.error_code == "INVALID_ROLE"
    assert mutating(sent) == []


@pytest.mark.asyncio
async def test_invalid_email_rejected_before_any_request(service, sent):
    res = await service.create_user({"name": "Sam", "email": "not-an-email", "role": "user"})

    assert res.error_code == "INVALID_EMAIL"
    assert sent == []


@pytest.mark.asyncio
async def test_missing_name_is_a_validation_error(service, sent):
    res = await service.create_user({"email": "sam@example.com", "role": "user"})

    assert res.success is False
    assert res.error_code == "VALIDATION_ERROR"
    assert "name" in res.message
    assert sent == []


@pytest.mark.asyncio
async def test_get_users_returns_everything(service):
    res = await service.get_users()

    assert res.success is True
    assert [u.id for u in res.data] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_get_users_filters_by_role(service, sent):
    res = await service.get_users(Role.ADMIN)

    assert res.success is True
    assert [u.name for u in res.data] == ["Alice Admin", "Carol Admin"]
    assert all(u.role == Role.ADMIN for u in res.data)
    assert sent == [("GET", "/users")]


@pytest.mark.asyncio
async def test_get_users_with_no_matches_is_empty_success(service, seeded_store):
    seeded_store.delete(3)

    res = await service.get_users("guest")

    assert res.success is True
    assert res.data == []


@pytest.mark.asyncio
async def test_get_users_filters_even_if_backend_ignores_role(mock_dispatcher):
    records = [
        {"id": 1, "name": "A", "email": "a@x.io", "role": "admin", "createdAt": "2024-01-01T00:00:00Z"},
        {"id": 2, "name": "B", "email": "b@x.io", "role": "user", "createdAt": "2024-01-01T00:00:00Z"},
    ]
    dispatcher = mock_dispatcher(lambda request: httpx.Response(200, json=records))
    service = UserService(dispatcher, base_url="http://backend.local")

    res = await service.get_users(Role.ADMIN)

    assert [u.id for u in res.data] == [1]


@pytest.mark.asyncio
async def test_get_user(service):
    found = await service.get_user(2)
    missing = await service.get_user(404)

    assert found.success is True
    assert found.data.email == "bob@example.com"
    assert missing.error_code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_update_user_changes_only_supplied_fields(service, seeded_store):
    before = dict(seeded_store.get(2))

    res = await service.update_user(2, {"name": "Robert", "id": 50, "createdAt": "2000-01-01T00:00:00Z"})

    assert res.success is True
    assert res.data.id == 2
    assert res.data.name == "Robert"
    assert res.data.email == before["email"]
    assert seeded_store.get(2)["createdAt"] == before["createdAt"]


@pytest.mark.asyncio
async def test_update_missing_user_is_not_found_without_put(service, sent):
    res = await service.update_user(999, UserUpdate(name="Ghost"))

    assert res.success is False
    assert res.error_code == "NOT_FOUND"
    assert ("PUT", "/users/999") not in sent
    assert mutating(sent) == []


@pytest.mark.asyncio
async def test_update_rejects_explicit_null(service, sent):
    res = await service.update_user(2, {"email": None})

    assert res.error_code == "VALIDATION_ERROR"
    assert "email" in res.message
    assert sent == []


@pytest.mark.asyncio
async def test_update_validates_email_and_role(service, sent):
    bad_email = await service.update_user(2, {"email": "nope"})
    bad_role = await service.update_user(2, {"role": "root"})

    assert bad_email.error_code == "INVALID_EMAIL"
    assert bad_role.error_code == "INVALID_ROLE"
    assert mutating(sent) == []


@pytest.mark.asyncio
async def test_update_with_no_fields_returns_current_record(service, sent):
    res = await service.update_user(3, {})

    assert res.success is True
    assert res.data.name == "Gina Guest"
    assert mutating(sent) == []


@pytest.mark.asyncio
async def test_update_role(service):
    res = await service.update_user(3, UserUpdate(role=Role.ADMIN))

    assert res.data.role is Role.ADMIN


@pytest.mark.asyncio
async def test_delete_then_delete_again(service, sent):
    first = await service.delete_user(1)
    second = await service.delete_user(1)

    assert first.success is True
    assert first.data is True
    assert second.success is False
    assert second.error_code == "NOT_FOUND"
    assert mutating(sent) == [("DELETE", "/users/1")]


@pytest.mark.asyncio
async def test_search_matches_name_or_email_case_insensitively(service):
    by_name = await service.search_users("ADMIN")
    by_email = await service.search_users("example.org")

    assert [u.name for u in by_name.data] == ["Alice Admin", "Carol Admin"]
    assert [u.name for u in by_email.data] == ["Gina Guest"]


@pytest.mark.asyncio
async def test_search_with_empty_query_returns_all(service):
    res = await service.search_users("")

    assert len(res.data) == 4


@pytest.mark.asyncio
async def test_debounced_search_dispatches_once_with_last_query(service, sent):
    search = service.debounced_search(300)
    futures = []
    for query in ["c", "ca", "car", "caro", "carol"]:
        futures.append(search(query))
        await asyncio.sleep(0.05)

    res = await futures[-1]

    assert sent == [("GET", "/users")]
    assert [u.name for u in res.data] == ["Carol Admin"]
    assert all(f.cancelled() for f in futures[:-1])


@pytest.mark.asyncio
async def test_operations_report_timeouts(mock_dispatcher):
    async def handler(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json=[])

    service = UserService(mock_dispatcher(handler, timeout_ms=50), base_url="http://backend.local")

    listing = await service.get_users()
    update = await service.update_user(1, {"name": "X"})

    assert listing.error_code == "TIMEOUT"
    assert listing.data is None
    assert update.error_code == "TIMEOUT"


@pytest.mark.asyncio
async def test_malformed_records_are_reported(mock_dispatcher):
    dispatcher = mock_dispatcher(lambda request: httpx.Response(200, json=[{"id": "x"}]))
    service = UserService(dispatcher, base_url="http://backend.local")

    res = await service.search_users("a")

    assert res.success is False
    assert res.error_code == "NETWORK_ERROR"


@pytest.mark.asyncio
async def test_existing_email_with_trailing_newline_is_not_created(service, seeded_store, sent):
    res = await service.create_user({"name": "Alice 2", "email": "alice@example.com\n", "role": "user"})

    assert res.success is False
    assert res.error_code == "INVALID_EMAIL"
    assert mutating(sent) == []
    assert len(seeded_store) == 4


@pytest.mark.asyncio
async def test_update_rejects_email_with_trailing_newline(service, sent):
    res = await service.update_user(2, {"email": "bob@example.com\n"})

    assert res.error_code == "INVALID_EMAIL"
    assert sent == []


@pytest.mark.asyncio
async def test_get_users_with_unknown_role_is_rejected_without_request(service, sent):
    res = await service.get_users("superadmin")

    assert res.success is False
    assert res.data is None
    assert res.error_code == "INVALID_ROLE"
    assert sent == []
