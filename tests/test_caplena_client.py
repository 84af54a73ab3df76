"""Tests for the Caplena client against a fake HTTP session."""

import pytest

from caplena_client import PROJECT_COLUMNS, CaplenaClient
from errors import CaplenaApiError, ResponseShapeError
from fakes import FakeResponse, FakeSession


def _client(handler):
    session = FakeSession(handler)
    return CaplenaClient("key", base_url="https://api.caplena.test", session=session), session


class TestProjects:
    @pytest.mark.parametrize("body", [
        [{"id": "p1", "name": "MRT - Intercom chats"}],
        {"results": [{"id": "p1", "name": "MRT - Intercom chats"}]},
        {"data": {"results": [{"id": "p1", "name": "MRT - Intercom chats"}]}},
    ])
    def test_find_project_accepts_every_listing_shape(self, body):
        client, _ = _client(lambda m, u, kw: FakeResponse(200, body))
        assert client.find_project_by_name("MRT - Intercom chats")["id"] == "p1"

    def test_find_project_missing(self):
        client, _ = _client(lambda m, u, kw: FakeResponse(200, {"results": []}))
        assert client.find_project_by_name("otro") is None

    def test_unexpected_listing_shape_raises(self):
        client, _ = _client(lambda m, u, kw: FakeResponse(200, {"projects": []}))
        with pytest.raises(ResponseShapeError):
            client.list_projects()

    def test_ensure_project_creates_when_missing(self):
        created = {}

        def handler(method, url, kwargs):
            if method == "GET":
                return FakeResponse(200, {"results": []})
            created.update(kwargs["json"])
            return FakeResponse(201, {"id": "new", "name": kwargs["json"]["name"]})

        client, session = _client(handler)
        project = client.ensure_project("Intercom chats")

        assert project["id"] == "new"
        assert created["name"] == "Intercom chats"
        assert created["columns"] == PROJECT_COLUMNS
        assert session.paths("POST") == ["/v2/projects"]

    def test_ensure_project_reuses_existing(self):
        client, session = _client(
            lambda m, u, kw: FakeResponse(200, [{"id": "p9", "name": "Intercom chats"}])
        )
        assert client.ensure_project("Intercom chats")["id"] == "p9"
        assert session.paths("POST") == []

    def test_delete_project(self):
        client, session = _client(lambda m, u, kw: FakeResponse(204))
        client.delete_project("p1")
        assert session.paths("DELETE") == ["/v2/projects/p1"]

    def test_create_project_without_id_is_shape_error(self):
        client, _ = _client(lambda m, u, kw: FakeResponse(201, {"name": "x"}))
        with pytest.raises(ResponseShapeError):
            client.create_project("x")


class TestRows:
    def test_bulk_create_posts_rows(self):
        client, session = _client(
            lambda m, u, kw: FakeResponse(200, {"status": "pending", "task_id": "t1", "queued_rows_count": 2})
        )
        body = client.bulk_create_rows("p1", [{"columns": []}, {"columns": []}])

        assert body["queued_rows_count"] == 2
        method, url, kwargs = session.calls[0]
        assert (method, url) == ("POST", "https://api.caplena.test/v2/projects/p1/rows/bulk")
        assert len(kwargs["json"]) == 2

    def test_bulk_create_error_raises(self):
        client, _ = _client(lambda m, u, kw: FakeResponse(400, text="bad column"))
        with pytest.raises(CaplenaApiError) as exc:
            client.bulk_create_rows("p1", [])
        assert exc.value.status_code == 400

    def test_list_rows_page(self):
        body = {
            "count": 3,
            "next_url": "https://api.caplena.test/v2/projects/p1/rows?page=2",
            "results": [
                {"id": "r1", "columns": [{"ref": "text", "value": "hola"}]},
                {"id": "r2", "columns": []},
            ],
        }
        client, session = _client(lambda m, u, kw: FakeResponse(200, body))

        rows, has_more = client.list_rows_page("p1", 1)

        assert [r.id for r in rows] == ["r1", "r2"]
        assert rows[0].column_value("text") == "hola"
        assert has_more is True
        assert session.calls[0][2]["params"] == {"page": 1, "limit": 50}

    def test_list_rows_last_page(self):
        client, _ = _client(lambda m, u, kw: FakeResponse(200, {"next_url": None, "results": []}))
        assert client.list_rows_page("p1", 3) == ([], False)

    def test_list_rows_non_dict_item_is_shape_error(self):
        client, _ = _client(lambda m, u, kw: FakeResponse(200, {"results": [{"id": "r1"}, "r2"]}))
        with pytest.raises(ResponseShapeError):
            client.list_rows_page("p1", 1)

    def test_delete_row(self):
        client, session = _client(lambda m, u, kw: FakeResponse(204))
        client.delete_row("p1", "r1")
        assert session.paths("DELETE") == ["/v2/projects/p1/rows/r1"]


def test_connection_failure_returns_false():
    client, _ = _client(lambda m, u, kw: FakeResponse(401, text="unauthorized"))
    assert client.test_connection() is False
