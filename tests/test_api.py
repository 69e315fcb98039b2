"""
Tests for the HTTP surface: grid pages, the protocol endpoint and static assets.
"""
import asyncio

from gridcrud.grid import Grid


class TestGridRoutes:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"message": "gridcrud is running.", "grids": ["contacts"]}

    def test_list_grids(self, client):
        response = client.get("/grids/")
        assert response.status_code == 200
        assert response.json() == {"grids": [{"name": "contacts", "title": "Contacts"}]}

    def test_grid_page(self, client):
        response = client.get("/grids/contacts")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "<title>Contacts</title>" in response.text
        assert 'data-ajax-url="/grids/contacts/ajax"' in response.text
        assert "/static/gridcrud/gridcrud.js" in response.text
        assert 'id="contacts_row_1"' in response.text

    def test_grid_page_applies_query_filters(self, client):
        response = client.get("/grids/contacts", params={"fldStatus": "active"})
        assert 'id="contacts_row_2"' in response.text
        assert 'id="contacts_row_1"' not in response.text

    def test_unknown_grid(self, client):
        assert client.get("/grids/nope").status_code == 404
        assert client.post("/grids/nope/ajax", data={"action": "row_count"}).status_code == 404

    def test_grid_work_runs_off_the_event_loop(self, client, registry, database):
        seen = []

        def factory(request):
            try:
                asyncio.get_running_loop()
                seen.append("event loop")
            except RuntimeError:
                seen.append("worker thread")
            return Grid("Contact", "contacts", database=database)

        registry.register("threaded", factory)
        assert client.get("/grids/threaded").status_code == 200
        assert client.post("/grids/threaded/ajax", data={"action": "row_count"}).text == "2"
        assert seen == ["worker thread", "worker thread"]

    def test_static_assets(self, client):
        assert client.get("/static/gridcrud/gridcrud.js").status_code == 200
        assert client.get("/static/gridcrud/gridcrud.css").status_code == 200


class TestProtocolEndpoint:

    def test_update_over_post(self, client, database):
        response = client.post("/grids/contacts/ajax", data={
            "action": "update",
            "table": "contacts",
            "pk": "pkID",
            "field": "fldStatus",
            "id": "1",
            "val": "active",
        })
        assert response.status_code == 200
        assert response.text == "contactsfldStatus1|active"
        assert response.headers["content-type"].startswith("text/plain")
        assert database.fetch_value("SELECT fldStatus FROM contacts WHERE pkID = 1") == "active"

    def test_responses_are_not_cached(self, client):
        response = client.get("/grids/contacts/ajax", params={"action": "row_count"})
        assert response.text == "2"
        assert response.headers["cache-control"] == "no-cache, must-revalidate"
        assert response.headers["expires"] == "Mon, 26 Jul 1997 05:00:00 GMT"

    def test_pages_are_cacheable(self, client):
        response = client.get("/grids/contacts")
        assert "expires" not in response.headers

    def test_refresh_returns_fragment(self, client):
        response = client.post("/grids/contacts/ajax", data={"action": "sort", "sort": "fldName"})
        assert response.headers["content-type"].startswith("text/html")
        assert response.text.startswith('<div class="gc-state"')

    def test_add_then_delete(self, client, database):
        response = client.post("/grids/contacts/ajax", data={"action": "add", "add:fldName": "Carol"})
        assert "Contact Added" in response.text
        response = client.post("/grids/contacts/ajax", data={"action": "delete", "table": "contacts", "id": "3"})
        assert response.text == "contacts|3"
        assert database.fetch_value("SELECT COUNT(*) FROM contacts") == 2


class TestErrorHandlers:

    def test_schema_errors_are_generic_500s(self, client, registry, database):
        registry.register("ghosts", lambda request: Grid("Ghost", "ghosts", database=database))
        response = client.get("/grids/ghosts")
        assert response.status_code == 500
        assert response.json() == {"detail": "Internal database error"}

    def test_authorization_errors_are_403s(self, client, registry, database):
        from gridcrud.rbac import RoleBasedAccess

        registry.register(
            "locked",
            lambda request: Grid("Contact", "contacts", database=database, authorization=RoleBasedAccess(role="guest")),
        )
        response = client.get("/grids/locked")
        assert response.status_code == 403
        assert response.json() == {"detail": "You do not have permission to view records in contacts"}
