"""Saved entry list tests (service and routes)."""

from queueline.models.saved_entry import SavedEntry
from queueline.services.saved_entry_service import SavedEntryService, serialize_saved_entry


class TestSavedEntryService:
    def test_save_and_list_in_order(self, db_session):
        service = SavedEntryService(db_session)
        service.save("client-a", "entry-1", "Alice", "1111111111")
        service.save("client-a", "entry-2", "Bob", "2222222222")
        service.save("client-b", "entry-3", "Cara", "3333333333")

        saved = service.list_entries("client-a")
        assert [s.entry_id for s in saved] == ["entry-1", "entry-2"]

    def test_save_is_idempotent(self, db_session):
        service = SavedEntryService(db_session)
        first = service.save("client-a", "entry-1", "Alice", "1111111111")
        second = service.save("client-a", "entry-1", "Alice", "1111111111")

        assert first.id == second.id
        assert db_session.query(SavedEntry).count() == 1

    def test_forget(self, db_session):
        service = SavedEntryService(db_session)
        service.save("client-a", "entry-1", "Alice", "1111111111")

        assert service.forget("client-a", "entry-1") is True
        assert service.forget("client-a", "entry-1") is False
        assert service.list_entries("client-a") == []

    def test_forget_only_own_entries(self, db_session):
        service = SavedEntryService(db_session)
        service.save("client-a", "entry-1", "Alice", "1111111111")

        assert service.forget("client-b", "entry-1") is False
        assert len(service.list_entries("client-a")) == 1

    def test_serialize(self, db_session):
        saved = SavedEntryService(db_session).save("client-a", "entry-1", "Alice", "1111111111")
        data = serialize_saved_entry(saved)
        assert data["id"] == "entry-1"
        assert data["name"] == "Alice"
        assert data["phone"] == "1111111111"
        assert data["joined_at"]


class TestSavedEntryRoutes:
    def test_join_saves_entry_for_client(self, client, join_payload):
        response = client.post("/api/v1/queue/join", json=join_payload)
        assert response.status_code == 201
        entry_id = response.json()["id"]

        saved = client.get("/api/v1/saved")
        assert saved.status_code == 200
        data = saved.json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == entry_id
        assert data["items"][0]["name"] == "Alice"

    def test_client_cookie_issued(self, client):
        response = client.get("/api/v1/saved")
        assert "client_id" in response.cookies

    def test_forget_saved_entry(self, client, join_payload):
        entry_id = client.post("/api/v1/queue/join", json=join_payload).json()["id"]

        response = client.delete(f"/api/v1/saved/{entry_id}")
        assert response.status_code == 200
        assert client.get("/api/v1/saved").json()["items"] == []
        # still in line
        assert client.get(f"/api/v1/queue/{entry_id}").status_code == 200

    def test_forget_unknown(self, client):
        response = client.delete("/api/v1/saved/nope")
        assert response.status_code == 404
        assert response.json()["detail"] == "Saved entry not found"

    def test_leaving_queue_forgets_entry(self, client, join_payload):
        entry_id = client.post("/api/v1/queue/join", json=join_payload).json()["id"]
        client.delete(f"/api/v1/queue/{entry_id}")
        assert client.get("/api/v1/saved").json()["total"] == 0
