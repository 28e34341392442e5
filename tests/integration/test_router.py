"""
Integration tests for the /pipeline endpoints.
"""

import pymupdf
from fastapi.testclient import TestClient

from app import app
from assemble.pipeline_queue import RawFile


def _upload(client: TestClient, *files):
    return client.post(
        "/pipeline/items",
        files=[("files", (name, content, "application/octet-stream")) for name, content in files]
    )


def _names(client: TestClient):
    return [item["name"] for item in client.get("/pipeline/items").json()["items"]]


class TestHealth:
    """Test cases for the health check endpoint."""

    def test_ping_endpoint(self, client: TestClient):
        response = client.get("/ping")
        assert response.status_code == 200
        assert response.json() == {"success": True, "data": "PONG!"}


class TestQueueEndpoints:
    """Test cases for building the queue over HTTP."""

    def test_enqueue_returns_pending_items(self, client: TestClient, pdf_bytes, png_bytes):
        response = _upload(client, ("a.pdf", pdf_bytes), ("b.png", png_bytes))

        assert response.status_code == 200
        items = response.json()["items"]
        assert [item["name"] for item in items] == ["a.pdf", "b.png"]
        assert all(item["status"] == "pending" for item in items)
        assert items[0]["size"] == len(pdf_bytes)

    def test_list_items(self, client: TestClient, pdf_bytes):
        _upload(client, ("a.pdf", pdf_bytes))

        data = client.get("/pipeline/items").json()
        assert data["running"] is False
        assert len(data["items"]) == 1

    def test_move_item(self, client: TestClient, pdf_bytes):
        items = _upload(client, ("a.pdf", pdf_bytes), ("b.pdf", pdf_bytes), ("c.pdf", pdf_bytes)).json()["items"]

        response = client.post(f"/pipeline/items/{items[0]['id']}/move", data={"new_index": 2})

        assert response.status_code == 200
        assert [item["name"] for item in response.json()["items"]] == ["b.pdf", "c.pdf", "a.pdf"]

    def test_move_unknown_item(self, client: TestClient):
        response = client.post("/pipeline/items/missing/move", data={"new_index": 0})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "NOT_FOUND"

    def test_remove_item(self, client: TestClient, pdf_bytes):
        items = _upload(client, ("a.pdf", pdf_bytes), ("b.pdf", pdf_bytes)).json()["items"]

        response = client.delete(f"/pipeline/items/{items[0]['id']}")

        assert response.status_code == 200
        assert response.json()["removed"] is True
        assert _names(client) == ["b.pdf"]

    def test_remove_unknown_item_is_noop(self, client: TestClient, pdf_bytes):
        _upload(client, ("a.pdf", pdf_bytes))

        response = client.delete("/pipeline/items/missing")

        assert response.status_code == 200
        assert response.json()["removed"] is False
        assert _names(client) == ["a.pdf"]

    def test_queue_changes_rejected_while_running(self, client: TestClient, pdf_bytes):
        items = _upload(client, ("a.pdf", pdf_bytes)).json()["items"]
        app.state.queue.begin_run()
        try:
            move = client.post(f"/pipeline/items/{items[0]['id']}/move", data={"new_index": 0})
            remove = client.delete(f"/pipeline/items/{items[0]['id']}")
            run = client.post("/pipeline/run")
        finally:
            app.state.queue.end_run()

        assert move.status_code == 409
        assert remove.status_code == 409
        assert run.status_code == 409
        assert run.json()["detail"]["error"] == "PIPELINE_BUSY"

    def test_supported_formats(self, client: TestClient):
        data = client.get("/pipeline/supported").json()

        assert data["strategies"]["local-pdf"] == ["pdf"]
        assert "docx" in data["strategies"]["remote-document"]


class TestRunEndpoint:
    """Test cases for running the pipeline over HTTP."""

    def test_run_returns_merged_pdf(self, client: TestClient, pdf_bytes, png_bytes):
        _upload(client, ("a.pdf", pdf_bytes), ("b.png", png_bytes))

        response = client.post("/pipeline/run")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "merged.pdf" in response.headers["content-disposition"]
        with pymupdf.open(stream=response.content, filetype="pdf") as merged:
            assert merged.page_count == 3

        statuses = [item["status"] for item in client.get("/pipeline/items").json()["items"]]
        assert statuses == ["done", "done"]

    def test_run_with_compression(self, client: TestClient, pdf_bytes, convertapi):
        _upload(client, ("a.pdf", pdf_bytes))

        response = client.post("/pipeline/run", data={"compress": "true"})

        assert response.status_code == 200
        assert response.content == convertapi.compressed_pdf

    def test_run_failure_names_item(self, client: TestClient, pdf_bytes):
        items = _upload(client, ("a.pdf", pdf_bytes), ("b.xyz", b"?"), ("c.pdf", pdf_bytes)).json()["items"]

        response = client.post("/pipeline/run")

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "CONVERSION_NOT_SUPPORTED"
        assert data["item_id"] == items[1]["id"]
        assert data["details"] == "Unsupported file type: .xyz"

        statuses = [item["status"] for item in client.get("/pipeline/items").json()["items"]]
        assert statuses == ["done", "error", "pending"]

    def test_run_without_key(self, client_without_key: TestClient):
        _upload(client_without_key, ("letter.docx", b"docx"))

        response = client_without_key.post("/pipeline/run")

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "MISSING_CREDENTIAL"
        assert data["item_id"] is None
        assert client_without_key.get("/pipeline/items").json()["items"][0]["status"] == "pending"

    def test_compression_failure_is_run_level(self, client: TestClient, pdf_bytes, convertapi):
        convertapi.overrides["/convert/pdf/to/compress"] = (500, {"Message": "Quota exceeded"})
        _upload(client, ("a.pdf", pdf_bytes))

        response = client.post("/pipeline/run", data={"compress": "true"})

        assert response.status_code == 502
        data = response.json()
        assert data["error"] == "COMPRESSION_FAILED"
        assert data["item_id"] is None
        assert data["details"] == "Quota exceeded"

    def test_empty_queue(self, client: TestClient):
        response = client.post("/pipeline/run")

        assert response.status_code == 400
        assert response.json()["details"] == "No files queued"

    def test_queue_is_released_after_run(self, client: TestClient, pdf_bytes):
        _upload(client, ("a.pdf", pdf_bytes), ("b.xyz", b"?"))
        client.post("/pipeline/run")

        assert client.get("/pipeline/items").json()["running"] is False
        app.state.queue.enqueue([RawFile("late.pdf", pdf_bytes)])
        assert client.delete(f"/pipeline/items/{app.state.queue.items[1].id}").status_code == 200
