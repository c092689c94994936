"""Tests for the HTTP surface: status codes, error bodies and wiring."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from mediahost.core.database import get_db
from mediahost.main import app
from mediahost.modules.account.dependencies import get_current_account
from mediahost.modules.conversion.router import get_conversion_service
from mediahost.modules.folder.paths import folder_path
from mediahost.modules.folder.router import get_folder_service


API = "/api/v1"


@pytest.fixture
def client(reconciler, orchestrator, account):
    app.dependency_overrides[get_current_account] = lambda: account
    app.dependency_overrides[get_folder_service] = lambda: reconciler
    app.dependency_overrides[get_conversion_service] = lambda: orchestrator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client():
    session = MagicMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = None
    session.execute = AsyncMock(return_value=result)

    async def override_db():
        yield session

    app.dependency_overrides[get_db] = override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_metrics_exposed(self, client):
        client.get("/health")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "mediahost_app_info" in response.text
        assert "http_requests_total" in response.text

    def test_correlation_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "req-123"})

        assert response.headers["X-Correlation-ID"] == "req-123"


class TestAccountResolution:

    def test_missing_header(self, anonymous_client):
        response = anonymous_client.get(f"{API}/folders")

        assert response.status_code == 401

    def test_malformed_header(self, anonymous_client):
        response = anonymous_client.get(f"{API}/folders", headers={"X-Account-Id": "nope"})

        assert response.status_code == 401

    def test_unknown_account(self, anonymous_client):
        response = anonymous_client.get(
            f"{API}/folders", headers={"X-Account-Id": str(uuid.uuid4())}
        )

        assert response.status_code == 404


class TestFolderRoutes:

    def test_create_and_list(self, client, remote):
        created = client.post(f"{API}/folders", json={"name": "Live"})
        listed = client.get(f"{API}/folders")

        assert created.status_code == 201
        assert created.json()["name"] == "Live"
        assert listed.json()["total"] == 1
        assert folder_path("live7", "Live") in remote.directories

    def test_duplicate_is_conflict(self, client):
        client.post(f"{API}/folders", json={"name": "Live"})

        response = client.post(f"{API}/folders", json={"name": "Live"})

        assert response.status_code == 409
        assert response.json()["detail"]["reason"] == "duplicate_name"

    def test_invalid_name(self, client):
        response = client.post(f"{API}/folders", json={"name": ".."})

        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "invalid_folder_name"

    def test_remote_failure_is_bad_gateway(self, client, remote):
        remote.channel_down = True

        response = client.post(f"{API}/folders", json={"name": "Live"})

        assert response.status_code == 502
        assert response.json()["detail"]["reason"] == "remote_create_failed"

    def test_rename(self, client, store, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)

        response = client.put(f"{API}/folders/{folder.id}", json={"name": "Show"})

        assert response.status_code == 200
        assert response.json()["name"] == "Show"

    def test_delete_non_empty(self, client, store, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        store.add_video(account, folder, "a.mp4")

        response = client.delete(f"{API}/folders/{folder.id}")

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["reason"] == "folder_not_empty"
        assert detail["details"]["video_count"] == 1

    def test_unknown_folder(self, client):
        response = client.get(f"{API}/folders/{uuid.uuid4()}/info")

        assert response.status_code == 404
        assert response.json()["detail"]["reason"] == "not_found"

    def test_info_and_sync(self, client, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        remote.add_file(folder_path("live7", "Live") + "/a.part")

        synced = client.post(f"{API}/folders/{folder.id}/sync")
        info = client.get(f"{API}/folders/{folder.id}/info")

        assert synced.status_code == 200
        assert synced.json()["removed_files"] == 1
        assert info.status_code == 200
        assert info.json()["server_info"]["exists"] is True


class TestConversionRoutes:

    @pytest.fixture
    def video(self, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        remote.add_file(folder_path("live7", "Live") + "/clip.mkv")
        return store.add_video(account, folder, "clip.mkv", is_mp4=False)

    def test_qualities(self, client):
        response = client.get(f"{API}/conversion/qualities")

        body = response.json()
        assert response.status_code == 200
        assert body["bitrate_ceiling"] == 2500
        assert [q["tier"] for q in body["qualities"]] == ["baixa", "media", "alta", "fullhd", "custom"]

    def test_convert_is_accepted(self, client, dispatcher, video):
        response = client.post(
            f"{API}/conversion/convert",
            json={"video_id": str(video.id), "quality": "media"},
        )

        assert response.status_code == 202
        assert response.json()["conversion_id"] == f"{video.id}_1500"
        assert len(dispatcher.dispatched) == 1

    def test_convert_above_ceiling(self, client, video):
        response = client.post(
            f"{API}/conversion/convert",
            json={"video_id": str(video.id), "quality": "fullhd"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "exceeds_ceiling"

    def test_convert_missing_source(self, client, remote, video):
        remote.files.clear()

        response = client.post(
            f"{API}/conversion/convert",
            json={"video_id": str(video.id), "quality": "media"},
        )

        assert response.status_code == 404
        assert response.json()["detail"]["reason"] == "source_not_found"

    def test_batch(self, client, video):
        response = client.post(
            f"{API}/conversion/batch",
            json={"video_ids": [str(video.id), str(uuid.uuid4())]},
        )

        body = response.json()
        assert response.status_code == 202
        assert body["accepted"] == 1
        assert body["total"] == 2

    def test_status(self, client, video):
        accepted = client.post(
            f"{API}/conversion/convert",
            json={"video_id": str(video.id), "quality": "baixa"},
        ).json()

        response = client.get(f"{API}/conversion/status/{accepted['conversion_id']}")

        assert response.status_code == 200
        assert response.json()["status"] == "in_progress"
        assert response.json()["progress"] == 50

    def test_list_videos(self, client, video):
        response = client.get(f"{API}/conversion/videos")

        assert response.status_code == 200
        assert response.json()["videos"][0]["needs_conversion"] is True

    def test_delete_original_is_not_found(self, client, video):
        response = client.delete(f"{API}/conversion/{video.id}")

        assert response.status_code == 404
