"""Tests for folder reconciliation between metadata and streaming hosts."""

import uuid

import pytest

from mediahost.core.config import settings
from mediahost.core.exceptions import (
    DuplicateName,
    FolderNotEmpty,
    InvalidFolderName,
    NoHostAvailable,
    NotFound,
    RemoteCreateFailed,
    RemoteRenameFailed,
)
from mediahost.modules.folder.paths import account_path, folder_path
from mediahost.modules.host.models import HostStatus

from fakes import build_reconciler, make_account


LOGIN = "live7"


def live_path(name: str) -> str:
    return folder_path(LOGIN, name)


class TestCreateFolder:

    @pytest.mark.asyncio
    async def test_creates_row_and_directory(self, reconciler, store, remote, account, host):
        response = await reconciler.create(account, "Live")

        assert response.name == "Live"
        assert response.host_id == host.id
        assert response.quota_mb == settings.DEFAULT_FOLDER_QUOTA_MB
        assert response.id in store.folders
        assert account_path(LOGIN) in remote.directories
        assert live_path("Live") in remote.directories
        assert remote.modes[live_path("Live")] == "755"
        assert remote.owners[live_path("Live")] == "wowza:wowza"

    @pytest.mark.asyncio
    async def test_name_is_trimmed(self, reconciler, account):
        response = await reconciler.create(account, "  Live  ")

        assert response.name == "Live"

    @pytest.mark.asyncio
    async def test_remote_failure_leaves_no_row(self, reconciler, store, remote, account):
        remote.fail_operations.add("mkdir")

        with pytest.raises(RemoteCreateFailed) as exc_info:
            await reconciler.create(account, "Live")

        assert exc_info.value.status_code == 502
        assert store.folders == {}

    @pytest.mark.asyncio
    async def test_unreachable_host_leaves_no_row(self, reconciler, store, remote, account):
        remote.channel_down = True

        with pytest.raises(RemoteCreateFailed):
            await reconciler.create(account, "Live")

        assert store.folders == {}

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected_for_same_account(self, reconciler, store, account):
        store.add_folder(account, "Live")

        with pytest.raises(DuplicateName):
            await reconciler.create(account, "Live")

    @pytest.mark.asyncio
    async def test_same_name_allowed_for_other_account(self, reconciler, store, account):
        store.add_folder(account, "Live")
        other = make_account(store, email="radio9@example.com")

        response = await reconciler.create(other, "Live")

        assert response.name == "Live"
        assert folder_path("radio9", "Live") in reconciler.remote.directories

    @pytest.mark.asyncio
    async def test_invalid_name_rejected_before_remote_work(self, reconciler, remote, account):
        with pytest.raises(InvalidFolderName):
            await reconciler.create(account, "a/b")

        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_reuses_host_of_existing_folders(self, reconciler, store, account, host):
        other_host = store.add_host(name="stream-2", active_streams=0)
        store.hosts[host.id].active_streams = 10
        store.add_folder(account, "Old", host_id=host.id)

        response = await reconciler.create(account, "New")

        assert response.host_id == host.id
        assert response.host_id != other_host.id

    @pytest.mark.asyncio
    async def test_no_active_host(self, store, session, remote, account):
        store.add_host(name="down", status=HostStatus.MAINTENANCE.value)
        reconciler = build_reconciler(store, session, remote)

        with pytest.raises(NoHostAvailable) as exc_info:
            await reconciler.create(account, "Live")

        assert exc_info.value.status_code == 503
        assert store.folders == {}


class TestRenameFolder:

    @pytest.mark.asyncio
    async def test_moves_directory_and_playlist_entries(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        remote.add_file(live_path("Live") + "/a.mp4")
        entry = store.add_playlist_entry(account, "live7/Live/a.mp4")
        sibling = store.add_playlist_entry(account, "live7/Live2/b.mp4")

        response = await reconciler.rename(account, folder.id, "Show")

        assert response.name == "Show"
        assert live_path("Live") not in remote.directories
        assert live_path("Show") + "/a.mp4" in remote.files
        assert entry.video_path == "live7/Show/a.mp4"
        assert sibling.video_path == "live7/Live2/b.mp4"

    @pytest.mark.asyncio
    async def test_other_account_entries_untouched(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        remote.directories.add(live_path("Live"))
        other = make_account(store, email="live7@other.example")
        foreign = store.add_playlist_entry(other, "live7/Live/a.mp4")

        await reconciler.rename(account, folder.id, "Show")

        assert foreign.video_path == "live7/Live/a.mp4"

    @pytest.mark.asyncio
    async def test_missing_directory_is_created_under_new_name(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)

        await reconciler.rename(account, folder.id, "Show")

        assert live_path("Show") in remote.directories
        assert "rename" not in remote.operations()
        assert folder.name == "Show"

    @pytest.mark.asyncio
    async def test_remote_failure_keeps_metadata_and_directory(
        self, reconciler, store, remote, account, host
    ):
        folder = store.add_folder(account, "Live", host_id=host.id)
        remote.add_file(live_path("Live") + "/a.mp4")
        entry = store.add_playlist_entry(account, "live7/Live/a.mp4")
        remote.fail_operations.add("permissions")

        with pytest.raises(RemoteRenameFailed):
            await reconciler.rename(account, folder.id, "Show")

        assert remote.operations().count("rename") == 2
        assert folder.name == "Live"
        assert entry.video_path == "live7/Live/a.mp4"
        assert live_path("Live") in remote.directories
        assert live_path("Show") not in remote.directories
        assert live_path("Live") + "/a.mp4" in remote.files

    @pytest.mark.asyncio
    async def test_failed_move_is_not_undone(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        remote.directories.update({live_path("Live"), live_path("Show")})

        with pytest.raises(RemoteRenameFailed):
            await reconciler.rename(account, folder.id, "Show")

        assert remote.operations().count("rename") == 1
        assert {live_path("Live"), live_path("Show")} <= remote.directories
        assert folder.name == "Live"

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        store.add_folder(account, "Show", host_id=host.id)

        with pytest.raises(DuplicateName):
            await reconciler.rename(account, folder.id, "Show")

        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_same_name_is_a_no_op(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)

        response = await reconciler.rename(account, folder.id, "Live")

        assert response.name == "Live"
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_assigns_host_when_missing(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live")

        await reconciler.rename(account, folder.id, "Show")

        assert folder.host_id == host.id

    @pytest.mark.asyncio
    async def test_folder_of_other_account_not_found(self, reconciler, store, account, host):
        other = make_account(store, email="radio9@example.com")
        folder = store.add_folder(other, "Live", host_id=host.id)

        with pytest.raises(NotFound):
            await reconciler.rename(account, folder.id, "Show")


class TestDeleteFolder:

    @pytest.mark.asyncio
    async def test_removes_empty_folder(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        remote.directories.add(live_path("Live"))

        response = await reconciler.delete(account, folder.id)

        assert response.id == folder.id
        assert folder.id not in store.folders
        assert live_path("Live") not in remote.directories

    @pytest.mark.asyncio
    async def test_refused_while_videos_exist(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        store.add_video(account, folder, "a.mp4")

        with pytest.raises(FolderNotEmpty) as exc_info:
            await reconciler.delete(account, folder.id)

        assert exc_info.value.to_dict()["details"]["video_count"] == 1
        assert folder.id in store.folders
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_refused_while_playlist_references_exist(self, reconciler, store, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        store.add_playlist_entry(account, "live7/Live/a.mp4")

        with pytest.raises(FolderNotEmpty) as exc_info:
            await reconciler.delete(account, folder.id)

        assert exc_info.value.to_dict()["details"]["playlist_count"] == 1

    @pytest.mark.asyncio
    async def test_refused_while_remote_files_exist(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        remote.add_file(live_path("Live") + "/orphan.mp4")

        with pytest.raises(FolderNotEmpty) as exc_info:
            await reconciler.delete(account, folder.id)

        assert exc_info.value.to_dict()["details"]["remote_file_count"] == 1
        assert folder.id in store.folders
        assert live_path("Live") in remote.directories

    @pytest.mark.asyncio
    async def test_missing_directory_still_deletes_row(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)

        await reconciler.delete(account, folder.id)

        assert folder.id not in store.folders
        assert "rmdir" not in remote.operations()

    @pytest.mark.asyncio
    async def test_folder_without_host_deletes_row_only(self, reconciler, store, remote, account):
        folder = store.add_folder(account, "Live")

        await reconciler.delete(account, folder.id)

        assert folder.id not in store.folders
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_unknown_folder(self, reconciler, account, random_id):
        with pytest.raises(NotFound):
            await reconciler.delete(account, random_id)


class TestSyncFolder:

    @pytest.mark.asyncio
    async def test_removes_partial_files_and_reports_untracked(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        store.add_video(account, folder, "a.mp4")
        remote.add_file(live_path("Live") + "/a.mp4")
        remote.add_file(live_path("Live") + "/b.mp4")
        remote.add_file(live_path("Live") + "/upload.part")
        remote.add_file(live_path("Live") + "/job.tmp")
        remote.add_file(live_path("Live") + "/empty.mp4", size=0)

        response = await reconciler.sync(account, folder.id)

        assert response.removed_files == 3
        assert response.untracked_files == ["b.mp4"]
        assert response.path == live_path("Live")
        assert sorted(remote.files) == [live_path("Live") + "/a.mp4", live_path("Live") + "/b.mp4"]
        assert remote.modes[live_path("Live")] == "755"

    @pytest.mark.asyncio
    async def test_recreates_missing_directory(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)

        response = await reconciler.sync(account, folder.id)

        assert response.removed_files == 0
        assert live_path("Live") in remote.directories


class TestFolderInfo:

    @pytest.mark.asyncio
    async def test_reports_remote_state(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id, quota_mb=1000, used_mb=250)
        store.add_video(account, folder, "a.mp4")
        remote.add_file(live_path("Live") + "/a.mp4", size=3 * 1024 * 1024 + 1)

        info = await reconciler.info(account, folder.id)

        assert info.video_count == 1
        assert info.percentage_used == 25.0
        assert info.server_info.exists is True
        assert info.server_info.file_count == 1
        assert info.server_info.size_mb == 4
        assert info.server_info.error is None

    @pytest.mark.asyncio
    async def test_remote_error_is_reported_not_raised(self, reconciler, store, remote, account, host):
        folder = store.add_folder(account, "Live", host_id=host.id)
        remote.channel_down = True

        info = await reconciler.info(account, folder.id)

        assert info.name == "Live"
        assert info.server_info.exists is False
        assert info.server_info.error


class TestListFolders:

    @pytest.mark.asyncio
    async def test_lists_only_own_folders_by_name(self, reconciler, store, account):
        store.add_folder(account, "b")
        store.add_folder(account, "a")
        store.add_folder(make_account(store, email="x@example.com"), "c")

        response = await reconciler.list_folders(account)

        assert response.total == 2
        assert [f.name for f in response.folders] == ["a", "b"]
