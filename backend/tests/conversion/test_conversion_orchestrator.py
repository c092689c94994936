"""Tests for conversion requests, execution and deletion."""

import asyncio
import uuid

import pytest
from hypothesis import given, settings, strategies as st
from sqlalchemy.exc import IntegrityError

from mediahost.core.exceptions import (
    ConversionAlreadyExists,
    ExceedsCeiling,
    InvalidFolderName,
    InvalidQuality,
    NotFound,
    SourceNotFound,
)
from mediahost.modules.conversion.models import ConversionJobStatus
from mediahost.modules.conversion.schemas import ConversionState
from mediahost.modules.folder.paths import folder_path
from mediahost.modules.quality.policy import QualityRequest

from fakes import (
    FakeDispatcher,
    FakeRemoteShell,
    FakeStore,
    build_orchestrator,
    make_account,
    make_session,
)


LIVE_DIR = folder_path("live7", "Live")
SOURCE = f"{LIVE_DIR}/clip.mkv"
OUTPUT_1500 = f"{LIVE_DIR}/clip_1500kbps.mp4"


@pytest.fixture
def folder(store, account, host):
    return store.add_folder(account, "Live", host_id=host.id)


@pytest.fixture
def video(store, account, folder, remote):
    remote.add_file(SOURCE, size=80_000_000)
    return store.add_video(
        account,
        folder,
        "clip.mkv",
        original_format="mkv",
        is_mp4=False,
        is_compatible=False,
        bitrate_kbps=6000,
    )


MEDIA = QualityRequest(tier="media")


class TestRequestConversion:

    @pytest.mark.asyncio
    async def test_accepts_and_dispatches(self, orchestrator, store, dispatcher, account, video, host):
        accepted = await orchestrator.request_conversion(account, video.id, MEDIA)

        assert accepted.conversion_id == f"{video.id}_1500"
        assert accepted.target_bitrate == 1500
        assert accepted.target_resolution == "1280x720"
        assert accepted.quality_label == "Média (720p)"
        assert dispatcher.dispatched == [accepted.job_id]

        job = store.jobs[accepted.job_id]
        assert job.status == ConversionJobStatus.PENDING.value
        assert job.host_id == host.id
        assert job.source_path == SOURCE
        assert job.output_path == OUTPUT_1500
        assert (job.target_width, job.target_height) == (1280, 720)

    @pytest.mark.asyncio
    async def test_tier_above_ceiling_rejected_before_remote_work(
        self, orchestrator, store, remote, account, video
    ):
        with pytest.raises(ExceedsCeiling):
            await orchestrator.request_conversion(account, video.id, QualityRequest(tier="fullhd"))

        assert remote.calls == []
        assert store.jobs == {}

    @pytest.mark.asyncio
    async def test_custom_above_ceiling_rejected(self, orchestrator, account, video):
        request = QualityRequest(use_custom=True, custom_bitrate=3000, custom_resolution="1920x1080")

        with pytest.raises(ExceedsCeiling):
            await orchestrator.request_conversion(account, video.id, request)

    @pytest.mark.asyncio
    async def test_custom_within_ceiling(self, orchestrator, store, account, video):
        request = QualityRequest(use_custom=True, custom_bitrate=1200, custom_resolution="1024x576")

        accepted = await orchestrator.request_conversion(account, video.id, request)

        assert accepted.quality_label == "Personalizado (1200 kbps)"
        assert store.jobs[accepted.job_id].output_path == f"{LIVE_DIR}/clip_1200kbps.mp4"

    @pytest.mark.asyncio
    async def test_missing_source(self, orchestrator, store, remote, dispatcher, account, video):
        del remote.files[SOURCE]

        with pytest.raises(SourceNotFound) as exc_info:
            await orchestrator.request_conversion(account, video.id, MEDIA)

        assert exc_info.value.detail == {"path": SOURCE}
        assert store.jobs == {}
        assert dispatcher.dispatched == []

    @pytest.mark.asyncio
    async def test_existing_output(self, orchestrator, store, remote, dispatcher, account, video):
        remote.add_file(OUTPUT_1500)

        with pytest.raises(ConversionAlreadyExists):
            await orchestrator.request_conversion(account, video.id, MEDIA)

        assert store.jobs == {}
        assert dispatcher.dispatched == []

    @pytest.mark.asyncio
    async def test_output_on_host_rejects_request_without_job_row(
        self, orchestrator, store, remote, dispatcher, account, video
    ):
        """Best effort: with the job row gone, only the finished output marks a duplicate."""
        first = await orchestrator.request_conversion(account, video.id, MEDIA)
        del store.jobs[first.job_id]
        remote.add_file(OUTPUT_1500, size=4_000_000)

        with pytest.raises(ConversionAlreadyExists) as exc_info:
            await orchestrator.request_conversion(account, video.id, MEDIA)

        assert exc_info.value.detail == {"path": OUTPUT_1500}
        assert store.jobs == {}
        assert dispatcher.dispatched == [first.job_id]

    @pytest.mark.asyncio
    async def test_request_without_job_row_or_output_is_accepted_again(
        self, orchestrator, store, dispatcher, account, video
    ):
        """Best effort: before the first output appears a repeat is not detected."""
        first = await orchestrator.request_conversion(account, video.id, MEDIA)
        del store.jobs[first.job_id]

        second = await orchestrator.request_conversion(account, video.id, MEDIA)

        assert second.job_id != first.job_id
        assert dispatcher.dispatched == [first.job_id, second.job_id]

    @pytest.mark.asyncio
    async def test_second_request_while_pending(self, orchestrator, dispatcher, account, video):
        await orchestrator.request_conversion(account, video.id, MEDIA)

        with pytest.raises(ConversionAlreadyExists):
            await orchestrator.request_conversion(account, video.id, MEDIA)

        assert len(dispatcher.dispatched) == 1

    @pytest.mark.asyncio
    async def test_different_bitrates_run_side_by_side(self, orchestrator, dispatcher, account, video):
        await orchestrator.request_conversion(account, video.id, MEDIA)
        await orchestrator.request_conversion(account, video.id, QualityRequest(tier="baixa"))

        assert len(dispatcher.dispatched) == 2

    @pytest.mark.asyncio
    async def test_failed_job_is_retried(self, orchestrator, store, dispatcher, account, video):
        first = await orchestrator.request_conversion(account, video.id, MEDIA)
        job = store.jobs[first.job_id]
        job.status = ConversionJobStatus.FAILED.value
        job.error_message = "FFmpeg reported a conversion error"

        second = await orchestrator.request_conversion(account, video.id, MEDIA)

        assert second.job_id == first.job_id
        assert job.status == ConversionJobStatus.PENDING.value
        assert job.error_message is None
        assert dispatcher.dispatched == [first.job_id, first.job_id]

    @pytest.mark.asyncio
    async def test_dispatch_failure_marks_job_failed(self, store, session, remote, account, video, host):
        orchestrator = build_orchestrator(store, session, remote, FakeDispatcher(fail=True))

        with pytest.raises(RuntimeError):
            await orchestrator.request_conversion(account, video.id, MEDIA)

        (job,) = store.jobs.values()
        assert job.status == ConversionJobStatus.FAILED.value
        assert job.error_message.startswith("Dispatch failed")

    @pytest.mark.asyncio
    async def test_video_of_other_account(self, orchestrator, store, video):
        other = make_account(store, email="radio9@example.com")

        with pytest.raises(NotFound):
            await orchestrator.request_conversion(other, video.id, MEDIA)

    @pytest.mark.asyncio
    async def test_assigns_host_to_folder_without_one(self, orchestrator, store, remote, account, host):
        folder = store.add_folder(account, "Show")
        video = store.add_video(account, folder, "ep1.avi", is_mp4=False)
        remote.add_file(f"{folder_path('live7', 'Show')}/ep1.avi")

        await orchestrator.request_conversion(account, video.id, MEDIA)

        assert folder.host_id == host.id


class TestRequestOutcomeProperty:
    """For any ceiling and quality request, a conversion is either queued
    within the ceiling or rejected without creating a job."""

    @given(
        ceiling=st.integers(min_value=100, max_value=6000),
        tier=st.sampled_from(["baixa", "media", "alta", "fullhd", "custom", "unknown"]),
        custom_bitrate=st.integers(min_value=1, max_value=6000),
    )
    @settings(max_examples=100, deadline=None)
    def test_job_bitrate_within_ceiling(self, ceiling, tier, custom_bitrate):
        store = FakeStore()
        host = store.add_host()
        account = make_account(store, email="live7@example.com", ceiling=ceiling)
        folder = store.add_folder(account, "Live", host_id=host.id)
        video = store.add_video(account, folder, "clip.mkv", is_mp4=False)
        remote = FakeRemoteShell()
        remote.add_file(SOURCE)
        orchestrator = build_orchestrator(store, make_session(), remote, FakeDispatcher())
        request = QualityRequest(
            tier=tier, custom_bitrate=custom_bitrate, custom_resolution="1280x720"
        )

        try:
            accepted = asyncio.run(orchestrator.request_conversion(account, video.id, request))
        except InvalidQuality:
            assert store.jobs == {}
            return

        assert accepted.target_bitrate <= ceiling
        assert store.jobs[accepted.job_id].target_bitrate == accepted.target_bitrate


class TestBatchConversion:

    @pytest.mark.asyncio
    async def test_each_video_succeeds_or_fails_alone(self, orchestrator, store, account, folder, video):
        missing = store.add_video(account, folder, "gone.mkv", is_mp4=False)

        response = await orchestrator.request_batch(account, [video.id, missing.id], MEDIA)

        assert response.total == 2
        assert response.accepted == 1
        ok, failed = response.results
        assert ok.success is True
        assert ok.conversion.target_bitrate == 1500
        assert failed.success is False
        assert failed.reason == "source_not_found"

    @pytest.mark.asyncio
    async def test_lost_job_race_does_not_stop_batch(
        self, orchestrator, store, session, remote, account, folder, video
    ):
        other = store.add_video(account, folder, "other.mkv", is_mp4=False)
        remote.add_file(f"{LIVE_DIR}/other.mkv")
        create = orchestrator.job_repo.create

        async def create_after_concurrent_insert(**fields):
            if fields["video_id"] == video.id:
                raise IntegrityError("INSERT", {}, Exception("duplicate key"))
            return await create(**fields)

        orchestrator.job_repo.create = create_after_concurrent_insert

        response = await orchestrator.request_batch(account, [video.id, other.id], MEDIA)

        lost, won = response.results
        assert lost.reason == "conversion_already_exists"
        assert won.success is True
        session.rollback.assert_awaited()
        session.refresh.assert_any_await(account)

    @pytest.mark.asyncio
    async def test_without_quality_uses_highest_allowed_tier(self, orchestrator, account, video):
        response = await orchestrator.request_batch(account, [video.id])

        assert response.results[0].conversion.target_bitrate == 2500
        assert response.results[0].conversion.quality_label == "Alta (1080p)"

    @pytest.mark.asyncio
    async def test_empty_quality_uses_highest_allowed_tier(self, orchestrator, account, video):
        response = await orchestrator.request_batch(account, [video.id], QualityRequest())

        assert response.accepted == 1

    @pytest.mark.asyncio
    async def test_unknown_video_reported(self, orchestrator, account, random_id):
        response = await orchestrator.request_batch(account, [random_id], MEDIA)

        assert response.accepted == 0
        assert response.results[0].reason == "not_found"

    @pytest.mark.asyncio
    async def test_no_tier_fits_plan(self, store, session, remote, dispatcher, host):
        account = make_account(store, email="tiny@example.com", ceiling=500)
        orchestrator = build_orchestrator(store, session, remote, dispatcher)

        with pytest.raises(InvalidQuality):
            await orchestrator.request_batch(account, [uuid.uuid4()])


class TestExecuteJob:

    @pytest.mark.asyncio
    async def test_success_registers_converted_video(self, orchestrator, store, remote, account, video):
        accepted = await orchestrator.request_conversion(account, video.id, MEDIA)

        job = await orchestrator.execute_job(accepted.job_id)

        assert job.status == ConversionJobStatus.DONE.value
        assert job.started_at is not None
        assert job.completed_at is not None
        converted = store.videos[job.output_video_id]
        assert converted.name == "clip (Média (720p))"
        assert converted.file_name == "clip_1500kbps.mp4"
        assert converted.folder_id == video.folder_id
        assert converted.source_video_id == video.id
        assert converted.bitrate_kbps == 1500
        assert converted.is_mp4 is True
        assert converted.is_conversion is True
        assert converted.file_size == 0
        assert remote.modes[OUTPUT_1500] == "644"

    @pytest.mark.asyncio
    async def test_command_targets_job_paths(self, orchestrator, remote, account, video):
        accepted = await orchestrator.request_conversion(account, video.id, MEDIA)

        await orchestrator.execute_job(accepted.job_id)

        (command,) = [c[2] for c in remote.calls if c[0] == "convert"]
        assert f"-i {SOURCE}" in command
        assert "-b:v 1500k" in command
        assert "scale=1280:720" in command
        assert command.endswith("echo CONVERSION_SUCCESS || echo CONVERSION_ERROR")

    @pytest.mark.asyncio
    async def test_ffmpeg_error_fails_job(self, orchestrator, store, remote, account, video):
        accepted = await orchestrator.request_conversion(account, video.id, MEDIA)
        remote.convert_stdout = "CONVERSION_ERROR\n"

        job = await orchestrator.execute_job(accepted.job_id)

        assert job.status == ConversionJobStatus.FAILED.value
        assert "FFmpeg" in job.error_message
        assert len(store.videos) == 1

    @pytest.mark.asyncio
    async def test_ffmpeg_error_removes_partial_output_so_retry_is_accepted(
        self, orchestrator, store, remote, dispatcher, account, video
    ):
        accepted = await orchestrator.request_conversion(account, video.id, MEDIA)
        remote.add_file(OUTPUT_1500, size=4_000_000)
        remote.convert_stdout = "CONVERSION_ERROR\n"

        job = await orchestrator.execute_job(accepted.job_id)

        assert job.status == ConversionJobStatus.FAILED.value
        assert OUTPUT_1500 not in remote.files

        retry = await orchestrator.request_conversion(account, video.id, MEDIA)

        assert retry.job_id == accepted.job_id
        assert job.status == ConversionJobStatus.PENDING.value
        assert dispatcher.dispatched == [accepted.job_id, accepted.job_id]

    @pytest.mark.asyncio
    async def test_failed_cleanup_still_fails_job(self, orchestrator, remote, account, video):
        accepted = await orchestrator.request_conversion(account, video.id, MEDIA)
        remote.convert_stdout = "CONVERSION_ERROR\n"
        remote.fail_operations.add("remove_file")

        job = await orchestrator.execute_job(accepted.job_id)

        assert job.status == ConversionJobStatus.FAILED.value
        assert "remove_file" in remote.operations()

    @pytest.mark.asyncio
    async def test_channel_error_fails_job(self, orchestrator, remote, account, video):
        accepted = await orchestrator.request_conversion(account, video.id, MEDIA)
        remote.channel_down = True

        job = await orchestrator.execute_job(accepted.job_id)

        assert job.status == ConversionJobStatus.FAILED.value
        assert job.error_message.startswith("Remote channel error")

    @pytest.mark.asyncio
    async def test_chmod_failure_is_tolerated(self, orchestrator, remote, account, video):
        accepted = await orchestrator.request_conversion(account, video.id, MEDIA)
        remote.fail_operations.add("chmod")

        job = await orchestrator.execute_job(accepted.job_id)

        assert job.status == ConversionJobStatus.DONE.value

    @pytest.mark.asyncio
    async def test_source_deleted_during_conversion(self, orchestrator, store, session, account, video):
        accepted = await orchestrator.request_conversion(account, video.id, MEDIA)
        del store.videos[video.id]

        job = await orchestrator.execute_job(accepted.job_id)

        assert job.status == ConversionJobStatus.FAILED.value
        assert job.error_message.startswith("Could not register converted video")
        session.rollback.assert_awaited()

    @pytest.mark.asyncio
    async def test_only_pending_jobs_run(self, orchestrator, remote, account, video):
        accepted = await orchestrator.request_conversion(account, video.id, MEDIA)
        await orchestrator.execute_job(accepted.job_id)

        job = await orchestrator.execute_job(accepted.job_id)

        assert job.status == ConversionJobStatus.DONE.value
        assert remote.operations().count("convert") == 1

    @pytest.mark.asyncio
    async def test_unknown_job(self, orchestrator, random_id):
        assert await orchestrator.execute_job(random_id) is None


class TestDeleteConversion:

    async def _converted(self, orchestrator, account, video):
        accepted = await orchestrator.request_conversion(account, video.id, MEDIA)
        job = await orchestrator.execute_job(accepted.job_id)
        return job

    @pytest.mark.asyncio
    async def test_removes_file_video_and_job(self, orchestrator, store, remote, account, video):
        job = await self._converted(orchestrator, account, video)
        remote.add_file(OUTPUT_1500)

        response = await orchestrator.delete_conversion(account, job.output_video_id)

        assert response.remote_file_removed is True
        assert OUTPUT_1500 not in remote.files
        assert job.output_video_id not in store.videos
        assert job.id not in store.jobs
        assert video.id in store.videos

    @pytest.mark.asyncio
    async def test_remote_failure_does_not_block_deletion(self, orchestrator, store, remote, account, video):
        job = await self._converted(orchestrator, account, video)
        remote.fail_operations.add("remove_file")

        response = await orchestrator.delete_conversion(account, job.output_video_id)

        assert response.remote_file_removed is False
        assert job.output_video_id not in store.videos

    @pytest.mark.asyncio
    async def test_unsafe_login_never_reaches_host(self, orchestrator, store, remote, host):
        account = make_account(store, email="..@example.com")
        folder = store.add_folder(account, "Live", host_id=host.id)
        converted = store.add_video(account, folder, "clip_1500kbps.mp4", conversion_label="Média (720p)")

        with pytest.raises(InvalidFolderName):
            await orchestrator.delete_conversion(account, converted.id)

        assert remote.calls == []
        assert converted.id in store.videos

    @pytest.mark.asyncio
    async def test_originals_cannot_be_deleted_here(self, orchestrator, store, account, video):
        with pytest.raises(NotFound):
            await orchestrator.delete_conversion(account, video.id)

        assert video.id in store.videos

    @pytest.mark.asyncio
    async def test_conversion_can_be_requested_again_after_delete(
        self, orchestrator, dispatcher, remote, account, video
    ):
        job = await self._converted(orchestrator, account, video)
        await orchestrator.delete_conversion(account, job.output_video_id)

        await orchestrator.request_conversion(account, video.id, MEDIA)

        assert len(dispatcher.dispatched) == 2


class TestListVideos:

    @pytest.mark.asyncio
    async def test_conversion_needs(self, orchestrator, store, account, folder, video):
        ok = store.add_video(account, folder, "ok.mp4", bitrate_kbps=2000)
        heavy = store.add_video(account, folder, "heavy.mp4", bitrate_kbps=4000)

        response = await orchestrator.list_videos(account)

        by_id = {v.id: v for v in response.videos}
        assert response.bitrate_ceiling == 2500
        assert [v.id for v in response.videos] == [heavy.id, ok.id, video.id]
        assert by_id[video.id].needs_conversion is True
        assert by_id[video.id].conversion_status == ConversionState.NOT_STARTED
        assert by_id[ok.id].needs_conversion is False
        assert by_id[ok.id].can_use_current is True
        assert by_id[ok.id].conversion_status == ConversionState.AVAILABLE
        assert by_id[heavy.id].needs_conversion is True
        assert by_id[ok.id].folder_name == "Live"

    @pytest.mark.asyncio
    async def test_filter_by_folder(self, orchestrator, store, account, folder, video):
        other_folder = store.add_folder(account, "Other")
        store.add_video(account, other_folder, "x.mp4")

        response = await orchestrator.list_videos(account, folder.id)

        assert [v.id for v in response.videos] == [video.id]

    @pytest.mark.asyncio
    async def test_qualities_follow_ceiling(self, orchestrator, account):
        response = await orchestrator.list_qualities(account)

        offerable = {q.tier: q.offerable for q in response.qualities}
        assert response.bitrate_ceiling == 2500
        assert offerable["alta"] is True
        assert offerable["fullhd"] is False
