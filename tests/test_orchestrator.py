from __future__ import annotations

from pathlib import Path

import pytest

from mongo_backup.config import SecretRef
from mongo_backup.errors import StorageError
from mongo_backup.models import BackupRequest, CommandOutcome
from mongo_backup.orchestrator import PipelineRun, PipelineState
from mongo_backup.process import TIMEOUT_EXIT_CODE
from mongo_backup.stages import BINARY_CONTENT_TYPE, GZIP_CONTENT_TYPE

from conftest import (
    BUCKET,
    FIXED_NAME,
    FIXED_NOW,
    FIXED_TIMESTAMP,
    MONGO_URI,
    FakeRunner,
    InMemoryStore,
    dump_writing,
    make_config,
)


def _assert_success_shape(result):
    assert result.success is True
    assert result.backup_id != ""
    assert result.size > 0
    assert result.location.startswith("s3://")
    assert result.backup_id in result.location
    assert result.error is None


def _assert_failure_shape(result):
    assert result.success is False
    assert result.backup_id == ""
    assert result.error
    assert result.size is None and result.location is None


def test_compressed_backup_end_to_end(make_orchestrator, runner, store, scratch_dir: Path):
    orchestrator = make_orchestrator()

    result = orchestrator.run()

    _assert_success_shape(result)
    key = f"backups/{FIXED_NAME}.tar.gz"
    assert result.backup_id == key
    assert result.timestamp == FIXED_TIMESTAMP
    assert result.location == f"s3://{BUCKET}/{key}"
    stored = store.objects[f"{BUCKET}/{key}"]
    assert stored["content_type"] == GZIP_CONTENT_TYPE
    assert result.size == len(stored["body"])
    assert runner.commands == ["mongodump", "tar"]
    assert f"--uri={MONGO_URI}" in runner.calls[0]["args"]
    assert list(scratch_dir.iterdir()) == []
    assert orchestrator.last_run.history == [
        PipelineState.IDLE,
        PipelineState.DUMPING,
        PipelineState.COMPRESSING,
        PipelineState.UPLOADING,
        PipelineState.CLEANING_UP,
        PipelineState.DONE,
    ]


def test_archive_size_matches_uploaded_archive(make_orchestrator, store, scratch_dir: Path, monkeypatch):
    removed = []
    monkeypatch.setattr(
        "mongo_backup.orchestrator.cleanup_artifacts",
        lambda dump, final, compressed: removed.append((dump, final, compressed)) or True,
    )

    result = make_orchestrator().run()

    archive = scratch_dir / f"{FIXED_NAME}.tar.gz"
    assert result.size == archive.stat().st_size
    assert removed == [(scratch_dir / FIXED_NAME, archive, True)]


def test_uncompressed_backup_uses_binary_content_type(make_orchestrator, runner, store):
    result = make_orchestrator().run(BackupRequest(compress=False))

    _assert_success_shape(result)
    assert result.backup_id == f"backups/{FIXED_NAME}"
    assert not result.backup_id.endswith(".tar.gz")
    assert store.objects[f"{BUCKET}/backups/{FIXED_NAME}"]["content_type"] == BINARY_CONTENT_TYPE
    assert runner.commands == ["mongodump"]


def test_configured_compress_default_applies_when_request_is_silent(make_orchestrator, runner, store, scratch_dir):
    config = make_config(scratch_dir)
    config.backup.compress = False

    result = make_orchestrator(config).run()

    _assert_success_shape(result)
    assert result.backup_id == f"backups/{FIXED_NAME}"
    assert store.objects[f"{BUCKET}/backups/{FIXED_NAME}"]["content_type"] == BINARY_CONTENT_TYPE
    assert runner.commands == ["mongodump"]


def test_request_compress_overrides_configured_default(make_orchestrator, runner, scratch_dir):
    config = make_config(scratch_dir)
    config.backup.compress = False

    result = make_orchestrator(config).run(BackupRequest(compress=True))

    assert result.backup_id == f"backups/{FIXED_NAME}.tar.gz"
    assert runner.commands == ["mongodump", "tar"]


def test_missing_bucket_fails_before_any_external_call(make_orchestrator, runner, store, scratch_dir, monkeypatch):
    monkeypatch.delenv("MONGO_BACKUP_TEST_BUCKET", raising=False)
    orchestrator = make_orchestrator(make_config(scratch_dir, bucket=SecretRef(env="MONGO_BACKUP_TEST_BUCKET")))

    result = orchestrator.run()

    _assert_failure_shape(result)
    assert "bucket" in result.error.lower()
    assert "not configured" in result.error
    assert result.timestamp == FIXED_TIMESTAMP
    assert runner.calls == []
    assert store.put_calls == 0
    assert orchestrator.last_run.history[-1] == PipelineState.FAILED


def test_undecodable_uri_is_reported_not_defaulted(make_orchestrator, runner, scratch_dir):
    orchestrator = make_orchestrator(make_config(scratch_dir, uri=SecretRef(value="%%%not-base64%%%")))

    result = orchestrator.run()

    _assert_failure_shape(result)
    assert "MongoDB URI" in result.error
    assert runner.calls == []


def test_empty_dump_fails_without_compress_or_upload(make_orchestrator, store, scratch_dir):
    def _empty_dump(args, cwd):  # noqa: ARG001
        (scratch_dir / FIXED_NAME).mkdir()
        return CommandOutcome(stdout="", stderr="", exit_code=0)

    runner = FakeRunner(mongodump=_empty_dump)
    orchestrator = make_orchestrator(runner=runner)

    result = orchestrator.run()

    _assert_failure_shape(result)
    assert result.error.startswith("MongoDB backup failed:")
    assert runner.commands == ["mongodump"]
    assert store.put_calls == 0
    assert orchestrator.last_run.history == [PipelineState.IDLE, PipelineState.DUMPING, PipelineState.FAILED]


def test_dump_warning_exit_code_still_succeeds(make_orchestrator):
    runner = FakeRunner(mongodump=dump_writing(exit_code=1, stderr="Failed: some index warning"))
    result = make_orchestrator(runner=runner).run()
    _assert_success_shape(result)


def test_dump_killed_on_timeout_is_not_uploaded(make_orchestrator, store, scratch_dir):
    runner = FakeRunner(
        mongodump=dump_writing(file_count=1, exit_code=TIMEOUT_EXIT_CODE, stderr="\nCommand execution timed out")
    )
    orchestrator = make_orchestrator(runner=runner)

    result = orchestrator.run()

    _assert_failure_shape(result)
    assert result.error == "MongoDB backup timed out: Command execution timed out"
    assert runner.commands == ["mongodump"]
    assert store.put_calls == 0
    assert not (scratch_dir / FIXED_NAME).exists()
    assert orchestrator.last_run.history == [PipelineState.IDLE, PipelineState.DUMPING, PipelineState.FAILED]


def test_upload_failure_leaves_scratch_artifacts(make_orchestrator, scratch_dir):
    store = InMemoryStore(fail_with=StorageError("Failed to save data to S3: timeout"))
    orchestrator = make_orchestrator(store=store)

    result = orchestrator.run()

    _assert_failure_shape(result)
    assert "Failed to save data to S3" in result.error
    assert (scratch_dir / FIXED_NAME).is_dir()
    assert (scratch_dir / f"{FIXED_NAME}.tar.gz").is_file()
    assert orchestrator.last_run.history[-2:] == [PipelineState.UPLOADING, PipelineState.FAILED]


def test_upload_success_removes_scratch_artifacts(make_orchestrator, scratch_dir):
    result = make_orchestrator().run()
    assert result.success
    assert not (scratch_dir / FIXED_NAME).exists()
    assert not (scratch_dir / f"{FIXED_NAME}.tar.gz").exists()


def test_cleanup_failure_does_not_downgrade_success(make_orchestrator, monkeypatch):
    def _boom(path, *args, **kwargs):
        raise PermissionError("read-only file system")

    monkeypatch.setattr("mongo_backup.stages.cleanup.shutil.rmtree", _boom)

    result = make_orchestrator().run()

    _assert_success_shape(result)


def test_compress_failure_keeps_dump_directory(make_orchestrator, scratch_dir):
    runner = FakeRunner(tar=lambda args, cwd: CommandOutcome(stdout="", stderr="tar: broken pipe", exit_code=2))
    result = make_orchestrator(runner=runner).run()

    _assert_failure_shape(result)
    assert "tar: broken pipe" in result.error
    assert (scratch_dir / FIXED_NAME).is_dir()


def test_unexpected_exception_is_converted(make_orchestrator):
    def _explode(args, cwd):
        raise RuntimeError("runner crashed")

    result = make_orchestrator(runner=FakeRunner(mongodump=_explode)).run()

    _assert_failure_shape(result)
    assert result.error == "runner crashed"
    assert result.timestamp == FIXED_TIMESTAMP


def test_request_overrides_name_and_timestamp(make_orchestrator, store):
    result = make_orchestrator().run(BackupRequest(name="manual-backup", timestamp="2026-01-01T00:00:00.000Z"))

    assert result.backup_id == "backups/manual-backup.tar.gz"
    assert result.timestamp == "2026-01-01T00:00:00.000Z"


def test_default_name_derives_from_timestamp_override(make_orchestrator):
    result = make_orchestrator().run(BackupRequest(timestamp="2026-01-01T00:00:00.000Z"))
    assert result.backup_id == "backups/mongodb-backup-2026-01-01T00-00-00-000Z.tar.gz"


def test_repeated_runs_with_same_timestamp_derive_same_key(make_orchestrator):
    orchestrator = make_orchestrator()
    first = orchestrator.run()
    second = orchestrator.run()
    assert first.backup_id == second.backup_id


def test_pipeline_run_rejects_illegal_transition():
    run = PipelineRun(
        request=BackupRequest(),
        started_at=FIXED_NOW,
        timestamp=FIXED_TIMESTAMP,
        backup_name=FIXED_NAME,
    )
    with pytest.raises(RuntimeError):
        run.transition(PipelineState.UPLOADING)
