"""
Audit Trail and Artifact Storage Tests

Validates persistence of run evidence:
1. JSON artifacts round through a DataReference and detect tampering
2. Checkpoints are saved per extractor, listed, loaded and cleared
3. Audit events fan out to every backend and filter by type, object, run and time
4. A failing backend does not break the run
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from core.audit import (
    AuditEventType,
    AuditLogger,
    InMemoryAuditBackend,
    JSONFileAuditBackend,
    create_audit_event,
)
from core.models.refs import AuditSeverity, ReconciliationReport
from core.storage import CheckpointManager, get_json, put_json


class BrokenBackend(InMemoryAuditBackend):
    """Raises on every write."""

    def log(self, event):
        raise OSError("disk full")


class TestArtifacts:
    """put_json / get_json."""

    def test_reference_metadata(self, tmp_path):
        ref = put_json({"rows": [1, 2]}, tmp_path / "nested" / "out.json")
        assert ref.content_type == "application/json"
        assert ref.size_bytes == len((tmp_path / "nested" / "out.json").read_bytes())
        assert len(ref.content_hash) == 64
        assert get_json(ref) == {"rows": [1, 2]}

    def test_pydantic_models_serialized(self, tmp_path):
        report = ReconciliationReport(object_id="GL_BALANCE", status="PASSED")
        ref = put_json(report, tmp_path / "report.json")
        assert get_json(ref)["object_id"] == "GL_BALANCE"

    def test_tampering_detected(self, tmp_path):
        path = tmp_path / "out.json"
        ref = put_json({"total": 100}, path)
        path.write_text(json.dumps({"total": 999}))

        with pytest.raises(ValueError):
            get_json(ref)
        assert get_json(ref, validate_hash=False) == {"total": 999}

    def test_missing_artifact(self, tmp_path):
        ref = put_json({}, tmp_path / "gone.json")
        (tmp_path / "gone.json").unlink()
        with pytest.raises(FileNotFoundError):
            get_json(ref)

    def test_no_temp_file_left(self, tmp_path):
        put_json({"a": 1}, tmp_path / "out.json")
        assert [p.name for p in tmp_path.iterdir()] == ["out.json"]


class TestCheckpoints:
    """Per-extractor checkpoint files."""

    def test_save_and_load(self, tmp_path):
        checkpoints = CheckpointManager(tmp_path / "run-1")
        checkpoints.save("FI_GL_ACCOUNTS", {"recordCount": 12})
        checkpoints.save("MM_MATERIALS", {"recordCount": 3})

        assert checkpoints.has("FI_GL_ACCOUNTS")
        assert not checkpoints.has("SD_SALES")
        assert checkpoints.load("FI_GL_ACCOUNTS") == {"recordCount": 12}
        assert checkpoints.load("SD_SALES") is None
        assert checkpoints.completed_ids() == ["FI_GL_ACCOUNTS", "MM_MATERIALS"]
        assert checkpoints.load_all()["MM_MATERIALS"] == {"recordCount": 3}

    def test_unsafe_ids_keep_original_name(self, tmp_path):
        checkpoints = CheckpointManager(tmp_path)
        checkpoints.save("LN/FINANCE:1", {"ok": True})
        assert (tmp_path / "LN_FINANCE_1.json").exists()
        assert checkpoints.completed_ids() == ["LN/FINANCE:1"]

    def test_unreadable_checkpoint_ignored(self, tmp_path):
        checkpoints = CheckpointManager(tmp_path)
        checkpoints.save("A", 1)
        (tmp_path / "broken.json").write_text("{not json")
        assert checkpoints.completed_ids() == ["A"]

    def test_clear(self, tmp_path):
        checkpoints = CheckpointManager(tmp_path)
        checkpoints.save("A", 1)
        checkpoints.save("B", 2)
        assert checkpoints.clear() == 2
        assert checkpoints.completed_ids() == []


class TestAuditLogger:
    """Event creation and fan-out."""

    def test_create_event(self):
        event = create_audit_event(
            AuditEventType.EXTRACTION_FAILED,
            "SD_SALES failed",
            AuditSeverity.ERROR,
            run_id="run-1",
            extractor_id="SD_SALES",
        )
        assert event.event_type == "EXTRACTION_FAILED"
        assert event.severity == AuditSeverity.ERROR
        assert event.details == {} and event.artifact_refs == []
        assert event.event_id

    def test_fan_out(self, tmp_path):
        memory = InMemoryAuditBackend()
        audit = AuditLogger([memory])
        audit.add_backend(JSONFileAuditBackend(tmp_path))

        audit.log_warning(AuditEventType.RECORDS_REJECTED, "2 rejected", object_id="GL_BALANCE")
        assert len(memory.query()) == 1
        files = list(tmp_path.glob("*.jsonl"))
        assert len(files) == 1
        assert json.loads(files[0].read_text().strip())["severity"] == "WARN"

    def test_broken_backend_does_not_raise(self):
        memory = InMemoryAuditBackend()
        audit = AuditLogger([BrokenBackend(), memory])
        audit.log_error(AuditEventType.SYSTEM_ERROR, "pool drained")
        assert memory.query()[0].severity == AuditSeverity.ERROR
        # query reads the first backend
        assert audit.query() == []

    def test_no_backends(self):
        audit = AuditLogger()
        audit.log_info(AuditEventType.RUN_STARTED, "started")
        assert audit.query() == []


class TestAuditQueries:
    """Filtering on both backends."""

    @pytest.fixture(params=["memory", "file"])
    def backend(self, request, tmp_path):
        if request.param == "memory":
            return InMemoryAuditBackend()
        return JSONFileAuditBackend(tmp_path)

    def populate(self, backend):
        audit = AuditLogger([backend])
        audit.log_info(AuditEventType.RUN_STARTED, "run", run_id="run-1")
        audit.log_info(AuditEventType.MIGRATION_STARTED, "gl", run_id="run-1", object_id="GL_BALANCE")
        audit.log_info(AuditEventType.MIGRATION_COMPLETED, "gl", run_id="run-1", object_id="GL_BALANCE")
        audit.log_info(AuditEventType.MIGRATION_STARTED, "bp", run_id="run-2", object_id="BUSINESS_PARTNER")

    def test_filters(self, backend):
        self.populate(backend)
        assert len(backend.query()) == 4
        assert len(backend.query(run_id="run-1")) == 3
        assert len(backend.query(object_id="GL_BALANCE")) == 2
        started = backend.query(event_type="MIGRATION_STARTED")
        assert [e.object_id for e in started] == ["GL_BALANCE", "BUSINESS_PARTNER"]
        assert len(backend.query(event_type="MIGRATION_STARTED", run_id="run-2")) == 1

    def test_limit(self, backend):
        self.populate(backend)
        assert len(backend.query(limit=2)) == 2

    def test_time_window(self, backend):
        self.populate(backend)
        now = datetime.now(timezone.utc)
        assert len(backend.query(start_time=now - timedelta(minutes=5))) == 4
        assert backend.query(start_time=now + timedelta(minutes=5)) == []
        assert backend.query(end_time=now - timedelta(minutes=5)) == []

    def test_naive_bounds_read_as_utc(self, backend):
        self.populate(backend)
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        assert len(backend.query(start_time=now - timedelta(minutes=5))) == 4
        assert backend.query(end_time=now - timedelta(minutes=5)) == []

    def test_timestamps_are_aware(self, backend):
        self.populate(backend)
        assert all(e.timestamp.tzinfo is not None for e in backend.query())
