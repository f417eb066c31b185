"""Tests for job system types."""

from magic_actions.jobs.types import BatchStatus, CapabilityType, JobStatus, TargetType


class TestJobStatus:
    def test_job_statuses_exist(self):
        assert JobStatus.QUEUED == "queued"
        assert JobStatus.PROCESSING == "processing"
        assert JobStatus.COMPLETED == "completed"
        assert JobStatus.FAILED == "failed"

    def test_terminal_statuses(self):
        assert JobStatus.COMPLETED.is_terminal
        assert JobStatus.FAILED.is_terminal
        assert not JobStatus.QUEUED.is_terminal
        assert not JobStatus.PROCESSING.is_terminal

    def test_queued_moves_forward_only(self):
        assert JobStatus.QUEUED.can_transition_to(JobStatus.PROCESSING)
        assert JobStatus.QUEUED.can_transition_to(JobStatus.FAILED)
        assert JobStatus.QUEUED.can_transition_to(JobStatus.COMPLETED)
        assert not JobStatus.QUEUED.can_transition_to(JobStatus.QUEUED)

    def test_processing_only_reaches_terminal(self):
        assert JobStatus.PROCESSING.can_transition_to(JobStatus.COMPLETED)
        assert JobStatus.PROCESSING.can_transition_to(JobStatus.FAILED)
        assert not JobStatus.PROCESSING.can_transition_to(JobStatus.QUEUED)
        assert not JobStatus.PROCESSING.can_transition_to(JobStatus.PROCESSING)

    def test_terminal_statuses_never_change(self):
        """A terminal job never moves again, not even to the other terminal state."""
        for terminal in (JobStatus.COMPLETED, JobStatus.FAILED):
            for target in JobStatus:
                assert not terminal.can_transition_to(target)


class TestOtherEnums:
    def test_batch_statuses(self):
        assert {s.value for s in BatchStatus} == {
            "pending",
            "processing",
            "completed",
            "failed",
            "partial_failure",
        }

    def test_capability_types(self):
        assert CapabilityType("text") is CapabilityType.TEXT
        assert CapabilityType("vision") is CapabilityType.VISION
        assert CapabilityType("audio") is CapabilityType.AUDIO

    def test_target_types(self):
        assert TargetType.ENTRY == "entry"
        assert TargetType.ASSET == "asset"
