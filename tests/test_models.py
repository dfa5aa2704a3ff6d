"""Tests for sysmon data models."""

import pytest

from sysmon.errors import DivideByZeroError
from sysmon.models import (
    CpuSample,
    DiskMount,
    DiskSample,
    MemorySample,
    MetricKind,
    ProcessSnapshot,
    ProcessUsage,
    SampleResult,
)

GIB = 1024**3


def test_process_usage_creation():
    """Test ProcessUsage dataclass creation."""
    usage = ProcessUsage(user="root", percent=12.1, command="sshd")

    assert usage.user == "root"
    assert usage.percent == 12.1
    assert usage.command == "sshd"


def test_process_snapshot_defaults_to_unknown_start():
    """Test ProcessSnapshot start time is optional."""
    snapshot = ProcessSnapshot(pid=1, username="root", percent=0.5, command="/sbin/init")
    assert snapshot.started is None


def test_samples_are_frozen():
    """Test that samples are immutable (frozen)."""
    sample = CpuSample(overall_percent=37.4)

    with pytest.raises(AttributeError):
        sample.overall_percent = 99.0  # type: ignore[misc]


def test_samples_use_slots():
    """Test that samples use __slots__ for memory efficiency."""
    mount = DiskMount(target="/", size_bytes=10, used_bytes=5, avail_bytes=5, used_percent=50.0)

    # Slots-based dataclasses don't have __dict__
    assert not hasattr(mount, "__dict__")
    assert not hasattr(DiskSample(mounts=(mount,)), "__dict__")


class TestMemorySample:
    """Tests for MemorySample."""

    def test_used_percent_is_derived(self):
        """Test used_percent is used / total * 100."""
        sample = MemorySample(total_bytes=16 * GIB, used_bytes=8 * GIB, free_bytes=8 * GIB)
        assert sample.used_percent == pytest.approx(50.0, abs=1e-6)

    def test_used_plus_free_may_be_below_total(self):
        """Test buffers and cache need not be accounted for."""
        sample = MemorySample(total_bytes=100, used_bytes=30, free_bytes=20)
        assert sample.used_bytes + sample.free_bytes < sample.total_bytes
        assert sample.used_percent == pytest.approx(30.0)


class TestMetricKind:
    """Tests for MetricKind enum."""

    def test_declaration_order_is_output_order(self):
        """Test the enum iterates CPU, Memory, Disk."""
        assert list(MetricKind) == [MetricKind.CPU, MetricKind.MEMORY, MetricKind.DISK]

    def test_titles(self):
        """Test section titles."""
        assert MetricKind.CPU.title == "CPU"
        assert MetricKind.MEMORY.title == "Memory"
        assert MetricKind.DISK.title == "Disk"


class TestSampleResult:
    """Tests for SampleResult."""

    def test_success(self):
        """Test a result with a sample is ok."""
        result = SampleResult(MetricKind.CPU, sample=CpuSample(overall_percent=1.0))
        assert result.ok

    def test_failure(self):
        """Test a result with an error is not ok."""
        result = SampleResult(MetricKind.MEMORY, error=DivideByZeroError())
        assert not result.ok
        assert result.sample is None
