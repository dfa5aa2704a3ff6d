"""Tests for argument parsing and MonitorConfig."""

import pytest

from sysmon.config import DEFAULT_TIMEOUT, DEFAULT_TUI_INTERVAL, MonitorConfig, build_config, parse_positive_int
from sysmon.errors import ConfigError, InvalidIntervalError, NoMetricSelectedError, UnknownFlagError
from sysmon.models import MetricKind


class TestBuildConfig:
    """Tests for build_config."""

    def test_single_metric(self):
        """Test -c selects CPU only, single-run."""
        config = build_config(["-c"])
        assert config.metrics == (MetricKind.CPU,)
        assert not config.watch
        assert config.top_n == 5
        assert config.timeout == DEFAULT_TIMEOUT

    def test_long_flags_combine_in_canonical_order(self):
        """Test metrics come out CPU, Memory, Disk whatever the flag order."""
        config = build_config(["--disk", "--cpu", "--memory"])
        assert config.metrics == (MetricKind.CPU, MetricKind.MEMORY, MetricKind.DISK)

    def test_all_overrides_individual(self):
        """Test -a includes every metric."""
        assert build_config(["-m", "-a"]).metrics == tuple(MetricKind)

    def test_watch_interval(self):
        """Test -w N enables watch mode."""
        config = build_config(["-a", "--watch", "3"])
        assert config.watch
        assert config.watch_interval == 3

    @pytest.mark.parametrize("value", ["0", "-5", "abc", "2.5", ""])
    def test_invalid_watch_interval(self, value):
        """Test zero, negative and non-integer intervals are rejected."""
        with pytest.raises(InvalidIntervalError):
            build_config(["-c", "--watch", value])

    @pytest.mark.parametrize("argv", [["-c", "--watch"], ["-c", "-w"]])
    def test_watch_without_value(self, argv):
        """Test a missing interval is an invalid interval."""
        with pytest.raises(InvalidIntervalError) as excinfo:
            build_config(argv)
        assert str(excinfo.value) == "--watch requires a value (seconds)"

    @pytest.mark.parametrize("flag", ["--mem", "--cp", "--al", "--wat"])
    def test_abbreviated_flags_are_unknown(self, flag):
        """Test partial long options are not expanded."""
        argv = ["-c", flag, "3"] if flag == "--wat" else [flag]
        with pytest.raises(UnknownFlagError) as excinfo:
            build_config(argv)
        assert flag in str(excinfo.value)

    def test_no_metric_selected(self):
        """Test flags without a metric are a configuration error."""
        with pytest.raises(NoMetricSelectedError):
            build_config(["--watch", "2"])

    def test_unknown_flag(self):
        """Test an unrecognized option raises UnknownFlagError."""
        with pytest.raises(UnknownFlagError) as excinfo:
            build_config(["-c", "--bogus"])
        assert "--bogus" in str(excinfo.value)

    def test_top_and_bytes(self):
        """Test display options."""
        config = build_config(["-m", "--top", "3", "--bytes"])
        assert config.top_n == 3
        assert config.human_units is False

    def test_invalid_top(self):
        """Test a non-positive top count is rejected."""
        with pytest.raises(ConfigError):
            build_config(["-m", "-n", "0"])

    def test_tui_defaults_interval(self):
        """Test --tui alone refreshes on the default interval."""
        config = build_config(["-a", "--tui"])
        assert config.tui
        assert config.watch_interval == DEFAULT_TUI_INTERVAL

    def test_tui_keeps_explicit_interval(self):
        """Test --tui with --watch keeps the given interval."""
        assert build_config(["-a", "--tui", "-w", "7"]).watch_interval == 7


class TestMonitorConfig:
    """Tests for MonitorConfig itself."""

    def test_is_frozen(self):
        """Test the configuration cannot change after it is built."""
        config = MonitorConfig(metrics=(MetricKind.CPU,))
        with pytest.raises(AttributeError):
            config.top_n = 10  # type: ignore[misc]

    def test_requires_metrics(self):
        """Test an empty metric tuple is refused."""
        with pytest.raises(NoMetricSelectedError):
            MonitorConfig(metrics=())

    @pytest.mark.parametrize("interval", [0, -1, 1.5, True])
    def test_rejects_bad_interval(self, interval):
        """Test the interval must be a positive int."""
        with pytest.raises(InvalidIntervalError):
            MonitorConfig(metrics=(MetricKind.CPU,), watch_interval=interval)

    def test_metrics_are_reordered(self):
        """Test metrics are stored in output order."""
        config = MonitorConfig(metrics=(MetricKind.DISK, MetricKind.CPU))
        assert config.metrics == (MetricKind.CPU, MetricKind.DISK)


def test_parse_positive_int():
    """Test positive integer parsing."""
    assert parse_positive_int("5") == 5
    assert parse_positive_int("0") is None
    assert parse_positive_int("-1") is None
    assert parse_positive_int("x") is None
    assert parse_positive_int(None) is None
