"""Verification Test: Chaos Monkey - Random process termination resilience.

Processes die all the time while the collectors walk the process table. The
CPU and memory collectors must skip them instead of failing the metric.
"""

import multiprocessing
import random
import time

import pytest

from sysmon.collectors import CpuCollector, MemoryCollector, read_processes
from sysmon.config import MonitorConfig
from sysmon.models import MetricKind
from sysmon.monitor import RefreshLoop, Sampler


def dummy_worker(duration: float = 60.0) -> None:
    """A dummy worker process that sleeps for a given duration."""
    try:
        time.sleep(duration)
    except (KeyboardInterrupt, SystemExit):
        pass


class TestChaosMonkey:
    """Chaos Monkey verification suite tests."""

    def test_collectors_survive_process_termination(self):
        """
        Test that collection doesn't fail when processes die mid-poll.

        Dummy processes are terminated in between and during collections;
        every collection must still succeed.
        """
        processes = []
        for _ in range(30):
            p = multiprocessing.Process(target=dummy_worker, args=(60.0,))
            p.start()
            processes.append(p)

        cpu = CpuCollector(prime_interval=0.05)
        memory = MemoryCollector()

        try:
            to_kill = random.sample(processes, 15)
            for p in to_kill:
                p.terminate()
                cpu_sample = cpu.collect()
                memory_sample = memory.collect()

                assert 0.0 <= cpu_sample.overall_percent <= 100.0
                assert len(cpu_sample.top_processes) <= 5
                assert len(memory_sample.top_processes) <= 5
        except Exception as e:
            pytest.fail(f"Collector crashed with exception: {e}")
        finally:
            for p in processes:
                if p.is_alive():
                    p.terminate()
            for p in processes:
                p.join(timeout=1.0)

    def test_read_processes_handles_terminated_process(self):
        """Test read_processes handles a process that just went away."""
        p = multiprocessing.Process(target=dummy_worker, args=(60.0,))
        p.start()
        time.sleep(0.1)
        p.terminate()
        p.join(timeout=1.0)

        processes = read_processes("cpu_percent")
        assert isinstance(processes, list)
        assert all(0.0 <= proc.percent <= 100.0 for proc in processes)

    def test_watch_loop_during_chaos(self):
        """
        Test the refresh loop keeps producing frames during process churn.

        Runs the real collectors in watch mode while processes are spawned
        and killed at random.
        """
        config = MonitorConfig(metrics=(MetricKind.CPU, MetricKind.MEMORY), watch_interval=1)
        frames = []
        loop = RefreshLoop(config, Sampler.from_config(config), on_frame=frames.append)
        processes = []

        try:
            loop.start()
            start_time = time.time()
            while time.time() - start_time < 3.5:
                alive = [p for p in processes if p.is_alive()]
                if alive and random.random() < 0.3:
                    random.choice(alive).terminate()
                if random.random() < 0.3:
                    p = multiprocessing.Process(target=dummy_worker, args=(60.0,))
                    p.start()
                    processes.append(p)
                time.sleep(0.1)

            assert loop.is_running, "Loop should still be running after chaos"
        finally:
            loop.stop()
            for p in processes:
                if p.is_alive():
                    p.terminate()
            for p in processes:
                p.join(timeout=0.5)

        assert len(frames) >= 3, f"Expected at least 3 frames during chaos, got {len(frames)}"
        for frame in frames:
            assert not any(line.startswith("Error:") for line in frame)
