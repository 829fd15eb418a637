import math

import pytest

from gxutil import sysinfo
from gxutil.sysinfo import (
    MemoryStat,
    get_cgroup_memory_limit,
    get_cgroup_process_memory_percent,
    get_cpu_num,
    get_memory_stat,
    get_process_cpu_stat,
    get_process_memory_percent,
    get_process_memory_stat,
    get_thread_num,
    is_cgroup,
    is_container,
    num_cpu,
    parse_uint,
    read_lines,
    read_uint,
)


@pytest.fixture
def host_cgroup(tmp_path, monkeypatch):
    path = tmp_path / "cgroup"
    path.write_text("0::/user.slice/session.scope\n")
    monkeypatch.setattr(sysinfo, "CGROUP_PATH", str(path))
    return path


@pytest.fixture
def docker_cgroup(tmp_path, monkeypatch):
    path = tmp_path / "cgroup"
    path.write_text("12:cpu,cpuacct:/docker/abc123\n")
    monkeypatch.setattr(sysinfo, "CGROUP_PATH", str(path))
    return path


def _set_quota(tmp_path, monkeypatch, period, quota):
    period_file = tmp_path / "period"
    quota_file = tmp_path / "quota"
    period_file.write_text(period)
    quota_file.write_text(quota)
    monkeypatch.setattr(sysinfo, "CPU_PERIOD_PATH", str(period_file))
    monkeypatch.setattr(sysinfo, "CPU_QUOTA_PATH", str(quota_file))


def test_memory_stat_is_consistent():
    stat = get_memory_stat()
    assert isinstance(stat, MemoryStat)
    assert stat.total > 0
    assert stat.used <= stat.total
    assert 0.0 <= stat.used_percent <= 100.0


def test_thread_num_positive():
    assert get_thread_num() >= 1


def test_process_cpu_stat_non_negative():
    assert get_process_cpu_stat() >= 0.0


def test_process_memory_stat_grows_with_allocation():
    size = 100 * 1024 * 1024
    block = b"\x5a" * size
    assert get_process_memory_stat() > size
    assert len(block) == size


def test_process_memory_percent_in_range():
    assert 0.0 < get_process_memory_percent() <= 100.0


def test_read_lines_empty_file(tmp_path):
    path = tmp_path / "empty"
    path.write_bytes(b"")
    assert read_lines(path) == []


def test_read_lines_missing_file(tmp_path):
    assert read_lines(tmp_path / "missing") == []


def test_read_lines_strips_endings(tmp_path):
    path = tmp_path / "lines"
    path.write_bytes(b"one\ntwo\r\nthree")
    assert read_lines(path) == ["one", "two", "three"]


def test_read_uint_empty_file_fails(tmp_path):
    path = tmp_path / "empty"
    path.write_bytes(b"")
    with pytest.raises(ValueError):
        read_uint(path)


def test_read_uint_trims_whitespace(tmp_path):
    path = tmp_path / "value"
    path.write_text("  42\n")
    assert read_uint(path) == 42


def test_read_uint_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_uint(tmp_path / "missing")


@pytest.mark.parametrize(
    "text, base, expected",
    [
        ("123", 10, 123),
        ("0", 10, 0),
        ("-1", 10, 0),
        ("-99999999999999999999999", 10, 0),
        ("ff", 16, 255),
        ("18446744073709551615", 10, 2**64 - 1),
    ],
)
def test_parse_uint_values(text, base, expected):
    assert parse_uint(text, base, 64) == expected


@pytest.mark.parametrize("text", ["", "abc", "+5", "-0", "1_000", " 1", "18446744073709551616"])
def test_parse_uint_errors(text):
    with pytest.raises(ValueError):
        parse_uint(text, 10, 64)


def test_parse_uint_respects_bit_size():
    assert parse_uint("255", 10, 8) == 255
    with pytest.raises(ValueError):
        parse_uint("256", 10, 8)


def test_is_container_detects_docker(docker_cgroup):
    assert is_container() is True


def test_is_container_false_on_host(host_cgroup):
    assert is_container() is False


def test_num_cpu_outside_container(host_cgroup):
    count = num_cpu()
    assert count >= 1
    assert get_cpu_num() == count


def test_num_cpu_uses_quota(tmp_path, monkeypatch, docker_cgroup):
    _set_quota(tmp_path, monkeypatch, "100000", "200000")
    assert num_cpu() == 2
    assert get_cpu_num() == 2


def test_num_cpu_without_quota_falls_back(tmp_path, monkeypatch, host_cgroup):
    host = num_cpu()
    docker_cgroup = tmp_path / "docker_cgroup"
    docker_cgroup.write_text("1:name=systemd:/kubepods/pod1\n")
    monkeypatch.setattr(sysinfo, "CGROUP_PATH", str(docker_cgroup))
    _set_quota(tmp_path, monkeypatch, "100000", "-1")
    assert num_cpu() == host


def test_num_cpu_missing_quota_files_fall_back(tmp_path, monkeypatch, host_cgroup):
    host = num_cpu()
    docker_cgroup = tmp_path / "docker_cgroup"
    docker_cgroup.write_text("12:cpu:/docker/xyz\n")
    monkeypatch.setattr(sysinfo, "CGROUP_PATH", str(docker_cgroup))
    monkeypatch.setattr(sysinfo, "CPU_PERIOD_PATH", str(tmp_path / "nope"))
    assert num_cpu() == host


def test_cgroup_limit_and_percent(tmp_path, monkeypatch):
    limit_file = tmp_path / "limit"
    limit_file.write_text("1000000000000\n")
    monkeypatch.setattr(sysinfo, "CGROUP_MEM_LIMIT_PATH", str(limit_file))
    assert is_cgroup() is True
    assert get_cgroup_memory_limit() == 1000000000000
    percent = get_cgroup_process_memory_percent()
    assert 0.0 < percent < 100.0


def test_cgroup_negative_limit_reads_zero(tmp_path, monkeypatch):
    limit_file = tmp_path / "limit"
    limit_file.write_text("-1")
    monkeypatch.setattr(sysinfo, "CGROUP_MEM_LIMIT_PATH", str(limit_file))
    assert get_cgroup_memory_limit() == 0
    assert math.isinf(get_cgroup_process_memory_percent())


def test_is_cgroup_false_when_missing(tmp_path, monkeypatch):
    monkeypatch.setattr(sysinfo, "CGROUP_MEM_LIMIT_PATH", str(tmp_path / "missing"))
    assert is_cgroup() is False