import os
import pytest
import common
from source import git_source, archive_source, check_version, save_version, version_file_name


def test_check_version(tmp_path):
    assert check_version(str(tmp_path), "1.0.20") == -1
    save_version(str(tmp_path), "1.0.20")
    assert check_version(str(tmp_path), "1.0.20") == 0
    assert check_version(str(tmp_path), "1.0.21") == -1
    assert check_version(str(tmp_path), "1.0.19") == 1


@pytest.fixture
def git_state(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """模拟git查询命令的输出"""
    state = {"branch": "riscv-next", "head": "1111", "pinned": "1111"}

    def fake_capture_output(command: str) -> str | None:
        if "symbolic-ref" in command:
            return state["branch"]
        if "rev-parse HEAD" in command:
            return state["head"]
        if "--verify" in command:
            return state["pinned"]
        return None

    monkeypatch.setattr(common, "capture_output", fake_capture_output)
    return state


def test_git_clone_when_absent(tmp_path, command_list):
    lib = git_source("binutils", "https://example.com/binutils.git", "riscv-next", "1111")
    lib.acquire(str(tmp_path))
    assert command_list == [
        f"git clone --branch riscv-next https://example.com/binutils.git {tmp_path / 'binutils.git'}",
        f"git -C {tmp_path / 'binutils.git'} checkout -qf 1111",
    ]


def test_git_synchronized_checkout_is_kept(tmp_path, command_list, git_state):
    lib = git_source("gcc", "https://example.com/gcc.git", "riscv-next")
    os.makedirs(lib.get_dir(str(tmp_path)))
    lib.acquire(str(tmp_path))
    assert command_list == []


def test_git_wrong_branch_is_synchronized(tmp_path, command_list, git_state):
    lib = git_source("gcc", "https://example.com/gcc.git", "riscv-next")
    os.makedirs(lib.get_dir(str(tmp_path)))
    git_state["branch"] = "master"
    lib.acquire(str(tmp_path))
    assert command_list == [
        f"git -C {tmp_path / 'gcc.git'} fetch origin riscv-next",
        f"git -C {tmp_path / 'gcc.git'} checkout -qf riscv-next",
    ]


def test_git_wrong_commit_is_synchronized(tmp_path, command_list, git_state):
    lib = git_source("binutils", "https://example.com/binutils.git", "riscv-next", "2222")
    os.makedirs(lib.get_dir(str(tmp_path)))
    git_state["pinned"] = "2222"
    lib.acquire(str(tmp_path))
    assert command_list[-1] == f"git -C {tmp_path / 'binutils.git'} checkout -qf 2222"


def test_git_clone_retry(tmp_path, monkeypatch: pytest.MonkeyPatch):
    command_list: list[str] = []

    def failing_run_command(command: str, ignore_error: bool = False, capture: bool = False, echo: bool = True, dry_run=None):
        command_list.append(command)
        raise RuntimeError(f'Command "{command}" failed.')

    monkeypatch.setattr(common, "run_command", failing_run_command)
    lib = git_source("newlib", "https://example.com/newlib.git", "master")
    with pytest.raises(RuntimeError, match="Clone newlib failed"):
        lib.acquire(str(tmp_path), 3)
    assert len(command_list) == 3


def make_archive(tmp_path) -> tuple[archive_source, str, str]:
    work = tmp_path / "work"
    download = work / "download"
    os.makedirs(download)
    lib = archive_source("libusb1", "1.0.20", "https://example.com/libusb-1.0.20.tar.bz2", "libusb-1.0.20.tar.bz2", "libusb-1.0.20")
    (download / lib.archive_name).write_bytes(b"archive")
    return lib, str(work), str(download)


def test_archive_unpacked_when_version_is_stale(tmp_path, command_list):
    lib, work, download = make_archive(tmp_path)
    lib_dir = lib.get_dir(work)
    os.makedirs(lib_dir)
    save_version(lib_dir, "1.0.19")
    lib.acquire(work, download)
    assert command_list == [f"tar -xaf {os.path.join(download, lib.archive_name)} -C {work}"]
    with open(os.path.join(lib_dir, version_file_name)) as file:
        assert file.read() == "1.0.20"


def test_archive_up_to_date_is_kept(tmp_path, command_list):
    lib, work, download = make_archive(tmp_path)
    save_version(lib.get_dir(work), "1.0.20")
    lib.acquire(work, download)
    assert command_list == []


def test_archive_download_when_absent(tmp_path, monkeypatch: pytest.MonkeyPatch):
    lib, work, download = make_archive(tmp_path)
    os.remove(lib.get_archive_path(download))
    command_list: list[str] = []

    def fake_curl(command: str, ignore_error: bool = False, capture: bool = False, echo: bool = True, dry_run=None):
        command_list.append(command)
        with open(command.split(" --output ")[-1], "wb") as file:
            file.write(b"archive")

    monkeypatch.setattr(common, "run_command", fake_curl)
    lib.download(download)
    assert command_list == [f"curl --fail -L {lib.url} --output {lib.get_archive_path(download)}.download"]
    assert os.path.isfile(lib.get_archive_path(download))
    assert not os.path.exists(f"{lib.get_archive_path(download)}.download")


def test_archive_target_restriction():
    lib = archive_source("libusb-win32", "1.2.6.0", "url", "a.zip", "a", target_list=("win",))
    assert lib.need_for("win")
    assert not lib.need_for("debian")
    assert archive_source("hidapi", "0.7.0", "url", "b.zip", "b").need_for("osx")
