import pytest
import download
from source import archive_source
from openocd import openocd
from build_environment import work_layout


@pytest.fixture
def acquired(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """记录获取的压缩包而不下载"""
    result: list[str] = []
    monkeypatch.setattr(openocd, "acquire_project", lambda self, work_folder, try_times=1: None)
    monkeypatch.setattr(
        archive_source, "acquire", lambda self, work_folder, download_folder, patch_dir=None, try_times=1: result.append(self.name)
    )
    return result


@pytest.mark.parametrize(
    "target_name_list, expected",
    [
        (["debian"], ["libusb1", "libusb0", "libftdi", "hidapi"]),
        (["win"], ["libusb1", "libusb-win32", "libftdi", "hidapi"]),
        (["win", "osx"], ["libusb1", "libusb0", "libusb-win32", "libftdi", "hidapi"]),
        (None, ["libusb1", "libusb0", "libusb-win32", "libftdi", "hidapi"]),
    ],
)
def test_acquire_only_needed_archives(tmp_path, acquired, target_name_list, expected):
    download.acquire(openocd(), work_layout(str(tmp_path / "work")), 1, target_name_list)
    assert acquired == expected


def test_cleanall_lists_every_source(tmp_path):
    work = str(tmp_path)
    folder_list = download.get_dependency_folder_list(openocd(), work)
    assert folder_list[0] == openocd().get_project_dir(work)
    assert len(folder_list) == 6
