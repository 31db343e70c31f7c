import os
import pytest
import build
import common
import download
import docker_host
from riscv_gcc import riscv_gcc
from openocd import openocd
from product import product


@pytest.fixture
def helper_script(tmp_path) -> str:
    path = tmp_path / "build-helper.sh"
    path.write_text("#!/usr/bin/env bash\n")
    return str(path)


@pytest.fixture
def host(monkeypatch: pytest.MonkeyPatch) -> dict[str, list]:
    """替换宿主端所有访问网络和docker的操作，记录调用"""
    record: dict[str, list] = {"target": [], "image": [], "acquire": []}
    monkeypatch.setattr(build, "detect_host", lambda: "Linux")
    monkeypatch.setattr(build, "check_prerequisite", lambda item, host_uname: None)
    monkeypatch.setattr(docker_host, "prepare_docker", lambda image_list=None: record["image"].append(image_list))
    monkeypatch.setattr(product, "acquire_project", lambda self, work_folder, try_times=1: None)
    monkeypatch.setattr(download, "acquire", lambda item, layout, try_times=1, target_name_list=None: record["acquire"].append(try_times))
    monkeypatch.setattr(download, "get_git_head", lambda item, work_folder: "gnu-mcu-eclipse")
    monkeypatch.setattr(build, "run_target", lambda item, layout, t, helper, host_uname: record["target"].append(t.folder))
    return record


def work_folder(tmp_path, item: type[product]) -> str:
    return str(tmp_path / "root" / "Work" / item.app_lc_name)


def test_selected_targets_in_build_order(tmp_path, helper_script, host):
    argv = ["--work-folder", str(tmp_path / "root"), "--helper-script", helper_script, "--win32", "--debian64", "--osx"]
    assert build.main(riscv_gcc, argv) == 0
    # osx只能在macOS上构建
    assert host["target"] == ["debian64", "win32"]
    assert host["image"] == [["ilegeul/debian:8-gnuarm-gcc-x11-v4-py", "ilegeul/debian:8-gnuarm-mingw-v2-py"]]


def test_all_targets(tmp_path, helper_script, host):
    argv = ["--work-folder", str(tmp_path / "root"), "--helper-script", helper_script, "--all", "--retry", "2"]
    assert build.main(openocd, argv) == 0
    assert host["target"] == ["win64", "win32", "debian64", "debian32"]
    assert host["acquire"] == [3]


def test_no_selected_target(tmp_path, helper_script, host):
    argv = ["--work-folder", str(tmp_path / "root"), "--helper-script", helper_script]
    assert build.main(riscv_gcc, argv) == 0
    assert host["target"] == []
    assert host["image"] == []


def test_build_writes_script_and_settings(tmp_path, helper_script, host):
    argv = ["--work-folder", str(tmp_path / "root"), "--helper-script", helper_script, "--no-strip", "--jobs", "3", "--deb32"]
    assert build.main(riscv_gcc, argv) == 0
    scripts = os.path.join(work_folder(tmp_path, riscv_gcc), "scripts")
    with open(os.path.join(scripts, "build.sh")) as file:
        content = file.read()
    assert "set -o errexit" in content
    assert 'export LC_ALL="C"' in content
    assert "container_build.py" in content
    assert os.access(os.path.join(scripts, "build.sh"), os.X_OK)
    for name in ("build-helper.sh", "container_build.py", "stage.py", "build-settings.json"):
        assert os.path.isfile(os.path.join(scripts, name))
    from target_environment import build_settings

    settings = build_settings.load(os.path.join(scripts, "build-settings.json"))
    assert settings.product == "riscv-gcc"
    assert settings.git_head == "gnu-mcu-eclipse"
    assert settings.no_strip
    assert settings.jobs == 3


def test_unknown_flag_exits_before_mkdir(tmp_path, host, capsys):
    with pytest.raises(SystemExit) as e:
        build.main(riscv_gcc, ["--work-folder", str(tmp_path / "root"), "--win99"])
    assert e.value.code == 1
    assert "usage:" in capsys.readouterr().out
    assert not os.path.exists(tmp_path / "root")


def test_two_actions_is_usage_error(tmp_path, host):
    with pytest.raises(SystemExit) as e:
        build.main(openocd, ["--work-folder", str(tmp_path / "root"), "clean", "pull"])
    assert e.value.code == 1
    assert not os.path.exists(tmp_path / "root")


def test_missing_helper_script(tmp_path, host):
    argv = ["--work-folder", str(tmp_path / "root"), "--helper-script", str(tmp_path / "missing.sh"), "--deb64"]
    assert build.main(riscv_gcc, argv) == 1
    assert not os.path.exists(tmp_path / "root")


def test_missing_prerequisite(tmp_path, helper_script, host, monkeypatch: pytest.MonkeyPatch):
    def fail(item, host_uname):
        raise common.prerequisite_error('Cannot find "curl", please install it first.')

    monkeypatch.setattr(build, "check_prerequisite", fail)
    assert build.main(riscv_gcc, ["--work-folder", str(tmp_path / "root"), "--helper-script", helper_script, "--all"]) == 1
    assert host["target"] == []
    assert not os.path.exists(tmp_path / "root")


@pytest.mark.parametrize("action, removed", [("clean", ["build", "install", "scripts"]), ("cleanall", ["build", "install", "scripts", "output", "gcc.git", "riscv-gcc-build.git"])])
def test_clean_actions(tmp_path, action, removed):
    work = work_folder(tmp_path, riscv_gcc)
    folder_list = ["build", "install", "scripts", "output", "download", "gcc.git", "riscv-gcc-build.git"]
    for folder in folder_list:
        os.makedirs(os.path.join(work, folder))
    assert build.main(riscv_gcc, [action, "--work-folder", str(tmp_path / "root")]) == 0
    for folder in folder_list:
        assert os.path.exists(os.path.join(work, folder)) == (folder not in removed)
    assert os.path.isdir(os.path.join(work, "download"))


def test_repo_action(tmp_path, helper_script, host, command_list):
    work = work_folder(tmp_path, openocd)
    stage_dir = os.path.join(work, "build", "debian64", "openocd")
    os.makedirs(stage_dir)
    os.makedirs(os.path.join(work, "gnuarmeclipse-openocd.git"))
    argv = ["checkout-dev", "--work-folder", str(tmp_path / "root"), "--helper-script", helper_script, "--git-project-branch", "gnuarmeclipse"]
    assert build.main(openocd, argv) == 0
    project = os.path.join(work, "gnuarmeclipse-openocd.git")
    assert command_list == [
        f"git -C {project} checkout gnuarmeclipse-dev",
        f"git -C {project} pull --recurse-submodules",
        f"git -C {project} submodule update --init --recursive --remote",
        f"git -C {project} branch",
    ]
    assert not os.path.exists(stage_dir)
    assert host["target"] == []


def test_repo_action_without_project(tmp_path, helper_script, host):
    argv = ["pull", "--work-folder", str(tmp_path / "root"), "--helper-script", helper_script]
    assert build.main(riscv_gcc, argv) == 1


def test_dry_run_does_not_build(tmp_path, helper_script, host):
    argv = ["--work-folder", str(tmp_path / "root"), "--helper-script", helper_script, "--deb64", "--dry-run"]
    assert build.main(riscv_gcc, argv) == 0
    assert host["target"] == ["debian64"]
    assert not os.path.exists(tmp_path / "root")


def test_export_and_import(tmp_path, helper_script, host):
    export_file = str(tmp_path / "config.json")
    argv = ["--work-folder", str(tmp_path / "root"), "--helper-script", helper_script, "--jobs", "5", "--export", export_file]
    assert build.main(riscv_gcc, argv) == 0
    current_config = build.configure(jobs=1000)
    import argparse

    current_config.load_config(argparse.Namespace(import_file=export_file))
    # 命令行中指定的值优先
    assert current_config.jobs == 1000
    assert current_config.helper_script == helper_script


@pytest.mark.parametrize("item_type, host_uname, extra", [(openocd, "Linux", []), (riscv_gcc, "Linux", []), (riscv_gcc, "Darwin", ["makeinfo"])])
def test_host_tool_list(tool_list, item_type, host_uname, extra):
    build.check_prerequisite(item_type(), host_uname)
    assert tool_list == ["curl", "git", "tar", "unzip", "automake", "patch", *extra]


def test_missing_host_tool_exits_before_mkdir(tmp_path, helper_script, monkeypatch: pytest.MonkeyPatch, capsys):
    monkeypatch.setattr(build, "detect_host", lambda: "Linux")
    monkeypatch.setattr(common.shutil, "which", lambda tool: None if tool == "patch" else f"/usr/bin/{tool}")
    assert build.main(openocd, ["--work-folder", str(tmp_path / "root"), "--helper-script", helper_script, "--deb64"]) == 1
    assert 'Cannot find "patch", please install it first.' in capsys.readouterr().out
    assert not os.path.exists(tmp_path / "root")


def test_sources_follow_selected_targets(tmp_path, helper_script, host, monkeypatch: pytest.MonkeyPatch):
    name_list: list[list[str] | None] = []
    monkeypatch.setattr(download, "acquire", lambda item, layout, try_times=1, target_name_list=None: name_list.append(target_name_list))
    assert build.main(openocd, ["--work-folder", str(tmp_path / "root"), "--helper-script", helper_script, "--win64", "--deb32"]) == 0
    assert name_list == [["win", "debian"]]
