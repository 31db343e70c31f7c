import os
import json
import pytest
from stage import stage_runner, stage_state, state_file_name


def make_runner(tmp_path, log: list[str], fail: set[str] | None = None) -> stage_runner:
    runner = stage_runner(str(tmp_path / "build" / "debian64"), "debian64")

    def make_body(name: str):
        def body() -> None:
            if fail and name in fail:
                raise RuntimeError(f"{name} failed")
            log.append(name)

        return body

    for name in ("binutils", "gcc-stage1", "newlib"):
        runner.add(name, make_body(name))
    return runner


def test_run_all_stages_in_order(tmp_path):
    log: list[str] = []
    runner = make_runner(tmp_path, log)
    assert runner.run() == 3
    assert log == ["binutils", "gcc-stage1", "newlib"]
    assert all(os.path.isfile(item.stamp_path) for item in runner.stage_list)
    assert set(runner.dump_state().values()) == {stage_state.complete}


def test_body_runs_in_stage_build_dir(tmp_path):
    runner = stage_runner(str(tmp_path / "build" / "win64"), "win64")
    cwd_list: list[str] = []
    runner.add("libusb1", lambda: cwd_list.append(os.getcwd()))
    runner.run()
    assert os.path.samefile(cwd_list[0], runner.stage_list[0].build_dir)
    assert os.path.samefile(os.getcwd(), tmp_path)


def test_completed_stages_are_skipped(tmp_path):
    make_runner(tmp_path, []).run()
    log: list[str] = []
    assert make_runner(tmp_path, log).run() == 0
    assert log == []


def test_rebuild_invalidates_later_stages(tmp_path):
    make_runner(tmp_path, []).run()
    log: list[str] = []
    runner = make_runner(tmp_path, log)
    os.remove(runner.stage_list[1].stamp_path)
    assert runner.run() == 2
    assert log == ["gcc-stage1", "newlib"]


def test_failed_stage_leaves_no_stamp(tmp_path):
    runner = make_runner(tmp_path, [], fail={"gcc-stage1"})
    with pytest.raises(RuntimeError):
        runner.run()
    assert runner.dump_state() == {
        "binutils": stage_state.complete,
        "gcc-stage1": stage_state.in_progress,
        "newlib": stage_state.pending,
    }
    assert not os.path.exists(runner.stage_list[1].stamp_path)
    with open(tmp_path / "build" / "debian64" / state_file_name) as file:
        assert json.load(file)["stages"]["gcc-stage1"] == "in-progress"


def test_interrupted_stage_is_redone_from_scratch(tmp_path):
    with pytest.raises(RuntimeError):
        make_runner(tmp_path, [], fail={"gcc-stage1"}).run()
    log: list[str] = []
    runner = make_runner(tmp_path, log)
    leftover = os.path.join(runner.stage_list[1].build_dir, "config.status")
    with open(leftover, "w"):
        pass
    assert runner.run() == 2
    assert log == ["gcc-stage1", "newlib"]
    assert not os.path.exists(leftover)


def test_stage_cannot_start_before_previous(tmp_path):
    runner = make_runner(tmp_path, [])
    with pytest.raises(AssertionError):
        runner.run_stage(1)


def test_state_follows_stamp(tmp_path):
    runner = make_runner(tmp_path, [])
    runner.run()
    os.remove(runner.stage_list[2].stamp_path)
    assert make_runner(tmp_path, []).dump_state()["newlib"] == stage_state.pending


def test_duplicate_stage(tmp_path):
    runner = make_runner(tmp_path, [])
    with pytest.raises(AssertionError):
        runner.add("newlib", lambda: None)


def test_dry_run_does_not_touch_stamps(tmp_path):
    import common

    common.command_dry_run.set(True)
    log: list[str] = []
    runner = stage_runner(str(tmp_path / "build" / "osx"), "osx")
    runner.add("binutils", lambda: log.append("binutils"))
    runner.add("gcc-stage1", lambda: log.append("gcc-stage1"))
    assert runner.run() == 2
    assert log == ["binutils", "gcc-stage1"]
    assert not os.path.exists(tmp_path / "build" / "osx")


def test_failed_stage_restores_cwd(tmp_path):
    runner = make_runner(tmp_path, [], fail={"binutils"})
    with pytest.raises(RuntimeError):
        runner.run()
    assert os.path.samefile(os.getcwd(), tmp_path)
