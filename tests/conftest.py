import os
import pytest
import common
from build_environment import get_target
from target_environment import build_settings, environment


@pytest.fixture(autouse=True)
def isolate(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """每个测试都在临时目录中运行，并恢复全局dry run状态"""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("WORK_FOLDER_PATH", raising=False)
    monkeypatch.delenv("DISTRIBUTION_FILE_DATE", raising=False)
    monkeypatch.delenv("DEBUG", raising=False)
    # 构建环境会修改PATH
    monkeypatch.setenv("PATH", os.environ.get("PATH", ""))
    common.command_dry_run.set(False)
    yield
    common.command_dry_run.set(False)


@pytest.fixture
def command_list(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """记录run_command收到的命令而不执行"""
    result: list[str] = []

    def fake_run_command(command: str, ignore_error: bool = False, capture: bool = False, echo: bool = True, dry_run=None):
        result.append(command)
        return None

    monkeypatch.setattr(common, "run_command", fake_run_command)
    return result


def make_env(tmp_path, name: str = "debian", bits: int | None = 64, **kwargs) -> environment:
    settings = build_settings(product="riscv-gcc", app_name="RISC-V Embedded GCC", app_lc_name="riscv-eabi-gcc", **kwargs)
    work = tmp_path / "work"
    t = get_target(name, bits)
    return environment(
        settings,
        t,
        str(work),
        str(work / "build" / t.folder),
        str(work / "install" / t.folder),
        str(work / "output"),
        str(work / "download"),
    )


@pytest.fixture
def tool_list(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """记录check_tool检查的工具而不实际查找"""
    result: list[str] = []

    def fake_check_tool(tool: str, min_version: str | None = None, version_command: str | None = None) -> None:
        result.append(tool)

    monkeypatch.setattr(common, "check_tool", fake_check_tool)
    return result
