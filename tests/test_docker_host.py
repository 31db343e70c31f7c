import pytest
import common
import docker_host
from riscv_gcc import riscv_gcc


def test_preload_runs_base_images(command_list, monkeypatch: pytest.MonkeyPatch):
    # 只有mingw的派生镜像在本地构建过
    monkeypatch.setattr(common, "capture_output", lambda command: "[]" if "8-gnuarm-mingw-v2-py" in command else None)
    docker_host.preload_images(riscv_gcc())
    lsb_release = "lsb_release --description --short"
    assert command_list == [
        f"docker run --rm ilegeul/debian:8-gnuarm-mingw-v2 {lsb_release}",
        f"docker run --rm ilegeul/debian:8-gnuarm-mingw-v2-py {lsb_release}",
        f"docker run --rm ilegeul/debian:8-gnuarm-gcc-x11-v4 {lsb_release}",
        f"docker run --rm ilegeul/debian32:8-gnuarm-gcc-x11-v4 {lsb_release}",
        "docker images",
    ]


def test_derived_dockerfile():
    assert docker_host.get_derived_dockerfile("ilegeul/debian:8-gnuarm-mingw-v2") == (
        "FROM ilegeul/debian:8-gnuarm-mingw-v2\nRUN python3 -m pip install --no-cache-dir psutil packaging\n"
    )
    assert docker_host.get_dockerfile_url("ilegeul/debian32:8-gnuarm-gcc-x11-v4").endswith("/debian32/8-gnuarm-gcc-x11-v4/Dockerfile")
