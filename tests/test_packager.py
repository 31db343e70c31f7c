import os
import hashlib
import pytest
import common
import packager
from conftest import make_env


def test_write_sha(tmp_path):
    path = tmp_path / "openocd.tar.xz"
    path.write_bytes(b"distribution")
    sha_path = packager.write_sha(str(path))
    assert sha_path == f"{path}.sha"
    with open(sha_path) as file:
        assert file.read() == f"{hashlib.sha256(b'distribution').hexdigest()} *openocd.tar.xz\n"


def test_write_sha_dry_run(tmp_path):
    path = tmp_path / "openocd.zip"
    path.write_bytes(b"distribution")
    assert packager.write_sha(str(path), dry_run=True) is None
    assert not os.path.exists(f"{path}.sha")


def test_no_strip_skips_strip(tmp_path, command_list):
    env = make_env(tmp_path, "debian", 64, no_strip=True)
    packager.strip_binary(env, os.path.join(env.bin_dir, "*"))
    assert command_list == []


def test_strip_uses_cross_prefix(tmp_path, command_list):
    env = make_env(tmp_path, "win", 32)
    packager.strip_binary(env, "a.exe", "b.dll")
    assert command_list == ["i686-w64-mingw32-strip a.exe b.dll"]


def test_distribution_name(tmp_path):
    env = make_env(tmp_path, "win", 64)
    assert packager.get_distribution_name(env, "7.1.1-2-201707211530") == "gnu-mcu-eclipse-riscv-eabi-gcc-7.1.1-2-201707211530-win64"


def test_copy_license(tmp_path):
    env = make_env(tmp_path, "debian", 32)
    src = tmp_path / "hidapi-0.7.0"
    src.mkdir()
    for name in ("COPYING", "LICENSE-gpl3.txt", "configure.ac"):
        (src / name).write_text(name)
    packager.copy_license(env, str(src), "hidapi-0.7.0")
    assert sorted(os.listdir(os.path.join(env.prefix, "license", "hidapi-0.7.0"))) == ["COPYING", "LICENSE-gpl3.txt"]


def test_copy_license_missing_source(tmp_path):
    env = make_env(tmp_path, "debian", 32)
    with pytest.raises(RuntimeError):
        packager.copy_license(env, str(tmp_path / "missing"), "missing")


def test_debian_distribution(tmp_path, monkeypatch: pytest.MonkeyPatch):
    env = make_env(tmp_path, "debian", 64)
    os.makedirs(env.bin_dir)
    (tmp_path / "work" / "install" / "debian64" / "riscv-eabi-gcc" / "bin" / "riscv64-unknown-elf-gdb").write_text("gdb")
    command_list: list[str] = []

    def fake_run_command(command: str, ignore_error: bool = False, capture: bool = False, echo: bool = True, dry_run=None):
        command_list.append(command)
        if command.startswith("xz "):
            tar_path = command.split()[-1]
            with open(f"{tar_path}.xz", "wb") as file:
                file.write(b"xz")

    monkeypatch.setattr(common, "run_command", fake_run_command)
    result = packager.create_distribution(env, "7.1.1-2-201707211530", "")
    name = "gnu-mcu-eclipse-riscv-eabi-gcc-7.1.1-2-201707211530-debian64"
    assert result == os.path.join(env.output_folder, f"{name}.tar.xz")
    assert os.path.isfile(f"{result}.sha")
    assert command_list[0].startswith(f"tar -cf {os.path.join(env.output_folder, name)}.tar --owner=0")
    staged = tmp_path / "distribution" / "gnu-mcu-eclipse" / "riscv-eabi-gcc" / "7.1.1-2-201707211530" / "bin" / "riscv64-unknown-elf-gdb"
    assert staged.read_text() == "gdb"


def test_windows_distribution_defines(tmp_path, command_list):
    env = make_env(tmp_path, "win", 32)
    common.command_dry_run.set(True)
    packager.create_distribution(env, "0.10.0-1-201703221130", "/p/nsis/openocd.nsi", ['-DINSTALL_FOLDER_DEFAULT="C:\\OpenOCD"'])
    makensis = command_list[0]
    assert makensis.startswith("makensis -V4 -NOCD ")
    assert "-DBITS=32" in makensis
    assert "-DW64" not in makensis
    assert "-DNSIS_FOLDER=/p/nsis" in makensis
    assert makensis.endswith('-DINSTALL_FOLDER_DEFAULT="C:\\OpenOCD" /p/nsis/openocd.nsi')
    assert command_list[1].startswith("zip -r -q ")


def test_xz_memlimit():
    assert packager.get_xz_memlimit().endswith("MiB")
    assert int(packager.get_xz_memlimit().removesuffix("MiB")) >= 3072


def test_list_sha(tmp_path, capsys):
    (tmp_path / "a.zip.sha").write_text("1111 *a.zip\n")
    (tmp_path / "b.pkg.sha").write_text("2222 *b.pkg\n")
    packager.list_sha(str(tmp_path))
    assert capsys.readouterr().out == "1111 *a.zip\n2222 *b.pkg\n"
