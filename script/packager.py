import os
import glob
import hashlib
import psutil
import common
from target_environment import environment

license_prefix_list = ("COPYING", "LICENSE", "README", "NEWS", "AUTHORS", "ChangeLog")
info_folder_name = "gnu-mcu-eclipse"


def strip_binary(env: environment, *path: str) -> None:
    """剥离调试符号，--no-strip时跳过

    Args:
        env (environment): 构建环境
        path (tuple[str, ...]): 要剥离的文件，可以包含通配符
    """
    if env.settings.no_strip:
        common.echo("Skip stripping debug symbols.")
        return
    paths = " ".join(path)
    common.run_command(f"{env.target.tool_prefix}strip {paths}")


def _find_gcc_dll(env: environment, dll: str) -> str | None:
    # 优先使用win32线程模型的工具链中的动态库
    prefix = env.target.cross_compile_prefix
    for pattern in (f"/usr/lib/gcc/{prefix}/*-win32/{dll}", f"/usr/lib/gcc/{prefix}/*/{dll}"):
        result = sorted(glob.glob(pattern))
        if result:
            return result[-1]
    return None


def copy_win_gcc_dll(env: environment) -> None:
    """从交叉工具链中复制libgcc动态库"""
    dll = env.target.libgcc_dll
    assert dll, f"Target {env.target.folder} does not need libgcc dll."
    src = _find_gcc_dll(env, dll)
    if src is None:
        if common.command_dry_run.get():
            return
        raise RuntimeError(f"Cannot find {dll} of {env.target.cross_compile_prefix}.")
    common.copy(src, os.path.join(env.bin_dir, dll), follow_symlinks=True)


def copy_win_libwinpthread_dll(env: environment) -> None:
    """从交叉工具链中复制libwinpthread动态库"""
    src = os.path.join("/usr", env.target.cross_compile_prefix, "lib", "libwinpthread-1.dll")
    common.copy(src, os.path.join(env.bin_dir, "libwinpthread-1.dll"), follow_symlinks=True)


def copy_built_dll(env: environment) -> None:
    """复制依赖库构建出的动态库"""
    for src in glob.glob(os.path.join(env.install_folder, "bin", "*.dll")):
        common.copy(src, os.path.join(env.bin_dir, os.path.basename(src)))


def set_runpath(path: str, tool: str = "patchelf") -> None:
    """将ELF文件的runpath设置为$ORIGIN，使加载器在可执行文件所在目录查找动态库

    Args:
        path (str): ELF文件
        tool (str, optional): 使用的工具，patchelf或chrpath. 默认为patchelf.
    """
    match tool:
        case "patchelf":
            common.run_command(f"patchelf --set-rpath '$ORIGIN' {path}")
        case "chrpath":
            common.run_command(f"chrpath --replace '$ORIGIN' {path}")
        case _:
            assert False, f'Unknown runpath tool "{tool}".'


def set_runpath_for_executable(env: environment) -> None:
    """为bin目录下所有可执行文件设置runpath"""
    common.run_command(f"find {env.bin_dir} -type f -executable -exec patchelf --set-rpath '$ORIGIN' {{}} \\;")


def copy_user_so(env: environment, name: str) -> None:
    """复制依赖库构建出的共享库到bin目录，保留软链接

    Args:
        env (environment): 构建环境
        name (str): 共享库名称，如libusb-1.0
    """
    found = False
    for lib in ("lib", "lib64"):
        for src in sorted(glob.glob(os.path.join(env.install_folder, lib, f"{name}.so*"))):
            dst = os.path.join(env.bin_dir, os.path.basename(src))
            common.copy(src, dst)
            if not os.path.islink(src):
                set_runpath(dst)
            found = True
    if not found and not common.command_dry_run.get():
        raise RuntimeError(f"Cannot find shared library {name}.")


def copy_system_so(env: environment, name: str) -> None:
    """复制系统共享库到bin目录，复制软链接指向的文件并使用软链接的名称

    Args:
        env (environment): 构建环境
        name (str): 共享库名称，如libudev
    """
    machine = f"{env.target.distro_machine}-linux-gnu"
    for lib_dir in (os.path.join("/lib", machine), os.path.join("/usr/lib", machine), "/lib", "/usr/lib"):
        result = sorted(glob.glob(os.path.join(lib_dir, f"{name}.so.*")))
        if result:
            for src in result:
                common.copy(src, os.path.join(env.bin_dir, os.path.basename(src)), follow_symlinks=True)
            return
    if not common.command_dry_run.get():
        raise RuntimeError(f"Cannot find system shared library {name}.")


def copy_mac_built_lib(env: environment, name: str, src_name: str | None = None) -> str:
    """复制依赖库构建出的动态库到bin目录，并将其install id设为文件名

    Args:
        env (environment): 构建环境
        name (str): 复制后的文件名
        src_name (str | None, optional): 安装目录中的文件名. 默认与name相同.

    Returns:
        str: 复制后的路径
    """
    dst = os.path.join(env.bin_dir, name)
    common.copy(os.path.join(env.install_folder, "lib", src_name or name), dst, follow_symlinks=True)
    common.run_command(f"install_name_tool -id {name} {dst}")
    return dst


def change_mac_lib(path: str, name: str, old_path: str) -> None:
    """将对动态库的引用改为相对于可执行文件的路径"""
    common.run_command(f"install_name_tool -change {old_path} @executable_path/{name} {path}")


def check_mac_lib(path: str) -> None:
    common.run_command(f"otool -L {path}")


def copy_license(env: environment, src_dir: str, name: str) -> None:
    """复制依赖的许可证文件到license/<name>目录

    Args:
        env (environment): 构建环境
        src_dir (str): 依赖源代码目录
        name (str): 许可证目录名
    """
    if not os.path.isdir(src_dir):
        if common.command_dry_run.get():
            return
        raise RuntimeError(f'Cannot find source folder "{src_dir}".')
    dst_dir = os.path.join(env.prefix, "license", name)
    for file in sorted(os.listdir(src_dir)):
        src = os.path.join(src_dir, file)
        if file.startswith(license_prefix_list) and os.path.isfile(src):
            common.copy(src, os.path.join(dst_dir, file), follow_symlinks=True)


def convert_license_list(env: environment) -> None:
    """Windows下将许可证文件转换为CRLF换行"""
    if env.is_windows:
        common.run_command(f"find {os.path.join(env.prefix, 'license')} -type f -exec unix2dos {{}} \\;")


def _unix2dos(env: environment, path: str) -> None:
    if env.is_windows:
        common.run_command(f"unix2dos {path}")


def copy_info(env: environment, meta_dir: str) -> None:
    """复制项目说明文件和构建脚本到gnu-mcu-eclipse目录

    Args:
        env (environment): 构建环境
        meta_dir (str): 项目仓库中的说明文件目录
    """
    info_dir = os.path.join(env.prefix, info_folder_name)
    common.mkdir(info_dir, False)
    src_dir = os.path.join(meta_dir, "info")
    if os.path.isdir(src_dir):
        for file in sorted(os.listdir(src_dir)):
            dst = os.path.join(info_dir, file)
            common.copy(os.path.join(src_dir, file), dst, follow_symlinks=True)
            if os.path.isfile(dst):
                _unix2dos(env, dst)
    scripts_dir = os.path.join(env.work_folder, "scripts")
    if os.path.isdir(scripts_dir):
        common.copy(scripts_dir, os.path.join(info_dir, "scripts"))


def copy_configure_log(env: environment, stage_name: str) -> None:
    """复制阶段的configure日志到gnu-mcu-eclipse目录"""
    src = os.path.join(env.build_folder, stage_name, "configure-output.txt")
    dst = os.path.join(env.prefix, info_folder_name, f"{stage_name}-configure-output.txt")
    if os.path.exists(src):
        common.copy(src, dst)
        _unix2dos(env, dst)


def get_xz_memlimit() -> str:
    memory_MB = psutil.virtual_memory().available // 1048576 + 3072
    return f"{memory_MB}MiB"


@common._support_dry_run(lambda path: f"Write checksum of {path}.")
def write_sha(path: str, dry_run: bool | None = None) -> str:
    """计算SHA-256并写入<path>.sha文件，格式与shasum -a 256一致

    Args:
        path (str): 发行版文件
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.

    Returns:
        str: 校验文件路径
    """
    sha = hashlib.sha256()
    with open(path, "rb") as file:
        for block in iter(lambda: file.read(1048576), b""):
            sha.update(block)
    sha_path = f"{path}.sha"
    with open(sha_path, "w") as file:
        file.write(f"{sha.hexdigest()} *{os.path.basename(path)}\n")
    return sha_path


def get_distribution_name(env: environment, distribution_version: str) -> str:
    return f"gnu-mcu-eclipse-{env.settings.app_lc_name}-{distribution_version}-{env.target.folder}"


def _create_win_distribution(env: environment, name: str, distribution_version: str, nsis_script: str, define_list: list[str]) -> str:
    setup_path = os.path.join(env.output_folder, f"{name}-setup.exe")
    define = " ".join(
        (
            f'-DAPP_NAME="{env.settings.app_name}"',
            f"-DAPP_LC_NAME={env.settings.app_lc_name}",
            f'-DAPP_UC_NAME="{env.settings.app_uc_name}"',
            f"-DINSTALL_FOLDER={env.prefix}",
            f"-DNSIS_FOLDER={os.path.dirname(nsis_script)}",
            f"-DOUTFILE={setup_path}",
            *(("-DW64",) if env.target.bits == 64 else ()),
            f"-DBITS={env.target.bits}",
            f"-DVERSION={distribution_version}",
            *define_list,
        )
    )
    common.run_command(f"makensis -V4 -NOCD {define} {nsis_script}")
    write_sha(setup_path)

    zip_path = os.path.join(env.output_folder, f"{name}.zip")
    common.remove_if_exists(zip_path)
    guard = common.chdir_guard(env.install_folder)
    common.run_command(f"zip -r -q {zip_path} {env.settings.app_lc_name}")
    del guard
    write_sha(zip_path)
    return setup_path


def _stage_distribution_tree(env: environment, distribution_version: str) -> str:
    # 安装到gnu-mcu-eclipse/<app>/<version>，与最终用户的安装位置一致
    root = os.path.abspath("distribution")
    common.mkdir(root)
    common.copy(env.prefix, os.path.join(root, info_folder_name, env.settings.app_lc_name, distribution_version))
    return root


def _create_osx_distribution(env: environment, name: str, distribution_version: str) -> str:
    root = _stage_distribution_tree(env, distribution_version)
    pkg_path = os.path.join(env.output_folder, f"{name}.pkg")
    common.run_command(
        f"pkgbuild --root {os.path.join(root, info_folder_name)} --identifier org.gnu-mcu-eclipse.{env.settings.app_lc_name} "
        f'--version {distribution_version} --install-location "/Applications/GNU MCU Eclipse" {pkg_path}'
    )
    write_sha(pkg_path)
    return pkg_path


def _create_debian_distribution(env: environment, name: str, distribution_version: str) -> str:
    root = _stage_distribution_tree(env, distribution_version)
    tar_path = os.path.join(env.output_folder, f"{name}.tar")
    common.run_command(f"tar -cf {tar_path} --owner=0 --group=0 -C {root} {info_folder_name}")
    common.run_command(f"xz -fev9 -T 0 --memlimit={get_xz_memlimit()} {tar_path}")
    xz_path = f"{tar_path}.xz"
    write_sha(xz_path)
    return xz_path


def create_distribution(env: environment, distribution_version: str, nsis_script: str, define_list: list[str] | None = None) -> str:
    """创建平台对应的发行版文件及其校验文件

    Args:
        env (environment): 构建环境
        distribution_version (str): 发行版版本号
        nsis_script (str): Windows安装包使用的nsis脚本
        define_list (list[str] | None, optional): 额外的makensis宏定义. 默认为None.

    Returns:
        str: 发行版文件路径
    """
    common.mkdir(env.output_folder, False)
    name = get_distribution_name(env, distribution_version)
    common.echo(f"Creating distribution {name}...")
    if env.is_windows:
        return _create_win_distribution(env, name, distribution_version, nsis_script, define_list or [])
    elif env.is_osx:
        return _create_osx_distribution(env, name, distribution_version)
    else:
        return _create_debian_distribution(env, name, distribution_version)


def check_executable(env: environment, executable_name: str) -> None:
    """运行安装目录中的可执行文件以确认其可以独立运行，Windows平台无法运行时跳过"""
    if env.is_windows:
        return
    common.run_command(f"{os.path.join(env.bin_dir, executable_name)} --version")


def list_sha(output_folder: str) -> None:
    """显示输出目录中的所有校验文件"""
    for path in sorted(glob.glob(os.path.join(output_folder, "*.sha"))):
        with open(path) as file:
            print(file.read(), end="")


assert __name__ != "__main__", "Import this file instead of running it directly."
