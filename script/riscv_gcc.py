import os
import common
import modifier
import packager
from stage import stage_runner
from source import git_source, source
from build_environment import target, target_list, target_name, get_target
from target_environment import environment
from product import product

gcc_target = "riscv64-unknown-elf"


class riscv_gcc(product):
    """GNU MCU Eclipse RISC-V Embedded GCC"""

    name = "riscv-gcc"
    app_name = "RISC-V Embedded GCC"
    app_uc_name = "GNU RISC-V Embedded GCC"
    app_lc_name = "riscv-eabi-gcc"
    meta_folder = "gnu-mcu-eclipse"
    distribution_executable_name = f"{gcc_target}-gdb"
    docker_image_list = {
        "win64": "ilegeul/debian:8-gnuarm-mingw-v2",
        "win32": "ilegeul/debian:8-gnuarm-mingw-v2",
        "deb64": "ilegeul/debian:8-gnuarm-gcc-x11-v4",
        "deb32": "ilegeul/debian32:8-gnuarm-gcc-x11-v4",
    }
    configure_log_list = ("binutils", "gcc-stage1", "newlib", "gcc-stage2")
    project_stage = "post-process"

    binutils = git_source(
        "binutils",
        "https://github.com/gnu-mcu-eclipse/riscv-binutils-gdb.git",
        "riscv-next",
        "3f21b5c9675db61ef5462442b6a068d4a3da8aaf",
    )
    gcc = git_source("gcc", "https://github.com/gnu-mcu-eclipse/riscv-gcc.git", "riscv-next")
    newlib = git_source("newlib", "https://github.com/gnu-mcu-eclipse/riscv-newlib.git", "riscv-newlib-2.5.0")

    @property
    def project(self) -> git_source:
        return git_source("riscv-gcc-build", "https://github.com/gnu-mcu-eclipse/riscv-gcc-build.git", "gnu-mcu-eclipse")

    def source_list(self) -> list[source]:
        return [self.binutils, self.gcc, self.newlib]

    def build_order(self) -> tuple[target, ...]:
        # Windows工具链的目标库由Debian 64位工具链编译，故先构建Debian 64位
        deb64 = get_target(target_name.debian, 64)
        return (deb64, *(item for item in target_list if item is not deb64))

    def check_host_prerequisite(self, host_uname: str) -> None:
        if host_uname == "Darwin":
            common.check_tool("makeinfo", "6")

    def cross_toolchain_prefix(self, env: environment) -> str:
        """在Linux上运行的同版本工具链，用于编译Windows工具链的目标库"""
        return os.path.join(os.path.dirname(env.install_folder), get_target(target_name.debian, 64).folder, env.settings.app_lc_name)

    def setup_environment(self, env: environment) -> None:
        env.option_list = {
            "binutils": [
                f"--prefix={env.prefix}",
                f"--target={gcc_target}",
                "--disable-werror",
                "--disable-build-warnings",
                "--disable-gdb-build-warnings",
                "--without-system-zlib",
            ],
            "gcc-stage1": [
                f"--prefix={env.prefix}",
                f"--target={gcc_target}",
                "--enable-languages=c",
                "--with-newlib",
                "--without-headers",
                "--disable-shared",
                "--disable-threads",
                "--disable-libssp",
                "--disable-libgomp",
                "--disable-libquadmath",
                "--disable-nls",
                self.multilib_option(env),
            ],
            "newlib": [
                f"--prefix={env.prefix}",
                f"--target={gcc_target}",
                "--enable-newlib-io-long-double",
                "--enable-newlib-io-long-long",
                "--enable-newlib-io-c99-formats",
                self.multilib_option(env),
            ],
            "gcc-stage2": [
                f"--prefix={env.prefix}",
                f"--target={gcc_target}",
                "--enable-languages=c,c++",
                "--with-newlib",
                "--disable-shared",
                "--disable-threads",
                "--disable-libssp",
                "--disable-libgomp",
                "--disable-libquadmath",
                "--disable-nls",
                "--enable-tls",
                self.multilib_option(env),
            ],
        }
        modifier.apply(self.name, env)
        if env.is_windows:
            cross_prefix = self.cross_toolchain_prefix(env)
            if not os.path.exists(cross_prefix) and not common.command_dry_run.get():
                raise common.prerequisite_error(
                    f'Cannot find the Debian 64-bits toolchain "{cross_prefix}", build it with --deb64 before the Windows toolchain.'
                )
            env.register_in_env(os.path.join(cross_prefix, "bin"))
            if not common.command_dry_run.get():
                common.check_tool(f"{gcc_target}-gcc")
        else:
            # 第二阶段编译目标库时需要使用第一阶段安装的工具
            env.register_in_env()

    @staticmethod
    def multilib_option(env: environment) -> str:
        return "--disable-multilib" if env.settings.disable_multilib else "--enable-multilib"

    def _build_binutils(self, env: environment) -> None:
        common.mkdir(env.prefix, False)
        env.configure(self.binutils.get_dir(env.work_folder), *env.apply_option("binutils"))
        env.make()
        env.install()

    def _build_gcc_stage1(self, env: environment) -> None:
        if env.is_windows:
            # Windows工具链只需要完整的宿主编译器，目标库来自Linux工具链
            common.echo(f"Use {gcc_target}-gcc of the Debian 64-bits toolchain.")
            return
        env.configure(self.gcc.get_dir(env.work_folder), *env.apply_option("gcc-stage1"))
        env.make("all-gcc")
        env.install("install-gcc")

    def _build_newlib(self, env: environment) -> None:
        if env.is_windows:
            src = os.path.join(self.cross_toolchain_prefix(env), gcc_target)
            common.copy(src, os.path.join(env.prefix, gcc_target))
            return
        env.configure(self.newlib.get_dir(env.work_folder), *env.apply_option("newlib"))
        env.make()
        env.install()

    def _build_gcc_stage2(self, env: environment) -> None:
        env.configure(self.gcc.get_dir(env.work_folder), *env.apply_option("gcc-stage2"))
        env.make()
        env.install()
        if not env.settings.no_pdf:
            env.install("install-pdf", ignore_error=True)

    def add_stages(self, runner: stage_runner, env: environment) -> None:
        runner.add("binutils", lambda: self._build_binutils(env))
        runner.add("gcc-stage1", lambda: self._build_gcc_stage1(env))
        runner.add("newlib", lambda: self._build_newlib(env))
        runner.add("gcc-stage2", lambda: self._build_gcc_stage2(env))
        self.add_common_stages(runner, env)

    def license_list(self, env: environment) -> list[tuple[str, str]]:
        return [(lib.get_dir(env.work_folder), lib.name) for lib in self.source_list()]

    def post_process(self, env: environment) -> None:
        if env.is_windows:
            packager.strip_binary(env, os.path.join(env.bin_dir, "*.exe"))
            common.echo("Copying DLLs...")
            packager.copy_win_gcc_dll(env)
            packager.copy_win_libwinpthread_dll(env)
            packager.strip_binary(env, os.path.join(env.bin_dir, "*.dll"))
        elif env.is_debian:
            packager.strip_binary(env, os.path.join(env.bin_dir, "*"))
            packager.set_runpath_for_executable(env)
        else:
            packager.strip_binary(env, os.path.join(env.bin_dir, "*"))
            packager.check_mac_lib(os.path.join(env.bin_dir, self.distribution_executable_name))


assert __name__ != "__main__", "Import this file instead of running it directly."
