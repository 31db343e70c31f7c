import os
import argparse
import common
import modifier
import packager
from stage import stage_runner
from source import git_source, archive_source, source
from build_environment import target_name, read_version_file
from target_environment import build_settings, environment
from product import product, build_scripts_url

libusb1 = archive_source(
    "libusb1",
    "1.0.20",
    "http://sourceforge.net/projects/libusb/files/libusb-1.0/libusb-1.0.20/libusb-1.0.20.tar.bz2",
    "libusb-1.0.20.tar.bz2",
    "libusb-1.0.20",
)
libusb0 = archive_source(
    "libusb0",
    "0.1.5",
    "http://sourceforge.net/projects/libusb/files/libusb-compat-0.1/libusb-compat-0.1.5/libusb-compat-0.1.5.tar.bz2",
    "libusb-compat-0.1.5.tar.bz2",
    "libusb-compat-0.1.5",
    target_list=(target_name.debian, target_name.osx),
)
libusb_w32 = archive_source(
    "libusb-win32",
    "1.2.6.0",
    "http://sourceforge.net/projects/libusb-win32/files/libusb-win32-releases/1.2.6.0/libusb-win32-src-1.2.6.0.zip",
    "libusb-win32-src-1.2.6.0.zip",
    "libusb-win32-src-1.2.6.0",
    target_list=(target_name.win,),
)
libftdi = archive_source(
    "libftdi",
    "1.2",
    "http://www.intra2net.com/en/developer/libftdi/download/libftdi1-1.2.tar.bz2",
    "libftdi1-1.2.tar.bz2",
    "libftdi1-1.2",
    patch="libftdi1-1.2-cmake-FindUSB1.patch",
    patch_level=0,
)
hidapi = archive_source(
    "hidapi",
    "0.7.0",
    "https://github.com/downloads/signal11/hidapi/hidapi-0.7.0.zip",
    "hidapi-0.7.0.zip",
    "hidapi-0.7.0",
)

# 所有平台共同的OpenOCD配置选项，平台相关的选项由修改器添加
openocd_option = (
    "--enable-aice",
    "--enable-armjtagew",
    "--enable-cmsis-dap",
    "--enable-dummy",
    "--enable-ftdi",
    "--enable-jlink",
    "--enable-opendous",
    "--enable-openjtag_ftdi",
    "--enable-osbdm",
    "--enable-legacy-ft2232_libftdi",
    "--disable-parport-ppdev",
    "--enable-presto_libftdi",
    "--enable-remote-bitbang",
    "--enable-rlink",
    "--enable-stlink",
    "--enable-ti-icdi",
    "--enable-ulink",
    "--enable-usb-blaster-2",
    "--enable-usb_blaster_libftdi",
    "--enable-usbprog",
    "--enable-vsllink",
)


class openocd(product):
    """GNU ARM Eclipse OpenOCD"""

    name = "openocd"
    app_name = "OpenOCD"
    app_uc_name = "OpenOCD"
    app_lc_name = "openocd"
    meta_folder = "gnuarmeclipse"
    distribution_executable_name = "openocd"
    docker_image_list = {
        "win64": "ilegeul/debian:8-gnuarm-mingw",
        "win32": "ilegeul/debian:8-gnuarm-mingw",
        "deb64": "ilegeul/debian:8-gnuarm-gcc-x11-v3",
        "deb32": "ilegeul/debian32:8-gnuarm-gcc-x11-v3",
    }
    configure_log_list = ("openocd",)
    project_stage = "openocd"

    git_dev_url: str  # 开发版仓库地址
    git_rel_url: str  # 发行版仓库地址
    git_project_branch: str  # 项目分支，开发分支为<branch>-dev
    git_dev_user: str  # 开发版仓库的用户
    git_devbuild_user: str  # 构建开发版的用户
    win_install_folder: str  # Windows安装包的默认安装目录，为空时使用Program Files
    user: str  # 当前用户

    def __init__(
        self,
        git_dev_url: str = os.environ.get("git_dev_url", "ssh://ilg-ul@git.code.sf.net/p/gnuarmeclipse/openocd"),
        git_rel_url: str = os.environ.get("git_rel_url", "http://git.code.sf.net/p/gnuarmeclipse/openocd"),
        git_project_branch: str = os.environ.get("git_project_branch", "gnuarmeclipse"),
        git_dev_user: str = os.environ.get("git_dev_user", "ilg-ul"),
        git_devbuild_user: str = os.environ.get("git_devbuild_user", "ilg"),
        win_install_folder: str = os.environ.get("win_install_folder", ""),
        build_scripts_url: str = os.environ.get("build_scripts_url", build_scripts_url),
        user: str = os.environ.get("USER", ""),
    ) -> None:
        super().__init__(build_scripts_url)
        self.git_dev_url = git_dev_url
        self.git_rel_url = git_rel_url
        self.git_project_branch = git_project_branch
        self.git_dev_user = git_dev_user
        self.git_devbuild_user = git_devbuild_user
        self.win_install_folder = win_install_folder
        self.user = user

    @staticmethod
    def add_argument(parser: argparse.ArgumentParser) -> None:
        product.add_argument(parser)
        parser.add_argument("--git-dev-url", type=str, help="The url of the development repository.")
        parser.add_argument("--git-rel-url", type=str, help="The url of the release repository.")
        parser.add_argument("--git-project-branch", type=str, help="The branch of the project repository.")
        parser.add_argument("--git-dev-user", type=str, help="The user name in the development repository url.")
        parser.add_argument("--git-devbuild-user", type=str, help="The local user who builds from the development repository.")
        parser.add_argument("--win-install-folder", type=str, help="The default install folder of the Windows setup.")

    @property
    def project(self) -> git_source:
        if self.user == self.git_devbuild_user:
            # 开发者拥有仓库的完整权限，使用开发版仓库
            return git_source("openocd", self.git_dev_url, f"{self.git_project_branch}-dev", folder_name="gnuarmeclipse-openocd.git")
        return git_source("openocd", self.git_rel_url, self.git_project_branch, folder_name="gnuarmeclipse-openocd.git")

    def source_list(self) -> list[source]:
        return [libusb1, libusb0, libusb_w32, libftdi, hidapi]

    def settings_extra(self) -> dict[str, str]:
        return {
            "git_dev_url": self.git_dev_url,
            "git_rel_url": self.git_rel_url,
            "git_project_branch": self.git_project_branch,
            "git_dev_user": self.git_dev_user,
            "git_devbuild_user": self.git_devbuild_user,
            "win_install_folder": self.win_install_folder,
            "build_scripts_url": self.build_scripts_url,
            "user": self.user,
        }

    def dev_branch(self) -> str:
        return f"{self.git_project_branch}-dev"

    def stable_branch(self) -> str:
        return self.git_project_branch

    def after_clone_project(self, work_folder: str) -> None:
        project_dir = self.get_project_dir(work_folder)
        common.run_command(f"git -C {project_dir} submodule update --init")
        self.bootstrap(work_folder)

    def distribution_version(self, work_folder: str, settings: build_settings) -> str:
        meta_dir = self.get_meta_dir(work_folder)
        if settings.git_head == self.git_project_branch:
            version_file, suffix = os.path.join(meta_dir, "VERSION"), ""
        elif settings.git_head == f"{self.git_project_branch}-dev":
            version_file, suffix = os.path.join(meta_dir, "VERSION-dev"), f"{self.git_project_branch}-dev"
        else:
            version_file, suffix = os.path.join(self.get_project_dir(work_folder), "VERSION"), "head"
        version = f"{read_version_file(version_file)}-{settings.distribution_date}"
        return f"{version}-{suffix}" if suffix else version

    def cross_pkg_config(self, env: environment) -> str:
        return os.path.join(self.get_meta_dir(env.work_folder), "scripts", "cross-pkg-config")

    def check_target_prerequisite(self, env: environment) -> None:
        # libftdi使用cmake构建，Debian上用chrpath设置openocd的runpath
        for tool in ("automake", "cmake", "pkg-config"):
            common.check_tool(tool)
        if env.is_debian:
            common.check_tool("chrpath")

    def setup_environment(self, env: environment) -> None:
        project_dir = self.get_project_dir(env.work_folder)
        option_list = [
            f'CPPFLAGS="{env.cflags}"',
            f"PKG_CONFIG_LIBDIR={env.pkg_config_libdir()}",
            f"--prefix={env.prefix}",
            f"--datarootdir={env.install_folder}",
            *(f"--{dir}dir={os.path.join(env.prefix, dir)}" for dir in ("info", "locale", "man", "doc")),
            *openocd_option,
        ]
        match env.target.name:
            case target_name.win:
                option_list += [f"PKG_CONFIG={self.cross_pkg_config(env)}", f"PKG_CONFIG_PREFIX={env.install_folder}"]
            case target_name.debian:
                option_list.append("LDFLAGS='-Wl,-rpath=\\$$ORIGIN -lpthread'")
        env.option_list = {"openocd": option_list}
        modifier.apply(self.name, env)
        if not os.path.exists(os.path.join(project_dir, "configure")):
            self.bootstrap(env.work_folder)

    def _build_libusb1(self, env: environment) -> None:
        common.mkdir(env.install_folder, False)
        env.configure(
            libusb1.get_dir(env.work_folder),
            f'CFLAGS="-Wno-non-literal-null-conversion {env.cflags}"',
            f"PKG_CONFIG={self.cross_pkg_config(env)}",
            *env.host_option(),
            f"--prefix={env.install_folder}",
        )
        env.make()
        env.install()
        if env.is_windows:
            # 删除动态库以强制静态链接
            for file in ("bin/libusb-1.0.dll", "lib/libusb-1.0.dll.a", "lib/libusb-1.0.la"):
                common.remove_if_exists(os.path.join(env.install_folder, file))

    def _build_libusb0(self, env: environment) -> None:
        env.configure(
            libusb0.get_dir(env.work_folder),
            f'CFLAGS="{env.cflags}"',
            f"PKG_CONFIG_LIBDIR={env.pkg_config_libdir()}",
            f"--prefix={env.install_folder}",
        )
        env.make()
        env.install()

    def _install_pkg_config(self, env: environment, template: str, name: str) -> None:
        """将项目中的pc模板的安装路径替换后安装到pkgconfig目录"""
        with open(os.path.join(self.get_meta_dir(env.work_folder), "pkgconfig", template)) as file:
            content = file.read()
        common.write_file(os.path.join(env.install_folder, "lib", "pkgconfig", name), content.replace("XXX", env.install_folder))

    def _build_libusb_w32(self, env: environment) -> None:
        build_dir = os.getcwd()
        src_dir = libusb_w32.get_dir(env.work_folder)
        for file in os.listdir(src_dir):
            common.copy(os.path.join(src_dir, file), os.path.join(build_dir, file))
        patch = os.path.join(self.get_patch_dir(env.work_folder), "libusb-win32-1.2.6.0-mingw-w64.patch")
        common.run_command(f"patch -p1 < {patch}")
        common.run_command(
            f'CFLAGS="{env.cflags}" make host_prefix={env.target.cross_compile_prefix} host_prefix_x86=i686-w64-mingw32 dll'
        )
        common.copy("libusb0.dll", os.path.join(env.install_folder, "bin", "libusb0.dll"))
        common.copy("libusb.a", os.path.join(env.install_folder, "lib", "libusb.a"))
        self._install_pkg_config(env, "libusb-win32-1.2.6.0.pc", "libusb.pc")
        common.copy(os.path.join("src", "lusb0_usb.h"), os.path.join(env.install_folder, "include", "libusb", "usb.h"))

    def _build_libftdi(self, env: environment) -> None:
        option = [
            f"-DCMAKE_INSTALL_PREFIX={env.install_folder}",
            "-DBUILD_TESTS:BOOL=off",
            "-DFTDIPP:BOOL=off",
            "-DPYTHON_BINDINGS:BOOL=off",
            "-DEXAMPLES:BOOL=off",
            "-DDOCUMENTATION:BOOL=off",
            "-DFTDI_EEPROM:BOOL=off",
        ]
        if env.is_windows:
            src_dir = libftdi.get_dir(env.work_folder)
            option += [
                f"-DPKG_CONFIG_EXECUTABLE={self.cross_pkg_config(env)}",
                f"-DCMAKE_TOOLCHAIN_FILE={os.path.join(src_dir, 'cmake', f'Toolchain-{env.target.cross_compile_prefix}.cmake')}",
                f"-DLIBUSB_INCLUDE_DIR={os.path.join(env.install_folder, 'include', 'libusb-1.0')}",
                f"-DLIBUSB_LIBRARIES={os.path.join(env.install_folder, 'lib', 'libusb-1.0.a')}",
            ]
        env.cmake(libftdi.get_dir(env.work_folder), *option, env=f'CFLAGS="{env.cflags}" PKG_CONFIG_LIBDIR={env.pkg_config_libdir()}')
        env.make()
        env.install()
        if env.is_windows:
            for file in ("bin/libftdi1.dll", "bin/libftdi1-config", "lib/libftdi1.dll.a", "lib/pkgconfig/libftdipp1.pc"):
                common.remove_if_exists(os.path.join(env.install_folder, file))

    def _build_hidapi(self, env: environment) -> None:
        match env.target.name:
            case target_name.win:
                hidapi_target, hidapi_object = "windows", "hid.o"
            case target_name.osx:
                hidapi_target, hidapi_object = "mac", "hid.o"
            case _:
                hidapi_target, hidapi_object = "linux", "hid-libusb.o"
        build_dir = os.getcwd()
        src_dir = hidapi.get_dir(env.work_folder)
        for file in os.listdir(src_dir):
            common.copy(os.path.join(src_dir, file), os.path.join(build_dir, file))
        _ = common.chdir_guard(os.path.join(build_dir, hidapi_target))
        make_env = f'CFLAGS="{env.cflags}" PKG_CONFIG_LIBDIR={env.pkg_config_libdir()}'
        if env.is_windows:
            common.run_command(f"{make_env} make -f Makefile.mingw CC={env.target.tool_prefix}gcc {hidapi_object}")
        else:
            common.run_command(f"{make_env} make clean {hidapi_object}")
        # 只编译了目标文件，需要手动创建静态库
        common.run_command(f"ar -r libhid.a {hidapi_object}")
        common.run_command(f"{env.target.tool_prefix}ranlib libhid.a")
        common.copy("libhid.a", os.path.join(env.install_folder, "lib", "libhid.a"))
        self._install_pkg_config(env, f"hidapi-0.7.0-{hidapi_target}.pc", "hidapi.pc")
        common.copy(os.path.join(src_dir, "hidapi", "hidapi.h"), os.path.join(env.install_folder, "include", "hidapi", "hidapi.h"))

    def _build_openocd(self, env: environment) -> None:
        env.configure(self.get_project_dir(env.work_folder), *env.apply_option("openocd"))
        # 需要设置bindir和pkgdatadir使bin和scripts目录位于同一层级
        doc_target = () if env.settings.no_pdf else ("pdf", "html")
        env.make('bindir="bin"', 'pkgdatadir=""', "all", *doc_target, log_name="make-all-output.txt")
        common.mkdir(env.prefix)
        doc_install_target = () if env.settings.no_pdf else ("install-pdf", "install-html")
        env.install("install", *doc_install_target, "install-man")

    def add_stages(self, runner: stage_runner, env: environment) -> None:
        runner.add("libusb1", lambda: self._build_libusb1(env))
        if env.is_windows:
            runner.add("libusb-win32", lambda: self._build_libusb_w32(env))
        else:
            runner.add("libusb0", lambda: self._build_libusb0(env))
        runner.add("libftdi", lambda: self._build_libftdi(env))
        runner.add("hidapi", lambda: self._build_hidapi(env))
        runner.add("openocd", lambda: self._build_openocd(env))
        self.add_common_stages(runner, env)

    def license_list(self, env: environment) -> list[tuple[str, str]]:
        result = [(self.get_project_dir(env.work_folder), "openocd")]
        for lib in (hidapi, libftdi, libusb1):
            result.append((lib.get_dir(env.work_folder), lib.folder_name))
        if env.is_windows:
            result.append((libusb_w32.get_dir(env.work_folder), f"libusb-win32-{libusb_w32.version}"))
        else:
            result.append((libusb0.get_dir(env.work_folder), libusb0.folder_name))
        return result

    def post_process(self, env: environment) -> None:
        executable = os.path.join(env.bin_dir, self.distribution_executable_name)
        if env.is_windows:
            packager.strip_binary(env, f"{executable}.exe")
            common.echo("Copying DLLs...")
            packager.copy_win_gcc_dll(env)
            packager.copy_win_libwinpthread_dll(env)
            # 只有libusb0.dll是动态库，其他库均为静态链接
            packager.copy_built_dll(env)
            packager.strip_binary(env, os.path.join(env.bin_dir, "*.dll"))
        elif env.is_debian:
            packager.strip_binary(env, executable)
            packager.set_runpath(executable, "chrpath")
            common.echo("Copying shared libs...")
            for name in ("libusb-1.0", "libusb-0.1", "libftdi1"):
                packager.copy_user_so(env, name)
            for name in ("libudev", "librt"):
                packager.copy_system_so(env, name)
        else:
            packager.strip_binary(env, executable)
            common.echo("Copying dynamic libs...")
            packager.change_mac_lib(executable, "libftdi1.2.dylib", "libftdi1.2.dylib")
            for name in ("libusb-1.0.0.dylib", "libusb-0.1.4.dylib"):
                packager.change_mac_lib(executable, name, os.path.join(env.install_folder, "lib", name))
            packager.check_mac_lib(executable)

            libusb1_path = os.path.join(env.install_folder, "lib", "libusb-1.0.0.dylib")
            for name, src_name in (("libftdi1.2.dylib", "libftdi1.2.2.0.dylib"), ("libusb-0.1.4.dylib", None)):
                path = packager.copy_mac_built_lib(env, name, src_name)
                packager.change_mac_lib(path, "libusb-1.0.0.dylib", libusb1_path)
                packager.check_mac_lib(path)
            packager.check_mac_lib(packager.copy_mac_built_lib(env, "libusb-1.0.0.dylib"))

    def nsis_define_list(self, env: environment) -> list[str]:
        return [f'-DINSTALL_FOLDER_DEFAULT="{self.win_install_folder}"'] if self.win_install_folder else []


assert __name__ != "__main__", "Import this file instead of running it directly."
