import os
import json
import common
from build_environment import target, target_name

settings_file_name = "build-settings.json"


class build_settings:
    """宿主端解析后传递给构建脚本的设置，以json格式保存在scripts目录中"""

    product: str  # 产品模块名
    app_name: str  # 产品名称
    app_uc_name: str  # 用于路径的产品全名
    app_lc_name: str  # 用于路径的产品小写名称
    git_head: str  # 项目仓库当前分支
    distribution_date: str  # 发行版文件中使用的UTC日期
    no_strip: bool  # 是否跳过剥离调试符号
    no_pdf: bool  # 是否跳过pdf文档
    disable_multilib: bool  # 是否禁用multilib
    jobs: int  # 编译所用线程数
    debug: bool  # 是否回显构建脚本中的每条命令
    extra: dict[str, str]  # 产品相关的其他设置

    def __init__(
        self,
        product: str = "",
        app_name: str = "",
        app_uc_name: str = "",
        app_lc_name: str = "",
        git_head: str = "",
        distribution_date: str = "",
        no_strip: bool = False,
        no_pdf: bool = False,
        disable_multilib: bool = False,
        jobs: int = 1,
        debug: bool = False,
        extra: dict[str, str] | None = None,
    ) -> None:
        self.product = product
        self.app_name = app_name
        self.app_uc_name = app_uc_name
        self.app_lc_name = app_lc_name
        self.git_head = git_head
        self.distribution_date = distribution_date
        self.no_strip = no_strip
        self.no_pdf = no_pdf
        self.disable_multilib = disable_multilib
        self.jobs = jobs
        self.debug = debug
        self.extra = extra or {}

    @common._support_dry_run(lambda path: f"Write build settings to {path}.")
    def save(self, path: str) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as file:
            json.dump(vars(self), file, indent=4)

    @classmethod
    def load(cls, path: str) -> "build_settings":
        with open(path) as file:
            content = json.load(file)
        if not isinstance(content, dict):
            raise RuntimeError(f'Invalid settings file "{path}".')
        return cls(**content)


class environment:
    settings: build_settings  # 宿主端传入的设置
    target: target  # 目标平台
    work_folder: str  # 工作目录，容器中与宿主路径一致
    build_folder: str  # 本平台构建目录
    install_folder: str  # 本平台安装目录
    output_folder: str  # 发行版输出目录
    download_folder: str  # 下载目录
    distribution_folder: str  # 项目仓库中的发行说明目录
    helper_script: str  # 辅助脚本路径
    prefix: str  # 产品安装目录
    bin_dir: str  # 产品可执行文件目录
    cflags: str  # 通用编译选项
    option_list: dict[str, list[str]]  # 各阶段的配置选项，可由修改器调整
    host_uname: str  # 宿主系统名

    def __init__(
        self,
        settings: build_settings,
        target: target,
        work_folder: str,
        build_folder: str,
        install_folder: str,
        output_folder: str,
        download_folder: str,
        distribution_folder: str = "",
        helper_script: str = "",
        host_uname: str = "",
    ) -> None:
        self.settings = settings
        self.target = target
        self.work_folder = work_folder
        self.build_folder = build_folder
        self.install_folder = install_folder
        self.output_folder = output_folder
        self.download_folder = download_folder
        self.distribution_folder = distribution_folder
        self.helper_script = helper_script
        self.host_uname = host_uname
        self.prefix = os.path.join(self.install_folder, self.settings.app_lc_name)
        self.bin_dir = os.path.join(self.prefix, "bin")
        self.cflags = f"-m{self.target.bits} -pipe"
        self.option_list = {}

    @property
    def jobs(self) -> int:
        return self.settings.jobs

    @property
    def is_windows(self) -> bool:
        return self.target.name == target_name.win

    @property
    def is_debian(self) -> bool:
        return self.target.name == target_name.debian

    @property
    def is_osx(self) -> bool:
        return self.target.name == target_name.osx

    def source_dir(self, folder_name: str) -> str:
        """依赖源代码所在目录"""
        return os.path.join(self.work_folder, folder_name)

    def pkg_config_libdir(self) -> str:
        """部分机器上库安装在lib64中，故同时引用lib和lib64"""
        return ":".join(os.path.join(self.install_folder, lib, "pkgconfig") for lib in ("lib", "lib64"))

    def host_option(self) -> list[str]:
        """交叉编译时的--host选项"""
        return [f"--host={self.target.cross_compile_prefix}"] if self.target.cross_compile_prefix else []

    def register_in_env(self, bin_dir: str | None = None) -> None:
        """注册可执行文件目录到PATH环境变量

        Args:
            bin_dir (str | None, optional): 要注册的目录. 默认为产品可执行文件目录.
        """
        os.environ["PATH"] = f"{bin_dir or self.bin_dir}:{os.environ['PATH']}"

    def configure(self, source_dir: str, *option: str, log_name: str = "configure-output.txt") -> None:
        """在当前目录中对库进行配置，输出同时保存到日志文件

        Args:
            source_dir (str): 源代码目录
            option (tuple[str, ...]): 配置选项
            log_name (str, optional): 日志文件名. 默认为"configure-output.txt".
        """
        options = " ".join(("", *option))
        common.run_command(f"set -o pipefail; bash {os.path.join(source_dir, 'configure')}{options} | tee {log_name}")

    def cmake(self, source_dir: str, *option: str, env: str = "") -> None:
        """在当前目录中用cmake对库进行配置

        Args:
            source_dir (str): 源代码目录
            option (tuple[str, ...]): cmake选项
            env (str, optional): 命令前的环境变量设置. 默认为空.
        """
        options = " ".join(("", *option))
        common.run_command(f"set -o pipefail; {env} cmake{options} {source_dir} | tee configure-output.txt")

    def make(self, *target: str, ignore_error: bool = False, log_name: str | None = None) -> None:
        """自动对库进行编译

        Args:
            target (tuple[str, ...]): 要编译的目标
            ignore_error (bool, optional): 是否忽略错误. 默认不忽略.
            log_name (str | None, optional): 保存输出的日志文件名. 默认不保存.
        """
        targets = " ".join(("", *target))
        log = f" | tee {log_name}" if log_name else ""
        common.run_command(f"set -o pipefail; make{targets} -j {self.jobs}{log}", ignore_error)

    def install(self, *target: str, ignore_error: bool = False) -> None:
        """自动对库进行安装

        Args:
            target (tuple[str, ...]): 要安装的目标，默认为install
        """
        targets = " ".join(("", *(target or ("install",))))
        common.run_command(f"make{targets}", ignore_error)

    def apply_option(self, stage: str, *option: str) -> list[str]:
        """获取经修改器调整后的阶段配置选项，并追加额外选项"""
        return [*self.option_list.get(stage, []), *option]

    def check_tool_list(self) -> None:
        """检查平台所需的工具是否存在"""
        if not self.is_osx:
            common.check_tool("readelf")
        if self.is_windows:
            common.check_tool(f"{self.target.cross_compile_prefix}-gcc")
            common.check_tool("unix2dos")
            common.check_tool("makensis")
            common.check_tool("zip")
        else:
            common.check_tool("gcc")
        if self.is_debian:
            common.check_tool("patchelf")
        if self.is_osx:
            common.check_tool("pkgbuild")


assert __name__ != "__main__", "Import this file instead of running it directly."
