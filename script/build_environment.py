import os
import enum
import datetime
import typing
import common


class target_name(enum.StrEnum):
    """目标平台名称"""

    win = "win"
    debian = "debian"
    osx = "osx"


class target:
    name: target_name  # 平台名称
    bits: int  # 位数
    selector_list: tuple[str, ...]  # 选中该平台的命令行选项
    banner: str  # 开始构建时显示的提示
    cross_compile_prefix: str  # 交叉编译前缀，本地编译时为空

    def __init__(self, name: target_name, bits: int, selector_list: tuple[str, ...], banner: str) -> None:
        self.name = name
        self.bits = bits
        self.selector_list = selector_list
        self.banner = banner
        match (self.name, self.bits):
            case (target_name.win, 32):
                self.cross_compile_prefix = "i686-w64-mingw32"
            case (target_name.win, 64):
                self.cross_compile_prefix = "x86_64-w64-mingw32"
            case _:
                self.cross_compile_prefix = ""

    @property
    def folder(self) -> str:
        """构建、安装目录使用的平台目录名，如win64、debian32、osx"""
        return self.name if self.name == target_name.osx else f"{self.name}{self.bits}"

    @property
    def key(self) -> str:
        """选择平台时使用的键，如win64、deb32、osx"""
        return self.selector_list[0].removeprefix("--")

    @property
    def use_docker(self) -> bool:
        """是否需要在docker容器中构建"""
        return self.name != target_name.osx

    @property
    def tool_prefix(self) -> str:
        """工具名前缀，如x86_64-w64-mingw32-"""
        return f"{self.cross_compile_prefix}-" if self.cross_compile_prefix else ""

    @property
    def libgcc_dll(self) -> str | None:
        """Windows下需要随程序发布的libgcc动态库"""
        if self.name != target_name.win:
            return None
        return "libgcc_s_sjlj-1.dll" if self.bits == 32 else "libgcc_s_seh-1.dll"

    @property
    def distro_machine(self) -> str:
        """Debian下系统库目录使用的架构名"""
        return "x86_64" if self.bits == 64 else "i386"


# 按构建顺序排列
target_list: typing.Final[tuple[target, ...]] = (
    target(target_name.osx, 64, ("--osx",), "Creating OS X package..."),
    target(target_name.win, 64, ("--win64", "--windows64"), "Creating Windows 64-bits setup..."),
    target(target_name.win, 32, ("--win32", "--window32"), "Creating Windows 32-bits setup..."),
    target(target_name.debian, 64, ("--deb64", "--debian64"), "Creating Debian 64-bits archive..."),
    target(target_name.debian, 32, ("--deb32", "--debian32"), "Creating Debian 32-bits archive..."),
)


def get_target(name: str, bits: int | None = None) -> target:
    """根据平台名称和位数查找平台

    Args:
        name (str): 平台名称
        bits (int | None, optional): 位数，osx可省略. 默认为None.
    """
    name = target_name(name)
    for item in target_list:
        if item.name == name and (bits is None or item.bits == bits):
            return item
    assert False, f'Unknown target "{name}{bits or ""}".'


# 依次检查的工作目录根目录，优先使用虚拟机宿主的Work目录，其次使用其他磁盘上的Work目录
def _candidate_work_root_list(user: str) -> list[str]:
    return ["/media/psf/Home/Work", f"/media/{user}/Work", "/media/Work"]


def resolve_work_folder(
    app_lc_name: str,
    work_folder: str | None = None,
    environ: typing.Mapping[str, str] = os.environ,
    exists: typing.Callable[[str], bool] = os.path.isdir,
) -> str:
    """确定工作目录

    Args:
        app_lc_name (str): 产品小写名称
        work_folder (str | None, optional): 用户通过--work-folder指定的根目录，最终目录为<root>/Work/<app_lc_name>. 默认为None.
        environ (Mapping[str, str], optional): 环境变量，WORK_FOLDER_PATH优先于自动探测. 默认为os.environ.
        exists (Callable[[str], bool], optional): 检查目录是否存在的函数. 默认为os.path.isdir.

    Returns:
        str: 工作目录的绝对路径
    """
    if work_folder:
        return os.path.join(os.path.abspath(work_folder), "Work", app_lc_name)
    if environ.get("WORK_FOLDER_PATH"):
        return os.path.abspath(environ["WORK_FOLDER_PATH"])
    for root in _candidate_work_root_list(environ.get("USER", "")):
        if exists(root):
            return os.path.join(root, app_lc_name)
    return os.path.join(environ.get("HOME", os.path.expanduser("~")), "Work", app_lc_name)


def get_distribution_date(environ: typing.Mapping[str, str] = os.environ, now: datetime.datetime | None = None) -> str:
    """获取发行版文件名中使用的UTC日期，可通过DISTRIBUTION_FILE_DATE覆盖

    Returns:
        str: 形如201703221130的日期字符串
    """
    if environ.get("DISTRIBUTION_FILE_DATE"):
        return environ["DISTRIBUTION_FILE_DATE"]
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return now.astimezone(datetime.timezone.utc).strftime("%Y%m%d%H%M")


def read_version_file(path: str) -> str:
    """读取VERSION文件的第一行"""
    with open(path) as file:
        return file.readline().strip()


def make_distribution_version(version_file: str, date: str, suffix: str = "") -> str:
    """计算发行版版本号: <VERSION文件内容>-<UTC时间戳>[-后缀]

    Args:
        version_file (str): VERSION文件路径
        date (str): UTC时间戳
        suffix (str, optional): 附加后缀. 默认为空.
    """
    result = f"{read_version_file(version_file)}-{date}"
    return f"{result}-{suffix}" if suffix else result


class work_layout:
    """工作目录结构，所有可变状态都保存在工作目录中"""

    work_folder: str  # 工作目录
    scripts_folder: str  # 构建脚本目录
    download_folder: str  # 下载的压缩包目录
    build_folder: str  # 各平台构建目录的根目录
    install_folder: str  # 各平台安装目录的根目录
    output_folder: str  # 发行版输出目录

    def __init__(self, work_folder: str) -> None:
        self.work_folder = work_folder
        self.scripts_folder = os.path.join(work_folder, "scripts")
        self.download_folder = os.path.join(work_folder, "download")
        self.build_folder = os.path.join(work_folder, "build")
        self.install_folder = os.path.join(work_folder, "install")
        self.output_folder = os.path.join(work_folder, "output")

    def target_build_folder(self, item: target) -> str:
        return os.path.join(self.build_folder, item.folder)

    def target_install_folder(self, item: target) -> str:
        return os.path.join(self.install_folder, item.folder)

    def clean(self, all: bool, dependency_folder_list: typing.Iterable[str] = ()) -> None:
        """清理工作目录

        Args:
            all (bool): 是否同时删除依赖源代码和输出目录(cleanall)
            dependency_folder_list (Iterable[str], optional): 依赖源代码目录列表，仅在all为True时删除. 默认为空.
        """
        if all:
            common.echo("Remove all the build folders...")
        else:
            common.echo("Remove most of the build folders (except output)...")
        for folder in (self.build_folder, self.install_folder, self.scripts_folder):
            common.remove_if_exists(folder)
        if all:
            for folder in dependency_folder_list:
                common.remove_if_exists(folder)
            common.remove_if_exists(self.output_folder)
        common.echo("Clean completed. Proceed with a regular build.")


assert __name__ != "__main__", "Import this file instead of running it directly."
