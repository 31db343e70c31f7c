import functools
import os
import shutil
import json
import argparse
import inspect
import itertools
import subprocess
import typing
import packaging.version as version
from collections.abc import Callable


class command_dry_run:
    """是否只显示命令而不实际执行"""

    _dry_run: bool = False

    @classmethod
    def get(cls) -> bool:
        return cls._dry_run

    @classmethod
    def set(cls, dry_run: bool) -> None:
        cls._dry_run = dry_run


def echo(message: str) -> None:
    """显示带项目前缀的提示信息

    Args:
        message (str): 提示信息
    """
    print(f"[build-scripts] {message}")


class prerequisite_error(RuntimeError):
    """缺少必要的宿主工具或环境时抛出的异常"""


def _support_dry_run[**P, R](echo_fn: Callable[..., str | None] | None = None) -> Callable[[Callable[P, R]], Callable[P, R | None]]:
    """根据dry_run参数和command_dry_run中的全局状态确定是否只回显命令而不执行，若fn没有dry_run参数则只会使用全局状态

    Args:
        echo_fn (Callable[..., str | None] | None, optional): 回调函数，返回要显示的命令字符串或None，无回调或返回None时不显示命令，所有参数需要能在主函数的参数列表中找到，默认为无回调.
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R | None]:
        signature = inspect.signature(fn)

        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R | None:
            bound_args = signature.bind(*args, **kwargs)
            bound_args.apply_defaults()
            if echo_fn:
                param_list: list = []
                for key in inspect.signature(echo_fn).parameters.keys():
                    assert (
                        key in bound_args.arguments
                    ), f"The param {key} of echo_fn is not in the param list of fn. Every param of echo_fn should be able to find in the param list of fn."
                    param_list.append(bound_args.arguments[key])
                message = echo_fn(*param_list)
                if message is not None:
                    echo(message)
            dry_run: bool | None = bound_args.arguments.get("dry_run")
            assert isinstance(dry_run, bool | None), f"The param dry_run must be a bool or None."
            if dry_run is None and command_dry_run.get() or dry_run:
                return
            return fn(*bound_args.args, **bound_args.kwargs)

        return wrapper

    return decorator


@_support_dry_run(lambda command, echo: f"Run command: {command}" if echo else None)
def run_command(
    command: str, ignore_error: bool = False, capture: bool = False, echo: bool = True, dry_run: bool | None = None
) -> subprocess.CompletedProcess[str] | None:
    """运行指定命令, 若不忽略错误, 则在命令执行出错时抛出RuntimeError, 反之打印错误码

    Args:
        command (str): 要运行的命令
        ignore_error (bool, optional): 是否忽略错误. 默认不忽略错误.
        capture (bool, optional): 是否捕获命令输出，默认为不捕获.
        echo (bool, optional): 是否回显信息，设置为False将不回显任何信息，包括错误提示，默认为回显.
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.

    Raises:
        RuntimeError: 命令执行失败且ignore_error为False时抛出异常

    Returns:
        None | subprocess.CompletedProcess[str]: 在命令正常执行结束后返回执行结果，否则返回None
    """

    if capture:
        pipe = subprocess.PIPE  # capture为True，不论是否回显都需要捕获输出
    elif echo:
        pipe = None  # 回显而不捕获输出则正常输出
    else:
        pipe = subprocess.DEVNULL  # 不回显又不捕获输出则丢弃输出
    try:
        # 使用bash执行，命令中可以使用set -o pipefail
        result = subprocess.run(command, stdout=pipe, stderr=pipe, shell=True, check=True, text=True, executable=shutil.which("bash"))
    except subprocess.CalledProcessError as e:
        if not ignore_error:
            raise RuntimeError(f'Command "{command}" failed.')
        elif echo:
            print(f'Command "{command}" failed with errno={e.returncode}, but it is ignored.')
        return None
    return result


def capture_output(command: str) -> str | None:
    """运行只读命令并返回去除首尾空白的标准输出，命令失败时返回None，dry run状态下也会执行

    Args:
        command (str): 要运行的命令
    """
    result = run_command(command, ignore_error=True, capture=True, echo=False, dry_run=False)
    return result.stdout.strip() if result else None


@_support_dry_run(lambda path: f"Create directory {path}.")
def mkdir(path: str, remove_if_exist=True, dry_run: bool | None = None) -> None:
    """创建目录

    Args:
        path (str): 要创建的目录
        remove_if_exist (bool, optional): 是否先删除已存在的同名目录. 默认先删除已存在的同名目录.
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    if remove_if_exist and os.path.exists(path):
        shutil.rmtree(path)
    os.makedirs(path, exist_ok=True)


@_support_dry_run(lambda src, dst: f"Copy {src} -> {dst}.")
def copy(src: str, dst: str, overwrite=True, follow_symlinks: bool = False, dry_run: bool | None = None) -> None:
    """复制文件或目录

    Args:
        src (str): 源路径
        dst (str): 目标路径
        overwrite (bool, optional): 是否覆盖已存在项. 默认为覆盖.
        follow_symlinks (bool, optional): 是否复制软链接指向的目标，而不是软链接本身. 默认为保留软链接.
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    # 创建目标目录
    dir = os.path.dirname(dst)
    if dir != "":
        mkdir(dir, False)
    if not overwrite and os.path.exists(dst):
        return
    if os.path.isdir(src):
        if os.path.exists(dst):
            shutil.rmtree(dst)
        shutil.copytree(src, dst, not follow_symlinks)
    else:
        if os.path.lexists(dst):
            os.remove(dst)
        shutil.copyfile(src, dst, follow_symlinks=follow_symlinks)
        shutil.copymode(src, dst, follow_symlinks=follow_symlinks)


@_support_dry_run(lambda path: f"Remove {path}.")
def remove(path: str, dry_run: bool | None = None) -> None:
    """删除指定路径

    Args:
        path (str): 要删除的路径
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    else:
        os.remove(path)


@_support_dry_run(lambda path: f"Remove {path} if path exists.")
def remove_if_exists(path: str, dry_run: bool | None = None) -> None:
    """如果指定路径存在则删除指定路径

    Args:
        path (str): 要删除的路径
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    if os.path.lexists(path):
        remove(path)


@_support_dry_run(lambda path: f"Enter directory {path}.")
def chdir(path: str, dry_run: bool | None = None) -> str:
    """将工作目录设置为指定路径

    Args:
        path (str): 要进入的路径
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.

    Returns:
        str: 之前的工作目录
    """
    cwd = os.getcwd()
    os.chdir(path)
    return cwd


@_support_dry_run(lambda src, dst: f"Rename {src} -> {dst}.")
def rename(src: str, dst: str, dry_run: bool | None = None) -> None:
    """重命名指定路径

    Args:
        src (str): 源路径
        dst (str): 目标路径
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    os.rename(src, dst)


@_support_dry_run(lambda path: f"Touch {path}.")
def touch(path: str, dry_run: bool | None = None) -> None:
    """创建空文件，文件已存在时只更新时间戳

    Args:
        path (str): 文件路径
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    with open(path, "a"):
        pass
    os.utime(path)


@_support_dry_run(lambda path: f"Write file {path}.")
def write_file(path: str, content: str, executable: bool = False, dry_run: bool | None = None) -> None:
    """写入文本文件，会覆盖已有文件

    Args:
        path (str): 文件路径
        content (str): 文件内容
        executable (bool, optional): 是否添加可执行权限. 默认不添加.
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    dir = os.path.dirname(path)
    if dir != "":
        os.makedirs(dir, exist_ok=True)
    with open(path, "w") as file:
        file.write(content)
    if executable:
        os.chmod(path, 0o755)


class chdir_guard:
    """在构造时进入指定工作目录并在析构时回到原工作目录"""

    cwd: str
    dry_run: bool | None

    def __init__(self, path: str, dry_run: bool | None = None) -> None:
        self.dry_run = dry_run
        self.cwd = chdir(path, dry_run) or ""

    def __del__(self) -> None:
        chdir(self.cwd, self.dry_run)


def get_tool_version(tool: str, version_command: str | None = None) -> version.Version | None:
    """获取宿主工具版本号，取输出第一行中最后一个可解析的版本号

    Args:
        tool (str): 工具名称
        version_command (str | None, optional): 获取版本的命令. 默认为"{tool} --version".

    Returns:
        version.Version | None: 工具版本，无法获取时返回None
    """
    output = capture_output(version_command or f"{tool} --version 2>&1")
    if not output:
        return None
    for word in reversed(output.splitlines()[0].split()):
        try:
            return version.Version(word.strip("()"))
        except version.InvalidVersion:
            continue
    return None


def check_tool(tool: str, min_version: str | None = None, version_command: str | None = None) -> None:
    """检查宿主工具是否存在且版本足够新

    Args:
        tool (str): 工具名称
        min_version (str | None, optional): 最低版本要求，None表示不检查版本. 默认为None.
        version_command (str | None, optional): 获取版本的命令. 默认为"{tool} --version".

    Raises:
        prerequisite_error: 工具不存在或版本过低
    """
    echo(f"Checking {tool}...")
    if shutil.which(tool) is None:
        raise prerequisite_error(f'Cannot find "{tool}", please install it first.')
    if min_version is not None and not command_dry_run.get():
        current_version = get_tool_version(tool, version_command)
        if current_version is None or current_version < version.Version(min_version):
            raise prerequisite_error(f'"{tool}" {current_version or "unknown"} is too old, at least {min_version} is required.')


class usage_parser(argparse.ArgumentParser):
    """用法错误时打印帮助信息并以1退出的命令行解析器"""

    def error(self, message: str) -> typing.NoReturn:
        self.print_help()
        self.exit(1, f"\n{self.prog}: error: {message}\n")


class basic_configure:
    work_folder: str | None  # 用户指定的工作目录根目录

    def __init__(self, work_folder: str | None = None) -> None:
        self.work_folder = os.path.abspath(work_folder) if work_folder else None

    @staticmethod
    def add_argument(parser: argparse.ArgumentParser) -> None:
        """为argparse添加--work-folder、--export、--import和--dry-run选项

        Args:
            parser (argparse.ArgumentParser): 命令行解析器
        """
        parser.add_argument("--work-folder", type=str, help="The root folder, the work folder becomes <root>/Work/<app>.")
        parser.add_argument("--export", dest="export_file", type=str, help="Export settings to specific file.")
        parser.add_argument("--import", dest="import_file", type=str, help="Import settings from specific file.")
        parser.add_argument(
            "--dry-run",
            dest="dry_run",
            action=argparse.BooleanOptionalAction,
            help="Preview the commands without actually executing them.",
            default=False,
        )

    @classmethod
    def parse_args(cls, args: argparse.Namespace):
        command_dry_run.set(args.dry_run)
        args_list = vars(args)
        parma_list: list = []
        for parma in itertools.islice(inspect.signature(cls.__init__).parameters.keys(), 1, None):
            assert parma in args_list, f"The parma {parma} is not in args. Every parma except self should be able to find in args."
            parma_list.append(args_list[parma])
        return cls(*parma_list)

    def save_config(self, args: argparse.Namespace) -> None:
        """将配置保存到文件，使用json格式

        Args:
            args (argparse.Namespace): 用户输入参数

        Raises:
            RuntimeError: 保存失败抛出异常
        """
        export_file: str | None = args.export_file
        if export_file:
            try:
                with open(export_file, "w") as file:
                    json.dump(vars(self), file, indent=4)
                echo(f'Settings have been written to file "{export_file}"')
            except Exception as e:
                raise RuntimeError(f"Export settings failed: {e}")

    def load_config(self, args: argparse.Namespace) -> None:
        """从配置文件中加载配置，然后合并加载的配置和用户输入的配置

        Args:
            args (argparse.Namespace): 用户输入参数

        Raises:
            RuntimeError: 加载失败抛出异常
        """
        import_file: str | None = args.import_file
        if import_file:
            try:
                with open(import_file) as file:
                    import_config_list = json.load(file)
                if not isinstance(import_config_list, dict):
                    raise RuntimeError(f'Invalid configure file "{import_file}".')
            except Exception as e:
                raise RuntimeError(f'Import file "{import_file}" failed: {e}')
            current_config_list = vars(self)
            default_config_list = vars(type(self)())
            self.__dict__ = {
                # 若import_config中没有则使用default_config中的值，以便在配置类更新后原配置文件可以正确加载
                key: (import_config_list.get(key, default_config_list[key]) if value == default_config_list[key] else value)
                for key, value in current_config_list.items()
            }


assert __name__ != "__main__", "Import this file instead of running it directly."
