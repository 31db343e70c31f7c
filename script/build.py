import os
import math
import time
import argparse
import common
import download
import packager
import docker_host
from build_environment import target, target_list, target_name, work_layout, resolve_work_folder, get_distribution_date
from target_environment import settings_file_name
from product import product

action_list = ("clean", "cleanall", "pull", "checkout-dev", "checkout-stable", "build-images", "preload-images", "bootstrap")
repo_action_list = ("pull", "checkout-dev", "checkout-stable")
helper_script_name = "build-helper.sh"
build_script_name = "build.sh"


class configure(common.basic_configure):
    helper_script: str | None  # 用户指定的辅助脚本
    no_strip: bool  # 是否跳过剥离调试符号
    no_pdf: bool  # 是否跳过pdf文档
    disable_multilib: bool  # 是否禁用multilib
    jobs: int  # 并发数
    network_try_times: int  # 网络操作的尝试次数

    def __init__(
        self,
        work_folder: str | None = None,
        helper_script: str | None = None,
        no_strip: bool = False,
        no_pdf: bool = False,
        disable_multilib: bool = False,
        jobs: int = math.floor((os.cpu_count() or 1) * 1.5),
        network_try_times: int = 1,
    ) -> None:
        super().__init__(work_folder)
        self.helper_script = os.path.abspath(helper_script) if helper_script else None
        self.no_strip = no_strip
        self.no_pdf = no_pdf
        self.disable_multilib = disable_multilib
        self.jobs = jobs
        self.network_try_times = network_try_times

    def check(self) -> None:
        """检查配置是否合法

        Raises:
            common.prerequisite_error: 指定的辅助脚本不存在
        """
        assert self.jobs > 0, f"Invalid jobs: {self.jobs}."
        assert self.network_try_times > 0, f"Invalid network try times: {self.network_try_times}."
        if self.helper_script and not os.path.isfile(self.helper_script):
            raise common.prerequisite_error(f'Cannot find helper script "{self.helper_script}".')


class host_timer:
    """记录宿主端构建耗时"""

    start: float

    def __init__(self) -> None:
        self.start = time.monotonic()

    def stop(self) -> None:
        delta = int(time.monotonic() - self.start)
        common.echo(f"Duration: {delta // 60} minutes {delta % 60} seconds.")


def detect_host() -> str:
    """获取宿主系统名，如Linux、Darwin"""
    host_uname = os.uname().sysname
    common.echo(f"Running on {host_uname}.")
    return host_uname


def check_prerequisite(item: product, host_uname: str) -> None:
    """检查宿主端需要的工具

    Raises:
        common.prerequisite_error: 工具不存在或版本过低
    """
    # bootstrap需要automake，解压后的依赖需要patch
    for tool in ("curl", "git", "tar", "unzip", "automake", "patch"):
        common.check_tool(tool)
    item.check_host_prerequisite(host_uname)


def get_selected_target_list(args: argparse.Namespace, item: product) -> list[target]:
    """根据平台选项获取要构建的平台，按产品的构建顺序排列"""
    return [t for t in item.build_order() if args.all or getattr(args, t.key)]


def copy_build_scripts(layout: work_layout) -> None:
    """复制构建脚本到工作目录，容器中从该目录运行，发行版中也会包含这些脚本"""
    script_dir = os.path.dirname(os.path.abspath(__file__))
    for file in sorted(filter(lambda x: x.endswith(".py"), os.listdir(script_dir))):
        common.copy(os.path.join(script_dir, file), os.path.join(layout.scripts_folder, file))


def resolve_helper_script(helper_script: str | None, layout: work_layout, build_scripts_url: str, try_times: int = 1) -> str:
    """确定辅助脚本，用户指定的脚本会复制到scripts目录，未指定且不存在时从build-scripts仓库下载

    Args:
        helper_script (str | None): 用户指定的辅助脚本
        layout (work_layout): 工作目录结构
        build_scripts_url (str): build-scripts仓库的原始文件地址
        try_times (int, optional): 网络操作的尝试次数. 默认为1.

    Returns:
        str: 工作目录中辅助脚本的路径
    """
    path = os.path.join(layout.scripts_folder, helper_script_name)
    if helper_script:
        if helper_script != path:
            common.copy(helper_script, path)
    elif not os.path.exists(path):
        common.echo(f"Downloading helper script from {build_scripts_url}...")
        for _ in range(try_times):
            try:
                common.run_command(f"curl --fail -L {build_scripts_url}/scripts/{helper_script_name} --output {path}")
                break
            except RuntimeError:
                common.remove_if_exists(path)
                common.echo("Download helper script failed, retrying.")
        else:
            raise RuntimeError("Download helper script failed.")
    common.echo(f'Helper script: "{path}".')
    return path


def get_build_script() -> str:
    """在容器中或本地运行的构建脚本，加载辅助脚本后运行container_build.py"""
    return "\n".join(
        (
            "#!/usr/bin/env bash",
            "if [[ -n ${DEBUG:-} ]]",
            "then",
            "  set -x",
            "fi",
            "set -o errexit",
            "set -o pipefail",
            "set -o nounset",
            "IFS=$'\\n\\t'",
            "",
            'export LC_ALL="C"',
            'export CONFIG_SHELL="/bin/bash"',
            "",
            'script_folder="$(cd "$(dirname "$0")" && pwd)"',
            'args=("$@")',
            'helper_script=""',
            "while [ $# -gt 0 ]",
            "do",
            '  case "$1" in',
            "    --helper-script)",
            '      helper_script="$2"',
            "      shift 2",
            "      ;;",
            "    *)",
            "      shift",
            "      ;;",
            "  esac",
            "done",
            "",
            'uname -a',
            'if [ -n "${helper_script}" ]',
            "then",
            '  source "${helper_script}"',
            "fi",
            "",
            f'python3 "${{script_folder}}/container_build.py" --settings "${{script_folder}}/{settings_file_name}" "${{args[@]}}"',
            "",
        )
    )


def write_build_script(layout: work_layout) -> str:
    path = os.path.join(layout.scripts_folder, build_script_name)
    common.write_file(path, get_build_script(), executable=True)
    return path


def get_target_argument_list(item: product, layout: work_layout, t: target, helper_script: str, host_uname: str) -> list[str]:
    """传递给构建脚本的参数"""
    return [
        f"--target-name {t.name}",
        f"--target-bits {t.bits}",
        f"--build-folder {layout.target_build_folder(t)}",
        f"--install-folder {layout.target_install_folder(t)}",
        f"--output-folder {layout.output_folder}",
        f"--download-folder {layout.download_folder}",
        f"--work-folder {layout.work_folder}",
        f"--distribution-folder {os.path.join(item.get_meta_dir(layout.work_folder), 'info')}",
        f"--helper-script {helper_script}",
        f"--host-uname {host_uname}",
    ]


def run_target(item: product, layout: work_layout, t: target, helper_script: str, host_uname: str) -> None:
    """为平台运行构建脚本，macOS在本地运行，其他平台在docker容器中运行

    Args:
        item (product): 产品
        layout (work_layout): 工作目录结构
        t (target): 目标平台
        helper_script (str): 辅助脚本
        host_uname (str): 宿主系统名
    """
    common.echo(t.banner)
    script = os.path.join(layout.scripts_folder, build_script_name)
    argument_list = get_target_argument_list(item, layout, t, helper_script, host_uname)
    if t.use_docker:
        image = item.docker_image(t)
        assert image, f"{item.app_name} has no docker image for {t.folder}."
        container_name = f"{item.app_lc_name}-{t.folder}-build"
        argument_list += [f"--docker-container-name {container_name}", f"--group-id {os.getgid()}", f"--user-id {os.getuid()}"]
        docker_host.run_container(image, container_name, layout.work_folder, f"bash {script} {' '.join(argument_list)}")
    else:
        common.run_command(f"bash {script} {' '.join(argument_list)}")


def build(config: configure, item: product, action: str | None, selected_target_list: list[target]) -> None:
    """按动作和选中的平台执行构建流程

    Args:
        config (configure): 构建配置
        item (product): 产品
        action (str | None): 动作，None表示构建选中的平台
        selected_target_list (list[target]): 选中的平台

    Raises:
        common.prerequisite_error: 缺少宿主工具、辅助脚本或docker镜像
    """
    layout = work_layout(resolve_work_folder(item.app_lc_name, config.work_folder))
    clean = action in ("clean", "cleanall")
    if not clean:
        # 检查在修改文件系统之前完成
        config.check()
        host_uname = detect_host()
        check_prerequisite(item, host_uname)

    common.echo(f'Using "{layout.work_folder}" as Work folder...')
    common.mkdir(layout.work_folder, False)
    if clean:
        layout.clean(action == "cleanall", download.get_dependency_folder_list(item, layout.work_folder))
        return

    copy_build_scripts(layout)
    helper_script = resolve_helper_script(config.helper_script, layout, item.build_scripts_url, config.network_try_times)
    timer = host_timer()
    match action:
        case "preload-images":
            docker_host.prepare_docker()
            docker_host.preload_images(item)
            timer.stop()
            return
        case "build-images":
            docker_host.prepare_docker()
            docker_host.build_images(item, layout.scripts_folder)
            timer.stop()
            return
        case "bootstrap":
            item.bootstrap(layout.work_folder)
            timer.stop()
            return

    container_target_list = [t for t in selected_target_list if t.use_docker]
    if container_target_list:
        docker_host.prepare_docker([image for image in map(item.docker_image, container_target_list) if image])

    item.acquire_project(layout.work_folder, config.network_try_times)
    if action in repo_action_list:
        download.repo_action(item, layout, action)
        timer.stop()
        return

    git_head = download.get_git_head(item, layout.work_folder)
    distribution_date = get_distribution_date()
    download.acquire(item, layout, config.network_try_times, [t.name for t in selected_target_list])

    settings = item.make_settings(
        git_head=git_head,
        distribution_date=distribution_date,
        no_strip=config.no_strip,
        no_pdf=config.no_pdf,
        disable_multilib=config.disable_multilib,
        jobs=config.jobs,
        debug=bool(os.environ.get("DEBUG")),
    )
    settings.save(os.path.join(layout.scripts_folder, settings_file_name))
    write_build_script(layout)

    for t in selected_target_list:
        if t.name == target_name.osx and host_uname != "Darwin":
            common.echo(f"Skip {t.folder}, it can only be built on macOS.")
            continue
        run_target(item, layout, t, helper_script, host_uname)

    if selected_target_list:
        packager.list_sha(layout.output_folder)
    timer.stop()


def add_argument(parser: argparse.ArgumentParser, item_type: type[product], default_config: configure) -> None:
    """添加动作、平台选择和构建选项"""
    configure.add_argument(parser)
    parser.add_argument("action", nargs="?", choices=action_list, help="The action to perform. Build the selected targets by default.")
    for t in target_list:
        parser.add_argument(*t.selector_list, dest=t.key, action="store_true", help=f"Build the {t.folder} distribution.")
    parser.add_argument("--all", action="store_true", help="Build all the distributions.")
    parser.add_argument("--helper-script", type=str, help="The helper script sourced by the build script.")
    parser.add_argument("--no-strip", action="store_true", help="Do not strip debug symbols.")
    parser.add_argument("--no-pdf", action="store_true", help="Do not build the pdf documentation.")
    parser.add_argument("--disable-multilib", action="store_true", help="Build the toolchain without multilib.")
    parser.add_argument("--jobs", type=int, help="Number of concurrent jobs at build time.", default=default_config.jobs)
    parser.add_argument(
        "--retry", type=int, help="The number of retries when a network operation failed.", default=default_config.network_try_times - 1
    )
    item_type.add_argument(parser)


def main(item_type: type[product], argv: list[str] | None = None) -> int:
    """解析命令行并构建产品

    Args:
        item_type (type[product]): 产品类型
        argv (list[str] | None, optional): 命令行参数. 默认为sys.argv[1:].

    Returns:
        int: 退出码
    """
    default_config = configure()
    parser = common.usage_parser(
        description=f"Build the GNU MCU Eclipse {item_type.app_name} distributions.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_argument(parser, item_type, default_config)
    args = parser.parse_args(argv)
    args.network_try_times = args.retry + 1

    current_config = configure.parse_args(args)
    current_config.load_config(args)
    item = item_type.parse_args(args)
    try:
        build(current_config, item, args.action, get_selected_target_list(args, item))
    except common.prerequisite_error as e:
        common.echo(str(e))
        return 1
    current_config.save_config(args)
    return 0


assert __name__ != "__main__", "Import this file instead of running it directly."
