import os
import common
from source import git_source, archive_source
from build_environment import work_layout, target_list
from product import product


def acquire(item: product, layout: work_layout, try_times: int = 1, target_name_list: list[str] | None = None) -> None:
    """获取项目仓库和依赖，已存在的依赖在版本不符时重新同步

    Args:
        item (product): 产品
        layout (work_layout): 工作目录结构
        try_times (int, optional): 网络操作的尝试次数. 默认为1.
        target_name_list (list[str] | None, optional): 要构建的平台名称，只获取这些平台需要的压缩包. 默认为None，获取所有依赖.
    """
    work_folder = layout.work_folder
    item.acquire_project(work_folder, try_times)
    for lib in item.source_list():
        match lib:
            case git_source():
                lib.acquire(work_folder, try_times)
            case archive_source():
                if target_name_list is not None and not any(map(lib.need_for, target_name_list)):
                    common.echo(f"Lib {lib.name} is not needed by the selected targets, skip.")
                    continue
                lib.acquire(work_folder, layout.download_folder, item.get_patch_dir(work_folder), try_times)


def get_dependency_folder_list(item: product, work_folder: str) -> list[str]:
    """cleanall时需要删除的目录：项目仓库、依赖的git仓库和解压后的目录，下载的压缩包保留"""
    return [item.get_project_dir(work_folder), *(lib.get_dir(work_folder) for lib in item.source_list())]


def get_git_head(item: product, work_folder: str) -> str:
    """获取项目仓库当前分支名，用于区分稳定版和开发版，分离HEAD时返回空字符串"""
    return common.capture_output(f"git -C {item.get_project_dir(work_folder)} symbolic-ref -q --short HEAD") or ""


def repo_action(item: product, layout: work_layout, action: str) -> None:
    """更新项目仓库或切换分支，完成后重新生成autotools文件并使依赖仓库内容的阶段过期

    Args:
        item (product): 产品
        layout (work_layout): 工作目录结构
        action (str): pull、checkout-dev或checkout-stable

    Raises:
        common.prerequisite_error: 项目仓库不存在
    """
    project_dir = item.get_project_dir(layout.work_folder)
    match action:
        case "pull":
            common.echo("Running git pull...")
        case "checkout-dev":
            common.echo(f"Running git checkout {item.dev_branch()} & pull...")
        case "checkout-stable":
            common.echo(f"Running git checkout {item.stable_branch()} & pull...")
        case _:
            assert False, f'Unknown repo action "{action}".'
    if not os.path.isdir(project_dir):
        raise common.prerequisite_error(f'No git folder "{project_dir}".')

    if action == "checkout-dev":
        common.run_command(f"git -C {project_dir} checkout {item.dev_branch()}")
    elif action == "checkout-stable":
        common.run_command(f"git -C {project_dir} checkout {item.stable_branch()}")
    common.run_command(f"git -C {project_dir} pull --recurse-submodules")
    common.run_command(f"git -C {project_dir} submodule update --init --recursive --remote")
    common.run_command(f"git -C {project_dir} branch")
    item.bootstrap(layout.work_folder)
    for target in target_list:
        common.remove_if_exists(os.path.join(layout.target_build_folder(target), item.project_stage))

    if action == "pull":
        common.echo("Pull completed. Proceed with a regular build.")
    else:
        common.echo("Checkout completed. Proceed with a regular build.")


assert __name__ != "__main__", "Import this file instead of running it directly."
