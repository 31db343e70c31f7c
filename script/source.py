import os
import packaging.version as version
import common

version_file_name = ".version"


def save_version(dir: str, lib_version: str) -> None:
    """将包版本信息保存到dir/.version文件中

    Args:
        dir (str): 要保存版本信息文件的目录
        lib_version (str): 包版本
    """
    common.write_file(os.path.join(dir, version_file_name), lib_version)


def check_version(dir: str, lib_version: str) -> int:
    """检查包版本

    Args:
        dir (str): 包根目录
        lib_version (str): 需要的包版本

    Returns:
        int: 三路比较结果，1为存在更新版本，0为版本一致，-1为需要更新
    """
    try:
        with open(os.path.join(dir, version_file_name)) as file:
            current_version = version.Version(file.readline())
            target_version = version.Version(lib_version)
            if current_version > target_version:
                return 1
            elif current_version == target_version:
                return 0
            else:
                return -1
    except Exception:
        return -1


class git_source:
    name: str  # 包名称
    url: str  # 仓库地址
    branch: str  # 固定的分支
    commit: str  # 固定的提交，HEAD表示分支最新提交
    folder_name: str  # 工作目录下的目录名

    def __init__(self, name: str, url: str, branch: str, commit: str = "HEAD", folder_name: str | None = None) -> None:
        self.name = name
        self.url = url
        self.branch = branch
        self.commit = commit
        self.folder_name = folder_name or f"{name}.git"

    def get_dir(self, work_folder: str) -> str:
        return os.path.join(work_folder, self.folder_name)

    def current_commit(self, work_folder: str) -> str | None:
        return common.capture_output(f"git -C {self.get_dir(work_folder)} rev-parse HEAD")

    def current_branch(self, work_folder: str) -> str | None:
        return common.capture_output(f"git -C {self.get_dir(work_folder)} symbolic-ref -q --short HEAD")

    def pinned_commit(self, work_folder: str) -> str | None:
        return common.capture_output(f"git -C {self.get_dir(work_folder)} rev-parse -q --verify {self.commit}^{{commit}}")

    def is_synchronized(self, work_folder: str) -> bool:
        """检查已有的检出是否位于固定的分支或提交上

        Args:
            work_folder (str): 工作目录
        """
        if common.command_dry_run.get():
            return True
        if self.commit == "HEAD":
            return self.current_branch(work_folder) == self.branch
        current = self.current_commit(work_folder)
        return current is not None and current == self.pinned_commit(work_folder)

    def checkout(self, work_folder: str) -> None:
        common.run_command(f"git -C {self.get_dir(work_folder)} checkout -qf {self.commit if self.commit != 'HEAD' else self.branch}")

    def acquire(self, work_folder: str, try_times: int = 1) -> None:
        """克隆固定分支并检出固定提交，已存在但版本不符时重新同步

        Args:
            work_folder (str): 工作目录
            try_times (int, optional): 网络操作的尝试次数. 默认为1.
        """
        lib_dir = self.get_dir(work_folder)
        if not os.path.exists(lib_dir):
            common.echo(f"Cloning '{self.url}'...")
            for _ in range(try_times):
                try:
                    common.run_command(f"git clone --branch {self.branch} {self.url} {lib_dir}")
                    break
                except RuntimeError:
                    common.remove_if_exists(lib_dir)
                    common.echo(f"Clone {self.name} failed, retrying.")
            else:
                raise RuntimeError(f"Clone {self.name} failed.")
            self.checkout(work_folder)
        elif not self.is_synchronized(work_folder):
            common.echo(f"Lib {self.name} is not at {self.branch}@{self.commit}, synchronize it.")
            for _ in range(try_times):
                try:
                    common.run_command(f"git -C {lib_dir} fetch origin {self.branch}")
                    break
                except RuntimeError:
                    common.echo(f"Fetch {self.name} failed, retrying.")
            else:
                raise RuntimeError(f"Fetch {self.name} failed.")
            self.checkout(work_folder)
        else:
            common.echo(f"Lib {self.name} exists, skip download.")


class archive_source:
    name: str  # 包名称
    version: str  # 包版本
    url: str  # 下载地址
    archive_name: str  # 下载后的文件名
    folder_name: str  # 解压后的目录名
    patch: str | None  # 解压后应用的补丁相对路径，相对于项目仓库
    patch_level: int  # patch -p参数
    target_list: tuple[str, ...] | None  # 需要该包的平台名称，None表示所有平台

    def __init__(
        self,
        name: str,
        version: str,
        url: str,
        archive_name: str,
        folder_name: str,
        patch: str | None = None,
        patch_level: int = 0,
        target_list: tuple[str, ...] | None = None,
    ) -> None:
        self.name = name
        self.version = version
        self.url = url
        self.archive_name = archive_name
        self.folder_name = folder_name
        self.patch = patch
        self.patch_level = patch_level
        self.target_list = target_list

    def get_dir(self, work_folder: str) -> str:
        return os.path.join(work_folder, self.folder_name)

    def get_archive_path(self, download_folder: str) -> str:
        return os.path.join(download_folder, self.archive_name)

    def check_exist(self, work_folder: str) -> bool:
        """检查解压后的目录是否存在且版本一致"""
        lib_dir = self.get_dir(work_folder)
        return os.path.exists(lib_dir) and check_version(lib_dir, self.version) == 0

    def download(self, download_folder: str, try_times: int = 1) -> None:
        archive_path = self.get_archive_path(download_folder)
        if os.path.exists(archive_path):
            common.echo(f"Archive {self.archive_name} exists, skip download.")
            return
        common.mkdir(download_folder, False)
        partial_path = f"{archive_path}.download"
        for _ in range(try_times):
            try:
                common.run_command(f"curl --fail -L {self.url} --output {partial_path}")
                break
            except RuntimeError:
                common.remove_if_exists(partial_path)
                common.echo(f"Download {self.name} failed, retrying.")
        else:
            raise RuntimeError(f"Download {self.name} failed.")
        # 下载完成后再重命名，避免中断后留下不完整的压缩包
        common.rename(partial_path, archive_path)

    def unpack(self, work_folder: str, download_folder: str, patch_dir: str | None = None) -> None:
        """解压压缩包并应用补丁，会删除已存在的目录

        Args:
            work_folder (str): 工作目录
            download_folder (str): 下载目录
            patch_dir (str | None, optional): 补丁所在目录. 默认为None.
        """
        lib_dir = self.get_dir(work_folder)
        archive_path = self.get_archive_path(download_folder)
        common.remove_if_exists(lib_dir)
        if self.archive_name.endswith(".zip"):
            common.run_command(f"unzip -q {archive_path} -d {work_folder}")
        else:
            common.run_command(f"tar -xaf {archive_path} -C {work_folder}")
        if self.patch:
            assert patch_dir, f"Lib {self.name} needs a patch directory."
            _ = common.chdir_guard(lib_dir)
            common.run_command(f"patch -p{self.patch_level} < {os.path.join(patch_dir, self.patch)}")
        save_version(lib_dir, self.version)

    def acquire(self, work_folder: str, download_folder: str, patch_dir: str | None = None, try_times: int = 1) -> None:
        """下载并解压，解压后的目录版本一致时跳过

        Args:
            work_folder (str): 工作目录
            download_folder (str): 下载目录
            patch_dir (str | None, optional): 补丁所在目录. 默认为None.
            try_times (int, optional): 网络操作的尝试次数. 默认为1.
        """
        self.download(download_folder, try_times)
        if self.check_exist(work_folder):
            common.echo(f"Lib {self.name} exists, skip unpack.")
        else:
            self.unpack(work_folder, download_folder, patch_dir)

    def need_for(self, name: str) -> bool:
        return self.target_list is None or name in self.target_list


type source = git_source | archive_source


assert __name__ != "__main__", "Import this file instead of running it directly."
