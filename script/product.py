import os
import typing
import inspect
import argparse
import common
import packager
from stage import stage_runner
from source import git_source, source
from build_environment import target, target_list, make_distribution_version
from target_environment import build_settings, environment

dockerfile_url = "https://github.com/ilg-ul/docker/raw/master"
build_scripts_url = "https://github.com/gnu-mcu-eclipse/build-scripts/raw/master"


class product:
    """可发行产品的公共部分，派生类描述依赖、构建阶段和发行版信息"""

    name: typing.ClassVar[str]  # 产品模块名，用于查找修改器
    app_name: typing.ClassVar[str]  # 产品名称
    app_uc_name: typing.ClassVar[str]  # 用于路径的产品全名
    app_lc_name: typing.ClassVar[str]  # 用于路径的产品小写名称
    meta_folder: typing.ClassVar[str]  # 项目仓库中存放VERSION、nsis等文件的目录
    distribution_executable_name: typing.ClassVar[str]  # 发行版完成后检查的可执行文件
    docker_image_list: typing.ClassVar[dict[str, str]]  # 平台键到基础镜像的映射
    configure_log_list: typing.ClassVar[tuple[str, ...]]  # 需要复制到发行版的configure日志所在阶段
    project_stage: typing.ClassVar[str]  # 使用项目仓库内容的第一个阶段，更新仓库后从该阶段开始重新构建
    build_scripts_url: str  # build-scripts仓库的原始文件地址

    def __init__(self, build_scripts_url: str = build_scripts_url) -> None:
        self.build_scripts_url = build_scripts_url

    @staticmethod
    def add_argument(parser: argparse.ArgumentParser) -> None:
        """添加产品相关的命令行选项，选项名与构造参数对应"""
        parser.add_argument("--build-scripts-url", type=str, help="The raw file url of the build-scripts repository.")

    @classmethod
    def parse_args(cls, args: argparse.Namespace) -> typing.Self:
        """使用命令行选项构造产品，未指定的选项使用构造参数的默认值"""
        args_list = vars(args)
        parma_list: dict[str, typing.Any] = {}
        for parma in list(inspect.signature(cls.__init__).parameters.keys())[1:]:
            if args_list.get(parma) is not None:
                parma_list[parma] = args_list[parma]
        return cls(**parma_list)

    @property
    def project(self) -> git_source:
        """项目仓库"""
        raise NotImplementedError

    def get_project_dir(self, work_folder: str) -> str:
        return self.project.get_dir(work_folder)

    def get_meta_dir(self, work_folder: str) -> str:
        return os.path.join(self.get_project_dir(work_folder), self.meta_folder)

    def get_patch_dir(self, work_folder: str) -> str:
        return os.path.join(self.get_meta_dir(work_folder), "patches")

    def source_list(self) -> list[source]:
        """除项目仓库外的依赖列表"""
        return []

    def settings_extra(self) -> dict[str, str]:
        """需要传递给容器的产品相关设置，会作为构造参数传回"""
        return {"build_scripts_url": self.build_scripts_url}

    def build_order(self) -> tuple[target, ...]:
        """平台构建顺序"""
        return target_list

    def docker_image(self, item: target) -> str | None:
        """平台使用的镜像，在基础镜像上安装了容器中运行构建脚本所需的python包"""
        base = self.docker_image_list.get(item.key)
        return f"{base}-py" if base else None

    def base_image_list(self) -> list[str]:
        return list(dict.fromkeys(self.docker_image_list.values()))

    def check_host_prerequisite(self, host_uname: str) -> None:
        """检查产品需要的额外宿主工具"""

    def check_target_prerequisite(self, env: environment) -> None:
        """检查产品在构建平台上需要的额外工具"""

    def acquire_project(self, work_folder: str, try_times: int = 1) -> None:
        """克隆项目仓库，已存在时不做改变，更新由pull等操作完成"""
        project_dir = self.get_project_dir(work_folder)
        if not os.path.exists(project_dir):
            common.echo(f"Cloning '{self.project.url}'...")
            for _ in range(try_times):
                try:
                    common.run_command(f"git clone --branch {self.project.branch} {self.project.url} {project_dir}")
                    break
                except RuntimeError:
                    common.remove_if_exists(project_dir)
                    common.echo(f"Clone {self.project.name} failed, retrying.")
            else:
                raise RuntimeError(f"Clone {self.project.name} failed.")
            self.after_clone_project(work_folder)

    def after_clone_project(self, work_folder: str) -> None:
        """克隆项目仓库后的额外操作"""

    def bootstrap(self, work_folder: str) -> None:
        """重新生成项目的autotools文件，项目不包含bootstrap脚本时跳过"""
        project_dir = self.get_project_dir(work_folder)
        if not os.path.exists(os.path.join(project_dir, "bootstrap")):
            common.echo(f"No bootstrap script in {project_dir}, skip bootstrap.")
            return
        common.echo("Running bootstrap...")
        _ = common.chdir_guard(project_dir)
        common.remove_if_exists("aclocal.m4")
        common.run_command("./bootstrap")

    def dev_branch(self) -> str:
        return f"{self.project.branch}-dev"

    def stable_branch(self) -> str:
        return self.project.branch

    def distribution_version(self, work_folder: str, settings: build_settings) -> str:
        """计算发行版版本号

        Args:
            work_folder (str): 工作目录
            settings (build_settings): 构建设置，使用其中的git_head和distribution_date
        """
        return make_distribution_version(os.path.join(self.get_meta_dir(work_folder), "VERSION"), settings.distribution_date)

    def setup_environment(self, env: environment) -> None:
        """在添加构建阶段前调整构建环境"""

    def add_stages(self, runner: stage_runner, env: environment) -> None:
        """添加构建阶段，派生类需添加post-process之前的阶段"""
        raise NotImplementedError

    def license_list(self, env: environment) -> list[tuple[str, str]]:
        """需要复制许可证的依赖列表，每项为(源代码目录, 许可证目录名)"""
        return []

    def post_process(self, env: environment) -> None:
        """剥离符号并处理动态库，使安装目录可以独立运行"""
        raise NotImplementedError

    def nsis_define_list(self, env: environment) -> list[str]:
        """产品相关的makensis宏定义"""
        return []

    def add_common_stages(self, runner: stage_runner, env: environment) -> None:
        """添加所有产品共有的post-process和package阶段"""
        runner.add("post-process", lambda: self._post_process(env))
        runner.add("package", lambda: self._package(env))

    def _post_process(self, env: environment) -> None:
        self.post_process(env)
        common.echo("Copying license files...")
        for src_dir, name in self.license_list(env):
            packager.copy_license(env, src_dir, name)
        packager.convert_license_list(env)
        packager.copy_info(env, self.get_meta_dir(env.work_folder))
        for stage_name in self.configure_log_list:
            packager.copy_configure_log(env, stage_name)

    def _package(self, env: environment) -> None:
        distribution_version = self.distribution_version(env.work_folder, env.settings)
        nsis_script = os.path.join(self.get_meta_dir(env.work_folder), "nsis", f"{env.settings.app_lc_name}.nsi")
        distribution_file = packager.create_distribution(env, distribution_version, nsis_script, self.nsis_define_list(env))
        packager.check_executable(env, self.distribution_executable_name)
        common.echo(f'Distribution file "{distribution_file}" created.')

    def make_settings(self, **kwargs) -> build_settings:
        return build_settings(
            product=self.name,
            app_name=self.app_name,
            app_uc_name=self.app_uc_name,
            app_lc_name=self.app_lc_name,
            extra=self.settings_extra(),
            **kwargs,
        )


assert __name__ != "__main__", "Import this file instead of running it directly."
