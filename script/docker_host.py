import os
import common
from product import product, dockerfile_url

# 容器中运行构建脚本需要的python包
python_requirement_list = ("psutil", "packaging")


def prepare_docker(image_list: list[str] | None = None) -> None:
    """检查docker是否可用以及所需镜像是否存在

    Args:
        image_list (list[str] | None, optional): 需要的镜像列表. 默认为None，不检查镜像.

    Raises:
        common.prerequisite_error: docker不可用或镜像不存在
    """
    common.check_tool("docker")
    if common.command_dry_run.get():
        return
    common.echo("Checking docker daemon...")
    if common.capture_output("docker info") is None:
        raise common.prerequisite_error("Docker is not running, please start the docker daemon first.")
    for image in image_list or []:
        if common.capture_output(f"docker image inspect {image}") is None:
            raise common.prerequisite_error(f'Cannot find docker image "{image}", please run the build-images action first.')


def get_dockerfile_url(image: str) -> str:
    """基础镜像的Dockerfile地址，如ilegeul/debian:8-gnuarm-mingw对应debian/8-gnuarm-mingw/Dockerfile"""
    repo, tag = image.split(":")
    return f"{dockerfile_url}/{repo.split('/')[-1]}/{tag}/Dockerfile"


def get_derived_dockerfile(image: str) -> str:
    """在基础镜像上安装python依赖的Dockerfile"""
    requirements = " ".join(python_requirement_list)
    return f"FROM {image}\nRUN python3 -m pip install --no-cache-dir {requirements}\n"


def build_images(item: product, scripts_folder: str) -> None:
    """构建产品需要的基础镜像和派生镜像，镜像可能已经存在，故忽略错误

    Args:
        item (product): 产品
        scripts_folder (str): 存放派生镜像Dockerfile的目录
    """
    common.echo("Build Docker images...")
    for image in item.base_image_list():
        common.run_command(f"docker build --tag {image} {get_dockerfile_url(image)}", ignore_error=True)
        context = os.path.join(scripts_folder, "docker", image.replace("/", "-").replace(":", "-"))
        common.write_file(os.path.join(context, "Dockerfile"), get_derived_dockerfile(image))
        common.run_command(f"docker build --tag {image}-py {context}", ignore_error=True)
    common.run_command("docker images")


def preload_images(item: product) -> None:
    """拉取并检查产品需要的基础镜像，派生镜像只在本地构建过时检查"""
    common.echo("Check/Preload Docker images...")
    for image in item.base_image_list():
        common.run_command(f"docker run --rm {image} lsb_release --description --short")
        if common.capture_output(f"docker image inspect {image}-py") is not None:
            common.run_command(f"docker run --rm {image}-py lsb_release --description --short")
    common.run_command("docker images")


def run_container(image: str, container_name: str, work_folder: str, command: str) -> None:
    """在容器中运行命令，工作目录以相同路径挂载到容器中

    Args:
        image (str): 镜像
        container_name (str): 容器名称
        work_folder (str): 工作目录
        command (str): 在容器中运行的命令
    """
    debug = os.environ.get("DEBUG", "")
    debug_option = f" --env DEBUG={debug}" if debug else ""
    common.run_command(
        f"docker run --rm --name {container_name}{debug_option} --volume {work_folder}:{work_folder} "
        f"--workdir {work_folder} {image} {command}"
    )


assert __name__ != "__main__", "Import this file instead of running it directly."
