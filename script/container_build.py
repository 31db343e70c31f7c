#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import os
import sys
import argparse
import common
import riscv_gcc
import openocd
from build_environment import target_name, get_target
from target_environment import build_settings, environment
from stage import stage_runner
from product import product

product_list: dict[str, type[product]] = {item.name: item for item in (riscv_gcc.riscv_gcc, openocd.openocd)}


def make_parser() -> argparse.ArgumentParser:
    parser = common.usage_parser(description="Build one target inside the container or on the macOS host.")
    parser.add_argument("--settings", type=str, required=True, help="The build settings written by the host script.")
    parser.add_argument("--target-name", type=str, choices=[name.value for name in target_name], required=True, help="The target platform.")
    parser.add_argument("--target-bits", type=int, choices=[32, 64], help="The bits of the target platform.")
    parser.add_argument("--build-folder", type=str, required=True, help="The build folder of the target.")
    parser.add_argument("--install-folder", type=str, required=True, help="The install folder of the target.")
    parser.add_argument("--output-folder", type=str, required=True, help="The folder of the distribution files.")
    parser.add_argument("--download-folder", type=str, required=True, help="The folder of the downloaded archives.")
    parser.add_argument("--work-folder", type=str, required=True, help="The work folder.")
    parser.add_argument("--distribution-folder", type=str, default="", help="The folder of the distribution info.")
    parser.add_argument("--helper-script", type=str, default="", help="The helper script sourced by the build script.")
    parser.add_argument("--host-uname", type=str, default="", help="The system name of the host.")
    parser.add_argument("--docker-container-name", type=str, default="", help="The name of the container.")
    parser.add_argument("--group-id", type=int, help="The group id of the host user.")
    parser.add_argument("--user-id", type=int, help="The user id of the host user.")
    parser.add_argument("--dry-run", action="store_true", help="Preview the commands without actually executing them.")
    return parser


def make_environment(settings: build_settings, args: argparse.Namespace) -> environment:
    return environment(
        settings,
        get_target(args.target_name, args.target_bits),
        args.work_folder,
        args.build_folder,
        args.install_folder,
        args.output_folder,
        args.download_folder,
        args.distribution_folder,
        args.helper_script,
        args.host_uname,
    )


def build_target(settings: build_settings, args: argparse.Namespace) -> int:
    """为一个平台运行产品的所有构建阶段

    Returns:
        int: 实际构建的阶段数
    """
    assert settings.product in product_list, f'Unknown product "{settings.product}".'
    item = product_list[settings.product](**settings.extra)
    env = make_environment(settings, args)
    if args.docker_container_name:
        common.echo(f"Running in container {args.docker_container_name}.")
    common.echo(f"Building {settings.app_name} for {env.target.folder}...")
    if not common.command_dry_run.get():
        env.check_tool_list()
        item.check_target_prerequisite(env)
    item.setup_environment(env)
    runner = stage_runner(env.build_folder, env.target.folder)
    item.add_stages(runner, env)
    count = runner.run()
    common.echo(f"{settings.app_name} for {env.target.folder} completed, {count} stage(s) built.")
    return count


def restore_owner(args: argparse.Namespace) -> None:
    """容器中以root身份运行时，将生成的文件归还给宿主用户"""
    if os.getuid() != 0 or args.user_id is None or args.group_id is None:
        return
    folder_list = " ".join(
        folder for folder in (args.build_folder, args.install_folder, args.output_folder) if os.path.exists(folder)
    )
    if folder_list:
        common.run_command(f"chown -R {args.user_id}:{args.group_id} {folder_list}", ignore_error=True)


def main(argv: list[str] | None = None) -> int:
    args = make_parser().parse_args(argv)
    common.command_dry_run.set(args.dry_run)
    settings = build_settings.load(args.settings)
    try:
        build_target(settings, args)
    except common.prerequisite_error as e:
        common.echo(str(e))
        return 1
    finally:
        restore_owner(args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
