from typing import Callable
from target_environment import environment

# 修改器列表，键为"产品-平台名"
modifier_list: dict[str, Callable[[environment], None]] = {}


def register(fn):
    """注册修改器到列表

    Args:
        fn (function): 修改器函数
    """
    name: str = fn.__name__
    field_list = name.split("_")[:-1]
    name = "-".join(field_list)
    modifier_list[name] = fn
    return fn


def apply(product: str, env: environment) -> None:
    """调用产品在该平台上的修改器

    Args:
        product (str): 产品名，如riscv-gcc
        env (environment): 构建环境
    """
    fn = modifier_list.get(f"{product}-{env.target.name}")
    if fn:
        fn(env)


_riscv_gcc_warning_cflags = (
    "-Wno-unknown-warning-option -Wno-extended-offsetof -Wno-deprecated-declarations "
    "-Wno-incompatible-pointer-types-discards-qualifiers -Wno-implicit-function-declaration -Wno-parentheses "
    "-Wno-format-nonliteral -Wno-shift-count-overflow -Wno-constant-logical-operand -Wno-shift-negative-value -Wno-format"
)
_riscv_gcc_warning_cxxflags = "-Wno-format-nonliteral -Wno-format-security -Wno-deprecated -Wno-unknown-warning-option -Wno-c++11-narrowing"


def _riscv_gcc_common(env: environment) -> None:
    for stage in ("binutils", "gcc-stage1", "gcc-stage2"):
        env.option_list.setdefault(stage, []).extend(
            (f'CFLAGS="{_riscv_gcc_warning_cflags} {env.cflags}"', f'CXXFLAGS="{_riscv_gcc_warning_cxxflags} {env.cflags}"')
        )


@register
def riscv_gcc_win_modifier(env: environment) -> None:
    _riscv_gcc_common(env)
    # 仅宿主工具为Windows程序，目标库由PATH中的Linux工具链编译
    for stage in ("binutils", "gcc-stage2"):
        env.option_list[stage] += env.host_option()


@register
def riscv_gcc_debian_modifier(env: environment) -> None:
    _riscv_gcc_common(env)


@register
def riscv_gcc_osx_modifier(env: environment) -> None:
    _riscv_gcc_common(env)


@register
def openocd_win_modifier(env: environment) -> None:
    # mingw下不支持buspirate，sysfsgpio只在Linux下可用
    env.option_list["openocd"] += [
        f"--build=$(uname -m)-linux-gnu",
        *env.host_option(),
        "--disable-buspirate",
        "--enable-gw16012",
        "--enable-amtjtagaccel",
        "--enable-jtag_vpi",
        "--enable-parport",
        "--enable-parport-giveio",
        "--disable-sysfsgpio",
    ]


@register
def openocd_debian_modifier(env: environment) -> None:
    env.option_list["openocd"] += [
        "--enable-buspirate",
        "--enable-gw16012",
        "--enable-amtjtagaccel",
        "--enable-jtag_vpi",
        "--enable-parport",
        "--enable-parport-giveio",
        "--enable-sysfsgpio",
    ]


@register
def openocd_osx_modifier(env: environment) -> None:
    # macOS下没有并口
    env.option_list["openocd"] += [
        "--enable-buspirate",
        "--disable-gw16012",
        "--disable-amtjtagaccel",
        "--disable-jtag_vpi",
        "--disable-parport",
        "--disable-parport-giveio",
        "--disable-sysfsgpio",
    ]
