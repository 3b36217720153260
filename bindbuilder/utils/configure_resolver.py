import os

from ..cli_logger import logger
from ..errors import PathNotFound

DEFAULT_BUILD_TARGET = "all"
CMAKE_LISTS = "CMakeLists.txt"
CMAKE_CACHE = "CMakeCache.txt"


def ensure_cmake_project(source_dir: str) -> None:
    if not os.path.exists(os.path.join(source_dir, CMAKE_LISTS)):
        raise PathNotFound(
            f"No {CMAKE_LISTS} found in {source_dir}",
            hint="bindbuilder only drives CMake projects; point it at the directory holding the top-level CMakeLists.txt.",
        )


def is_configured(build_dir: str) -> bool:
    return os.path.exists(os.path.join(build_dir, CMAKE_CACHE))


def _is_multi_config(generator: str) -> bool:
    return bool(generator) and (generator.startswith("Visual Studio") or generator in ("Xcode", "Ninja Multi-Config"))


def resolve_build_target(build_target, generator=None) -> str:
    """The one place the "build everything" default is applied."""
    target = build_target or DEFAULT_BUILD_TARGET
    if target == DEFAULT_BUILD_TARGET and generator and generator.startswith("Visual Studio"):
        return "ALL_BUILD"
    return target


def _generate_configure_command(
    cmake: str,
    source_dir: str,
    build_dir: str,
    generator: str,
    toolset: str,
    defines: dict,
    configure_args: list,
) -> list:
    configure_cmd = [cmake, source_dir, "-B", build_dir]
    if generator:
        configure_cmd += ["-G", generator]
    if toolset:
        configure_cmd += ["-T", toolset]
    for key, value in defines.items():
        configure_cmd.append(f"-D{key}={value}")
    return configure_cmd + list(configure_args)


def _generate_build_command(
    cmake: str,
    build_target: str,
    profile: str,
    build_args: list,
) -> list:
    build_cmd = [
        cmake, "--build", ".",
        "--target", build_target,
        "--config", profile,
        "--parallel", str(os.cpu_count() or 1),
    ]
    if build_args:
        build_cmd += ["--"] + list(build_args)
    return build_cmd


def _generate_install_command(cmake: str, install_dir: str, profile: str) -> list:
    return [cmake, "--install", ".", "--prefix", install_dir, "--config", profile]


def resolve_cmake_commands(
    cmake: str,
    source_dir: str,
    build_dir: str,
    install_dir: str,
    profile: str,
    defines: dict,
    generator: str = None,
    toolset: str = None,
    build_target: str = None,
    configure_args: list = (),
    build_args: list = (),
) -> dict:
    """
    Resolves the three CMake invocations for one project.

    The configure command runs from anywhere (it names both trees), the build
    and install commands run from ``build_dir``.

    Returns:
        dict: 'configure_command', 'build_command' and 'install_command' lists,
              plus the resolved 'build_target'.
    """
    target = resolve_build_target(build_target, generator)
    logger.info(f"  - Generating CMake commands (target: {target}, profile: {profile}).")
    if _is_multi_config(generator):
        logger.debug(f"  - {generator} is a multi-config generator; --config selects {profile}.")

    return {
        "configure_command": _generate_configure_command(
            cmake, source_dir, build_dir, generator, toolset, defines, configure_args
        ),
        "build_command": _generate_build_command(cmake, target, profile, build_args),
        "install_command": _generate_install_command(cmake, install_dir, profile),
        "build_target": target,
    }
