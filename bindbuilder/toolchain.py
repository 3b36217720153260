import re

from packaging.version import InvalidVersion, Version

from .cli_logger import logger
from .utils import run_shell_command

# cmake --install first appeared in 3.15.
MIN_CMAKE_VERSION = Version("3.15")

_VERSION_PATTERN = re.compile(r"version\s+(\d+(?:\.\d+)*)")


def parse_tool_version(output):
    """Pulls the version out of ``<tool> --version`` output, or returns None."""
    match = _VERSION_PATTERN.search(output or "")
    if not match:
        return None
    try:
        return Version(match.group(1))
    except InvalidVersion:
        return None


def tool_version(executable, env=None):
    """Runs ``executable --version``; None when it is missing or fails."""
    try:
        stdout, _, returncode = run_shell_command([executable, "--version"], env=env)
    except FileNotFoundError:
        return None
    if returncode != 0:
        return None
    return parse_tool_version(stdout)


def check_environment(env):
    """Check that git and a recent enough cmake are available to ``env``."""
    logger.info("Checking bindbuilder environment...")
    process_env = dict(env.process_env) or None
    all_ok = True

    git_version = tool_version(env.git, process_env)
    if git_version is None:
        logger.warning(f"git ('{env.git}') was not found. Install git or set the GIT environment variable.")
        all_ok = False
    else:
        logger.info(f"  - git {git_version}")

    cmake_version = tool_version(env.cmake, process_env)
    if cmake_version is None:
        logger.warning(f"cmake ('{env.cmake}') was not found. Install CMake or set the CMAKE environment variable.")
        all_ok = False
    elif cmake_version < MIN_CMAKE_VERSION:
        logger.warning(f"cmake {cmake_version} is too old, {MIN_CMAKE_VERSION} or newer is required.")
        all_ok = False
    else:
        logger.info(f"  - cmake {cmake_version}")

    logger.info(f"  - target {env.target} ({env.platform.value}), host {env.host}, profile {env.profile.value}")
    return all_ok
