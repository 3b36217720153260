import os
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional, Tuple

from .cli_logger import logger
from .config import BuildEnvironment, Profile
from .errors import BuildFailed, BuildToolMissing, ConfigError, InstallFailed, PathNotFound
from . import downloader
from .utils import (
    DEFAULT_BUILD_TARGET,
    Platform,
    combine_output,
    format_command,
    resolve_cmake_commands,
    run_shell_command,
)
from .utils.configure_resolver import ensure_cmake_project, is_configured
from .utils.platform_resolver import system_name, triple_architecture

SCRATCH_DIR_PREFIX = "bindbuilder"

SKIP_INSTALL_ALL_DEPENDENCY = "CMAKE_SKIP_INSTALL_ALL_DEPENDENCY"
INSTALL_PREFIX = "CMAKE_INSTALL_PREFIX"


@dataclass(frozen=True)
class GitSource:
    url: str
    ref: str
    shallow: bool = False
    clone: bool = False


@dataclass(frozen=True)
class ArchiveSource:
    url: str


@dataclass(frozen=True)
class PathSource:
    path: str


@dataclass
class BuildSpec:
    """What to build and how. Mutators return self so calls can be chained."""

    name: str
    source: object
    generator: Optional[str] = None
    toolset: Optional[str] = None
    profile: Optional[Profile] = None
    cflags: List[str] = field(default_factory=list)
    cxxflags: List[str] = field(default_factory=list)
    asmflags: List[str] = field(default_factory=list)
    defines: Dict[str, str] = field(default_factory=dict)
    env: Dict[str, str] = field(default_factory=dict)
    configure_args: List[str] = field(default_factory=list)
    build_args: List[str] = field(default_factory=list)
    prefix_paths: List[str] = field(default_factory=list)
    build_target: Optional[str] = None
    static_crt: Optional[bool] = None
    always_configure: bool = True
    very_verbose: bool = False

    @staticmethod
    def _append_flag(flags, flag):
        # Flags form an ordered set: a repeat is a no-op, never a reorder.
        if flag not in flags:
            flags.append(flag)

    def cflag(self, flag):
        self._append_flag(self.cflags, flag)
        return self

    def cxxflag(self, flag):
        self._append_flag(self.cxxflags, flag)
        return self

    def asmflag(self, flag):
        self._append_flag(self.asmflags, flag)
        return self

    def define(self, key, value):
        self.defines[key] = value
        return self

    def env_var(self, key, value):
        self.env[key] = value
        return self

    def configure_arg(self, arg):
        self.configure_args.append(arg)
        return self

    def build_arg(self, arg):
        self.build_args.append(arg)
        return self

    def register_prefix(self, path):
        """Make an already-installed dependency visible to find_package()."""
        if path not in self.prefix_paths:
            self.prefix_paths.append(path)
        return self

    def target(self, build_target):
        self.build_target = build_target
        return self


@dataclass(frozen=True)
class ConfiguredBuild:
    name: str
    source_dir: str
    scratch_dir: str
    build_dir: str
    install_dir: str
    profile: Profile
    build_target: Optional[str]
    defines: Tuple[Tuple[str, str], ...]
    configure_command: Tuple[str, ...]
    build_command: Tuple[str, ...]
    install_command: Tuple[str, ...]
    process_env: Mapping[str, str]
    cmake: str
    always_configure: bool = True


@dataclass(frozen=True)
class PrebuiltBuild:
    name: str
    build_dir: str
    install_dir: str
    profile: Profile
    install_command: Tuple[str, ...]
    process_env: Mapping[str, str]
    cmake: str


@dataclass(frozen=True)
class BuildResult:
    name: str
    install_dir: str
    build_target: str
    build_dir: str
    profile: Profile


def _absolute_source(path, platform):
    if not os.path.exists(path):
        raise PathNotFound(
            f"Path not found: {path}",
            hint="Make sure the source or build directory exists.",
        )
    # Canonical Windows paths come back in \\?\ form, which MSVC cannot use as an include path.
    if platform == Platform.WINDOWS:
        return os.path.abspath(path)
    return os.path.realpath(path)


def scratch_directory_for(source_dir, profile):
    return os.path.join(source_dir, f"{SCRATCH_DIR_PREFIX}-{Profile.parse(profile).value}")


def install_directory_for(source_dir, profile):
    """Pure function of (source path, profile): repeated builds land in the same place."""
    return os.path.join(scratch_directory_for(source_dir, profile), "install")


def _compiler_defines(spec, env: BuildEnvironment, profile):
    defines = {
        SKIP_INSTALL_ALL_DEPENDENCY: "true",
        "CMAKE_BUILD_TYPE": profile.value,
    }
    for language, flags in (("C", spec.cflags), ("CXX", spec.cxxflags), ("ASM", spec.asmflags)):
        if flags:
            defines[f"CMAKE_{language}_FLAGS"] = " ".join(flags)
    if spec.prefix_paths:
        defines["CMAKE_PREFIX_PATH"] = ";".join(spec.prefix_paths)
    if env.is_cross_compiling:
        defines["CMAKE_SYSTEM_NAME"] = system_name(env.platform)
        defines["CMAKE_SYSTEM_PROCESSOR"] = triple_architecture(env.target)
    if spec.static_crt is not None and "msvc" in env.target:
        defines["CMAKE_POLICY_DEFAULT_CMP0091"] = "NEW"
        runtime = "MultiThreaded$<$<CONFIG:Debug>:Debug>"
        defines["CMAKE_MSVC_RUNTIME_LIBRARY"] = runtime if spec.static_crt else runtime + "DLL"
    if spec.very_verbose:
        defines["CMAKE_VERBOSE_MAKEFILE"] = "ON"
    return defines


def configure(spec: BuildSpec, env: BuildEnvironment) -> ConfiguredBuild:
    """Resolve paths, defines and command lines for ``spec``. Nothing is run yet."""
    if not isinstance(spec.source, PathSource):
        raise ConfigError(
            f"{spec.name}: configure() needs a local source tree.",
            hint="Use build_dependency() to acquire git or archive sources first.",
        )

    platform = env.platform
    source_dir = _absolute_source(spec.source.path, platform)
    ensure_cmake_project(source_dir)

    profile = Profile.parse(spec.profile or env.profile)
    scratch_dir = scratch_directory_for(source_dir, profile)
    build_dir = os.path.join(scratch_dir, "build")
    install_dir = install_directory_for(source_dir, profile)

    defines = _compiler_defines(spec, env, profile)
    for key, value in spec.defines.items():
        if key == INSTALL_PREFIX:
            logger.warning(f"{spec.name}: ignoring {INSTALL_PREFIX}={value}, installs always go to {install_dir}")
            continue
        defines[key] = value
    defines[INSTALL_PREFIX] = install_dir

    process_env = dict(env.process_env)
    process_env.update(spec.env)

    commands = resolve_cmake_commands(
        cmake=env.cmake,
        source_dir=source_dir,
        build_dir=build_dir,
        install_dir=install_dir,
        profile=profile.value,
        defines=defines,
        generator=spec.generator or env.generator,
        toolset=spec.toolset or env.toolset,
        build_target=spec.build_target,
        configure_args=spec.configure_args,
        build_args=spec.build_args,
    )

    logger.info(f"Configured {spec.name} ({profile.value}) -> {install_dir}")
    return ConfiguredBuild(
        name=spec.name,
        source_dir=source_dir,
        scratch_dir=scratch_dir,
        build_dir=build_dir,
        install_dir=install_dir,
        profile=profile,
        build_target=spec.build_target,
        defines=tuple(defines.items()),
        configure_command=tuple(commands["configure_command"]),
        build_command=tuple(commands["build_command"]),
        install_command=tuple(commands["install_command"]),
        process_env=process_env,
        cmake=env.cmake,
        always_configure=spec.always_configure,
    )


def _run_cmake(cmake, command, cwd, process_env, stage, error_cls, verbose=False):
    logger.info(f"  - Running {stage}: {format_command(command)}")
    try:
        stdout, stderr, returncode = run_shell_command(
            list(command), stream_output=verbose, env=dict(process_env) or None, cwd=cwd
        )
    except FileNotFoundError as e:
        raise BuildToolMissing(
            f"Could not run '{cmake}', is cmake installed?",
            hint="Install CMake 3.15 or newer, or point the CMAKE environment variable at it.",
        ) from e
    if returncode != 0:
        raise error_cls(
            f"CMake {stage} failed in {cwd} (Exit Code: {returncode})",
            output=combine_output(stdout, stderr),
        )


def _with_install_prefix(command, install_dir):
    prefix_flag = f"-D{INSTALL_PREFIX}="
    kept = [arg for arg in command if not str(arg).startswith(prefix_flag)]
    return kept + [f"{prefix_flag}{install_dir}"]


def _install(name, cmake, install_command, build_dir, install_dir, process_env, verbose):
    _run_cmake(cmake, install_command, build_dir, process_env, "install", InstallFailed, verbose)
    if not os.path.isdir(install_dir):
        raise InstallFailed(
            f"{name}: install finished but {install_dir} does not exist",
            hint="Check that the project defines install() rules.",
        )


def build(configured: ConfiguredBuild, verbose=False) -> BuildResult:
    """Run configure, build and install for ``configured``.

    Every call returns a new BuildResult; ``configured`` itself is never
    modified, and repeated calls converge on the same install directory.
    """
    logger.info(f"Building {configured.name}...")
    os.makedirs(configured.build_dir, exist_ok=True)

    if configured.always_configure or not is_configured(configured.build_dir):
        # CMake keeps cached values between runs, so the prefix is stated again on every configure.
        configure_command = _with_install_prefix(configured.configure_command, configured.install_dir)
        _run_cmake(configured.cmake, configure_command, configured.build_dir,
                   configured.process_env, "configure", BuildFailed, verbose)
    else:
        logger.info(f"  - {configured.build_dir} is already configured, skipping configure step.")

    _run_cmake(configured.cmake, configured.build_command, configured.build_dir,
               configured.process_env, "build", BuildFailed, verbose)

    # The build step is not trusted to install; install explicitly.
    _install(configured.name, configured.cmake, configured.install_command,
             configured.build_dir, configured.install_dir, configured.process_env, verbose)

    logger.success(f"{configured.name} installed to {configured.install_dir}")
    return BuildResult(
        name=configured.name,
        install_dir=configured.install_dir,
        build_target=configured.build_target or DEFAULT_BUILD_TARGET,
        build_dir=configured.build_dir,
        profile=configured.profile,
    )


def from_build_directory(name, build_dir, env: BuildEnvironment, profile=None) -> PrebuiltBuild:
    """Start from a CMake build tree that was configured and built out-of-band."""
    build_dir = _absolute_source(build_dir, env.platform)
    profile = Profile.parse(profile or env.profile)
    install_dir = install_directory_for(build_dir, profile)
    commands = resolve_cmake_commands(
        cmake=env.cmake,
        source_dir=build_dir,
        build_dir=build_dir,
        install_dir=install_dir,
        profile=profile.value,
        defines={},
    )
    return PrebuiltBuild(
        name=name,
        build_dir=build_dir,
        install_dir=install_dir,
        profile=profile,
        install_command=tuple(commands["install_command"]),
        process_env=dict(env.process_env),
        cmake=env.cmake,
    )


def install(prebuilt: PrebuiltBuild, verbose=False) -> BuildResult:
    logger.info(f"Installing {prebuilt.name} from {prebuilt.build_dir}...")
    _install(prebuilt.name, prebuilt.cmake, prebuilt.install_command,
             prebuilt.build_dir, prebuilt.install_dir, prebuilt.process_env, verbose)
    logger.success(f"{prebuilt.name} installed to {prebuilt.install_dir}")
    return BuildResult(
        name=prebuilt.name,
        install_dir=prebuilt.install_dir,
        build_target=DEFAULT_BUILD_TARGET,
        build_dir=prebuilt.build_dir,
        profile=prebuilt.profile,
    )


def acquire_source(spec: BuildSpec, env: BuildEnvironment, verbose=False):
    """Turn a git or archive source into a local one. Returns (spec, AcquiredRepository or None)."""
    source = spec.source
    if isinstance(source, PathSource):
        return spec, None
    if isinstance(source, GitSource):
        acquire = downloader.clone_repository if source.clone else downloader.acquire_repository
        acquired = acquire(
            spec.name, source.url, source.ref, env.sources_directory(),
            git=env.git, env=dict(env.process_env) or None, shallow=source.shallow,
        )
    elif isinstance(source, ArchiveSource):
        acquired = downloader.download_archive_source(
            spec.name, source.url, env.sources_directory(), verbose=verbose
        )
    else:
        raise ConfigError(f"{spec.name}: unknown source {source!r}")
    return replace(spec, source=PathSource(acquired.path)), acquired


def build_dependency(spec: BuildSpec, env: BuildEnvironment, verbose=False) -> BuildResult:
    """Acquire (when needed), configure, build and install one dependency."""
    local_spec, _ = acquire_source(spec, env, verbose=verbose)
    return build(configure(local_spec, env), verbose=verbose)
