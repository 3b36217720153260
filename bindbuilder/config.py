import toml
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

from .cli_logger import logger
from .errors import ConfigError
from .utils.platform_resolver import Platform, default_host_triple, resolve_platform
from .utils.target_dir_resolver import resolve_build_root

CONFIG_FILE = "bindbuilder.toml"

# Process environment variables read by BuildEnvironment.from_environ.
ENV_TARGET = "TARGET"
ENV_HOST = "HOST"
ENV_PROFILE = "PROFILE"
ENV_OUT_DIR = "OUT_DIR"
ENV_TARGET_DIR = "BINDBUILDER_TARGET_DIR"
ENV_CMAKE = "CMAKE"
ENV_GIT = "GIT"

SOURCES_DIR_NAME = "bindbuilder-src"


class Profile(Enum):
    DEBUG = "Debug"
    RELEASE = "Release"
    REL_WITH_DEB_INFO = "RelWithDebInfo"
    MIN_SIZE_REL = "MinSizeRel"

    @classmethod
    def parse(cls, name):
        if isinstance(name, cls):
            return name
        aliases = {
            "debug": cls.DEBUG,
            "release": cls.RELEASE,
            "relwithdebinfo": cls.REL_WITH_DEB_INFO,
            "relwithdebuginfo": cls.REL_WITH_DEB_INFO,
            "minsizerel": cls.MIN_SIZE_REL,
        }
        try:
            return aliases[str(name).strip().lower()]
        except KeyError:
            choices = ", ".join(p.value for p in cls)
            raise ConfigError(f"Unknown build profile '{name}'.", hint=f"Use one of: {choices}.")


@dataclass(frozen=True)
class BuildEnvironment:
    """Everything the core needs from the outside world, captured once.

    The core never reads ``os.environ``; callers build one of these (usually
    with :meth:`from_environ`) and pass it into every entry point.
    """

    target: str
    host: str
    profile: Profile
    out_dir: str
    target_dir: Optional[str] = None
    binary_dir: Optional[str] = None
    clone_root: Optional[str] = None
    generator: Optional[str] = None
    toolset: Optional[str] = None
    cmake: str = "cmake"
    git: str = "git"
    process_env: Mapping[str, str] = field(default_factory=dict)

    @property
    def platform(self) -> Platform:
        return resolve_platform(self.target)

    @property
    def is_cross_compiling(self) -> bool:
        return self.target != self.host

    def build_root(self) -> str:
        return resolve_build_root(
            self.out_dir,
            explicit=self.target_dir,
            canonicalize=self.platform != Platform.WINDOWS,
        )

    def binary_directory(self) -> str:
        """Where shared objects are copied so they sit next to the final binary."""
        return self.binary_dir or self.build_root()

    def sources_directory(self) -> str:
        return self.clone_root or os.path.join(self.build_root(), SOURCES_DIR_NAME)

    @classmethod
    def from_environ(cls, environ, project_path=".", build_config=None, **overrides):
        """Precedence: explicit overrides, then the environment, then the
        ``[build]`` table of the project file, then defaults."""
        build_config = build_config or {}

        def pick(key, env_name=None, default=None):
            if overrides.get(key) is not None:
                return overrides[key]
            if env_name and environ.get(env_name):
                return environ[env_name]
            if build_config.get(key) is not None:
                return build_config[key]
            return default

        host = pick("host", ENV_HOST) or default_host_triple()
        target = pick("target", ENV_TARGET) or host
        out_dir = pick("out_dir", ENV_OUT_DIR) or os.path.join(
            os.path.abspath(project_path), "target", "bindbuilder", "out"
        )
        if not os.path.isabs(out_dir):
            out_dir = os.path.join(os.path.abspath(project_path), out_dir)

        return cls(
            target=target,
            host=host,
            profile=Profile.parse(pick("profile", ENV_PROFILE, "Release")),
            out_dir=out_dir,
            target_dir=pick("target_dir", ENV_TARGET_DIR),
            binary_dir=pick("binary_dir"),
            clone_root=pick("clone_root"),
            generator=pick("generator"),
            toolset=pick("toolset"),
            cmake=pick("cmake", ENV_CMAKE, "cmake"),
            git=pick("git", ENV_GIT, "git"),
            process_env=dict(environ),
        )


def load_config(path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    logger.info(f"Loading configuration from {config_path}")
    if os.path.exists(config_path):
        try:
            with open(config_path, "r") as f:
                return toml.load(f)
        except toml.TomlDecodeError as e:
            logger.error(f"Error decoding TOML file at {config_path}: {e}")
            logger.info("Please check the file's format for syntax errors.")
        except IOError as e:
            logger.error(f"Error reading configuration file at {config_path}: {e}")
            logger.info("Please check file permissions.")
    return {}


def require_config(path="."):
    """Like load_config, but a missing or unreadable project file is an error."""
    conf = load_config(path)
    if not conf:
        raise ConfigError(
            f"No {CONFIG_FILE} found in {os.path.abspath(path)}.",
            hint="Run 'bindbuilder init' to create a new project configuration.",
        )
    return conf


def save_config(config, path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    logger.info(f"Saving configuration to {config_path}")
    try:
        with open(config_path, "w") as f:
            toml.dump(config, f)
        return True
    except IOError as e:
        logger.error(f"Error saving configuration to {config_path}: {e}")
        logger.info("Please check file permissions and ensure the directory is writable.")
        return False


def default_config(name):
    """Starter project file written by ``bindbuilder init``."""
    return {
        "project": {"name": name},
        "build": {"profile": "Release"},
    }
