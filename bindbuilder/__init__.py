"""Fetch, build and link native CMake dependencies."""

from .builder import (
    ArchiveSource,
    BuildResult,
    BuildSpec,
    ConfiguredBuild,
    GitSource,
    PathSource,
    PrebuiltBuild,
    build,
    build_dependency,
    configure,
    from_build_directory,
    install,
)
from .config import BuildEnvironment, Profile
from .downloader import AcquiredRepository, acquire_repository
from .errors import BindBuilderError
from .library import LibraryDescriptor
from .linker import DirectiveEmitter, LinkPlan, resolve
from .utils import LibraryKind, Platform, resolve_build_root, resolve_platform
