import os

from .errors import PathNotFound
from .utils import DEFAULT_BUILD_TARGET

DEFAULT_INCLUDE_DIRECTORIES = ("include",)
DEFAULT_LIBRARY_DIRECTORIES = ("lib", "lib64")


def _dedupe(items):
    seen = set()
    unique = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


class LibraryDescriptor:
    """Headers and libraries of one installed dependency.

    Directories are stored as candidates; only the ones that exist on disk are
    reported by :meth:`include_directories` and :meth:`library_directories`.
    """

    def __init__(self, install_dir, relative_rpath=False):
        self.install_dir = os.path.abspath(install_dir)
        self.relative_rpath = relative_rpath
        self._include_candidates = []
        self._library_candidates = []
        self._link_targets = []
        self._system_link_targets = []

        for directory in DEFAULT_INCLUDE_DIRECTORIES:
            self.add_include_directory(directory)
        for directory in DEFAULT_LIBRARY_DIRECTORIES:
            self.add_library_directory(directory)

    @classmethod
    def from_build_result(cls, result, relative_rpath=False):
        if not os.path.isdir(result.install_dir):
            raise PathNotFound(
                f"Could not find install directory {result.install_dir}, is {result.name} built?"
            )
        descriptor = cls(result.install_dir, relative_rpath=relative_rpath)
        if result.build_target.lower() != DEFAULT_BUILD_TARGET:
            descriptor.link_target(result.build_target)
        return descriptor

    def add_include_directory(self, path):
        """``path`` is relative to the install directory unless absolute."""
        self._include_candidates.append(os.path.join(self.install_dir, path))
        return self

    def add_library_directory(self, path):
        self._library_candidates.append(os.path.join(self.install_dir, path))
        return self

    def link_target(self, name):
        self._link_targets.append(name)
        return self

    def link_system_target(self, name):
        self._system_link_targets.append(name)
        return self

    def include_directories(self):
        return [d for d in _dedupe(map(os.path.normpath, self._include_candidates)) if os.path.isdir(d)]

    def library_directories(self):
        return [d for d in _dedupe(map(os.path.normpath, self._library_candidates)) if os.path.isdir(d)]

    @property
    def link_targets(self):
        return _dedupe(self._link_targets)

    @property
    def system_link_targets(self):
        return _dedupe(self._system_link_targets)

    def __repr__(self):
        return (
            f"LibraryDescriptor({self.install_dir!r}, link_targets={self.link_targets!r}, "
            f"system_link_targets={self.system_link_targets!r})"
        )
