import os
import shutil
import sys
from dataclasses import dataclass, field
from typing import List, Optional

import click

from .cli_logger import logger
from .errors import MissingSharedObject, NoLinkableTargets
from .utils import LibraryKind, Platform, library_file_name

DIRECTIVE_PREFIX = "bindbuilder:"

RELATIVE_RPATH_ARGS = {
    Platform.LINUX: "-Wl,-rpath,$ORIGIN",
    Platform.MACOS: "-Wl,-rpath,@loader_path",
}


class DirectiveEmitter:
    """Prints linker metadata for the consuming compiler front-end, one directive per line."""

    def __init__(self, stream=None, prefix=DIRECTIVE_PREFIX):
        self.stream = stream
        self.prefix = prefix

    def _emit(self, directive):
        click.echo(f"{self.prefix}{directive}", file=self.stream or sys.stdout)

    def include(self, path):
        self._emit(f"include={path}")

    def search_path(self, path):
        self._emit(f"link-search=native={path}")

    def link_static(self, name):
        self._emit(f"link-lib=static={name}")

    def link_shared(self, name):
        self._emit(f"link-lib=dylib={name}")

    def link_arg(self, arg):
        self._emit(f"link-arg={arg}")

    def warning(self, message):
        self._emit(f"warning={message}")


@dataclass(frozen=True)
class LinkEntry:
    name: str
    kind: LibraryKind
    path: Optional[str] = None


@dataclass
class LinkPlan:
    include_directories: List[str] = field(default_factory=list)
    library_directories: List[str] = field(default_factory=list)
    entries: List[LinkEntry] = field(default_factory=list)
    system_entries: List[LinkEntry] = field(default_factory=list)
    link_args: List[str] = field(default_factory=list)

    def of_kind(self, kind):
        return [entry for entry in self.entries if entry.kind == kind]

    def entry(self, name):
        for candidate in self.entries + self.system_entries:
            if candidate.name == name:
                return candidate
        return None

    def emit(self, emitter):
        """Order: includes, search paths, static, shared, system shared, link args."""
        for directory in self.include_directories:
            emitter.include(directory)
        for directory in self.library_directories:
            emitter.search_path(directory)
        for entry in self.of_kind(LibraryKind.STATIC):
            emitter.link_static(entry.name)
        for entry in self.of_kind(LibraryKind.SHARED):
            emitter.link_shared(entry.name)
        for entry in self.system_entries:
            emitter.link_shared(entry.name)
        for arg in self.link_args:
            emitter.link_arg(arg)


def _find_library(name, kind, library_directories, platform):
    file_name = library_file_name(platform, name, kind)
    for directory in library_directories:
        candidate = os.path.join(directory, file_name)
        if os.path.isfile(candidate):
            return candidate
    return None


def resolve_link_target(name, library_directories, platform):
    """Static is preferred globally: every library directory is searched for
    the static artifact before any directory is searched for the shared one."""
    static_path = _find_library(name, LibraryKind.STATIC, library_directories, platform)
    if static_path:
        return LinkEntry(name, LibraryKind.STATIC, static_path)
    shared_path = _find_library(name, LibraryKind.SHARED, library_directories, platform)
    if shared_path:
        return LinkEntry(name, LibraryKind.SHARED, shared_path)
    return LinkEntry(name, LibraryKind.UNRESOLVED)


def copy_shared_object(target_directory, library_path):
    os.makedirs(target_directory, exist_ok=True)
    if not os.path.isfile(library_path):
        raise MissingSharedObject(f"Could not find shared object: {library_path}")
    destination = os.path.join(target_directory, os.path.basename(library_path))
    shutil.copy2(library_path, destination)
    logger.info(f"  - Copied {os.path.basename(library_path)} to {target_directory}")
    return destination


def resolve(descriptor, env, emitter=None, copy_shared=True):
    """Decide how to link every target of ``descriptor`` and emit the result.

    Shared artifacts are copied into the environment's binary directory so
    they sit next to the final executable. Raises NoLinkableTargets when link
    targets were declared but none of them could be found.
    """
    platform = env.platform
    plan = LinkPlan(
        include_directories=descriptor.include_directories(),
        library_directories=descriptor.library_directories(),
    )

    for name in descriptor.link_targets:
        plan.entries.append(resolve_link_target(name, plan.library_directories, platform))

    unresolved = [entry.name for entry in plan.of_kind(LibraryKind.UNRESOLVED)]
    if plan.entries and len(unresolved) == len(plan.entries):
        raise NoLinkableTargets(
            f"None of the link targets {', '.join(unresolved)} were found under {descriptor.install_dir}",
            hint="Searched: " + (", ".join(plan.library_directories) or "no existing library directories"),
        )

    if copy_shared:
        binary_directory = None
        for entry in plan.of_kind(LibraryKind.SHARED):
            binary_directory = binary_directory or env.binary_directory()
            copy_shared_object(binary_directory, entry.path)

    for name in descriptor.system_link_targets:
        plan.system_entries.append(LinkEntry(name, LibraryKind.SHARED))

    if descriptor.relative_rpath and platform in RELATIVE_RPATH_ARGS:
        plan.link_args.append(RELATIVE_RPATH_ARGS[platform])

    for name in unresolved:
        logger.warning(f"Link target '{name}' was not found and will not be linked.")
        if emitter is not None:
            emitter.warning(f"bindbuilder could not find library '{name}'")

    if emitter is not None:
        plan.emit(emitter)

    return plan
