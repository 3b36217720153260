import os
from dataclasses import dataclass, field
from typing import List, Optional

from . import builder
from . import linker
from .cli_logger import logger
from .config import Profile
from .errors import ConfigError
from .library import LibraryDescriptor

SOURCE_KEYS = ("git", "archive", "path", "build_dir")

LIST_KEYS = (
    "cflags", "cxxflags", "asmflags", "configure_args", "build_args",
    "link_targets", "system_link_targets", "include_dirs", "lib_dirs", "register_deps",
)
TABLE_KEYS = ("defines", "env")


@dataclass
class Dependency:
    """One ``[[dependency]]`` entry of bindbuilder.toml."""

    name: str
    spec: Optional[builder.BuildSpec] = None
    build_dir: Optional[str] = None
    profile: Optional[Profile] = None
    link_targets: List[str] = field(default_factory=list)
    system_link_targets: List[str] = field(default_factory=list)
    include_dirs: List[str] = field(default_factory=list)
    lib_dirs: List[str] = field(default_factory=list)
    register_deps: List[str] = field(default_factory=list)
    relative_rpath: bool = False


def _check_types(name, entry):
    for key in LIST_KEYS:
        value = entry.get(key, [])
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"Dependency '{name}': '{key}' must be a list of strings.")
    for key in TABLE_KEYS:
        if not isinstance(entry.get(key, {}), dict):
            raise ConfigError(f"Dependency '{name}': '{key}' must be a table.")


def _source_from(name, entry, project_path):
    present = [key for key in SOURCE_KEYS if key in entry]
    if len(present) != 1:
        raise ConfigError(
            f"Dependency '{name}' must set exactly one of {', '.join(SOURCE_KEYS)}"
            + (f" (found: {', '.join(present)})." if present else "."),
        )
    kind = present[0]
    if kind == "git":
        if not entry.get("ref"):
            raise ConfigError(f"Dependency '{name}': a git source needs a 'ref' (tag, branch or commit).")
        return builder.GitSource(
            entry["git"], str(entry["ref"]),
            shallow=bool(entry.get("shallow", False)), clone=bool(entry.get("clone", False)),
        )
    if kind == "archive":
        return builder.ArchiveSource(entry["archive"])

    path = entry[kind]
    if not os.path.isabs(path):
        path = os.path.join(os.path.abspath(project_path), path)
    return builder.PathSource(path)


def parse_dependency(entry, project_path="."):
    """Turns a raw TOML table into a Dependency; raises ConfigError when malformed."""
    if not isinstance(entry, dict):
        raise ConfigError(f"Each [[dependency]] must be a table, got {entry!r}.")
    name = entry.get("name")
    if not name:
        raise ConfigError("Every [[dependency]] needs a 'name'.")
    _check_types(name, entry)

    source = _source_from(name, entry, project_path)
    profile = Profile.parse(entry["profile"]) if entry.get("profile") else None
    dependency = Dependency(
        name=name,
        profile=profile,
        link_targets=list(entry.get("link_targets", [])),
        system_link_targets=list(entry.get("system_link_targets", [])),
        include_dirs=list(entry.get("include_dirs", [])),
        lib_dirs=list(entry.get("lib_dirs", [])),
        register_deps=list(entry.get("register_deps", [])),
        relative_rpath=bool(entry.get("relative_rpath", False)),
    )

    if "build_dir" in entry:
        dependency.build_dir = source.path
        return dependency

    spec = builder.BuildSpec(
        name=name,
        source=source,
        generator=entry.get("generator"),
        toolset=entry.get("toolset"),
        profile=profile,
        build_target=entry.get("build_target"),
        static_crt=entry.get("static_crt"),
        always_configure=bool(entry.get("always_configure", True)),
        very_verbose=bool(entry.get("very_verbose", False)),
    )
    for flag in entry.get("cflags", []):
        spec.cflag(flag)
    for flag in entry.get("cxxflags", []):
        spec.cxxflag(flag)
    for flag in entry.get("asmflags", []):
        spec.asmflag(flag)
    for key, value in entry.get("defines", {}).items():
        spec.define(key, _define_value(value))
    for key, value in entry.get("env", {}).items():
        spec.env_var(key, str(value))
    for arg in entry.get("configure_args", []):
        spec.configure_arg(arg)
    for arg in entry.get("build_args", []):
        spec.build_arg(arg)
    dependency.spec = spec
    return dependency


def _define_value(value):
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    return str(value)


def get_dependencies(conf, project_path=".", names=None, include_registered=False):
    """Dependencies from the project file, in file order, optionally filtered by name.

    With ``include_registered`` the selection also pulls in whatever the named
    dependencies list in ``register_deps``, transitively.
    """
    entries = conf.get("dependency", [])
    if isinstance(entries, dict):
        entries = [entries]
    dependencies = [parse_dependency(entry, project_path) for entry in entries]

    seen = set()
    for dependency in dependencies:
        if dependency.name in seen:
            raise ConfigError(f"Dependency '{dependency.name}' is declared more than once.")
        seen.add(dependency.name)

    if names:
        unknown = sorted(set(names) - seen)
        if unknown:
            raise ConfigError(f"Unknown dependency: {', '.join(unknown)}")
        by_name = {d.name: d for d in dependencies}
        selected = set()
        pending = list(names)
        while pending:
            name = pending.pop()
            if name in selected or name not in by_name:
                continue
            selected.add(name)
            if include_registered:
                pending.extend(by_name[name].register_deps)
        dependencies = [d for d in dependencies if d.name in selected]
    return dependencies


def describe(dependency, result):
    descriptor = LibraryDescriptor.from_build_result(result, relative_rpath=dependency.relative_rpath)
    for directory in dependency.include_dirs:
        descriptor.add_include_directory(directory)
    for directory in dependency.lib_dirs:
        descriptor.add_library_directory(directory)
    for name in dependency.link_targets:
        descriptor.link_target(name)
    for name in dependency.system_link_targets:
        descriptor.link_system_target(name)
    return descriptor


def build_one(dependency, env, built=None, verbose=False):
    """Build or install a single dependency. ``built`` maps names of earlier results for register_deps."""
    built = built or {}
    if dependency.build_dir:
        prebuilt = builder.from_build_directory(dependency.name, dependency.build_dir, env, dependency.profile)
        return builder.install(prebuilt, verbose=verbose)

    for other in dependency.register_deps:
        if other not in built:
            raise ConfigError(
                f"Dependency '{dependency.name}' registers '{other}', which has not been built yet.",
                hint="List registered dependencies before the ones that use them.",
            )
        dependency.spec.register_prefix(built[other].install_dir)
    return builder.build_dependency(dependency.spec, env, verbose=verbose)


def build_dependencies(dependencies, env, emitter=None, verbose=False):
    """Run the whole pipeline for each dependency in order; stops at the first failure."""
    built = {}
    plans = {}
    for dependency in dependencies:
        logger.info(f"Processing dependency: {dependency.name}...")
        result = build_one(dependency, env, built, verbose=verbose)
        built[dependency.name] = result
        plans[dependency.name] = linker.resolve(describe(dependency, result), env, emitter=emitter)
    return built, plans
