import platform as _host_platform
import sys
from enum import Enum

from ..errors import UnsupportedPlatform

LIBRARY_NAME_PREFIX = "lib"


class Platform(Enum):
    WINDOWS = "windows"
    LINUX = "linux"
    MACOS = "macos"


class LibraryKind(Enum):
    STATIC = "static"
    SHARED = "shared"
    UNRESOLVED = "unresolved"


# Checked in order; the first substring found in the target triple wins.
TRIPLE_MARKERS = (
    ("windows", Platform.WINDOWS),
    ("linux", Platform.LINUX),
    ("apple-darwin", Platform.MACOS),
)

STATIC_EXTENSIONS = {
    Platform.WINDOWS: ".lib",
    Platform.LINUX: ".a",
    Platform.MACOS: ".a",
}

SHARED_EXTENSIONS = {
    Platform.WINDOWS: ".dll",
    Platform.LINUX: ".so",
    Platform.MACOS: ".dylib",
}

# Values for CMAKE_SYSTEM_NAME when cross compiling.
CMAKE_SYSTEM_NAMES = {
    Platform.WINDOWS: "Windows",
    Platform.LINUX: "Linux",
    Platform.MACOS: "Darwin",
}


def resolve_platform(target_triple: str) -> Platform:
    for marker, resolved in TRIPLE_MARKERS:
        if marker in target_triple:
            return resolved
    raise UnsupportedPlatform(
        f"Platform not supported: {target_triple}",
        hint="Target triples must mention 'windows', 'linux' or 'apple-darwin'.",
    )


def static_extension(platform: Platform) -> str:
    return STATIC_EXTENSIONS[platform]


def shared_extension(platform: Platform) -> str:
    return SHARED_EXTENSIONS[platform]


def library_file_name(platform: Platform, base_name: str, kind: LibraryKind) -> str:
    """Conventional on-disk file name of a library.

    Windows has no naming convention, so the ``lib`` prefix is omitted there:
    ``foo`` is ``foo.lib`` on Windows but ``libfoo.a`` on Linux.
    """
    if kind == LibraryKind.STATIC:
        extension = static_extension(platform)
    elif kind == LibraryKind.SHARED:
        extension = shared_extension(platform)
    else:
        raise ValueError(f"No file name for library kind: {kind}")

    if platform == Platform.WINDOWS:
        return f"{base_name}{extension}"
    return f"{LIBRARY_NAME_PREFIX}{base_name}{extension}"


def system_name(platform: Platform) -> str:
    return CMAKE_SYSTEM_NAMES[platform]


def triple_architecture(target_triple: str) -> str:
    return target_triple.split("-", 1)[0]


def default_host_triple():
    """Best-effort triple for the interpreter running bindbuilder."""
    machine = _host_platform.machine().lower() or "unknown"
    machine = {"amd64": "x86_64", "arm64": "aarch64"}.get(machine, machine)

    if sys.platform.startswith("win"):
        return f"{machine}-pc-windows-msvc"
    if sys.platform == "darwin":
        return f"{machine}-apple-darwin"
    if sys.platform.startswith("linux"):
        return f"{machine}-unknown-linux-gnu"
    raise UnsupportedPlatform(f"Platform not supported: {sys.platform}")
