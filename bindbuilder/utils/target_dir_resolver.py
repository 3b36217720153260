import os
from collections import namedtuple

from ..cli_logger import logger
from ..errors import MalformedBuildPath

BuildRootMarkers = namedtuple("BuildRootMarkers", ["sentinel", "cache_tag", "root_name", "manifest"])

DEFAULT_MARKERS = BuildRootMarkers(
    sentinel=".bindbuilder_info.json",
    cache_tag="CACHEDIR.TAG",
    root_name="target",
    manifest="bindbuilder.toml",
)

CACHEDIR_TAG_CONTENT = (
    "Signature: 8a477f597d28d172789f06886806bc55\n"
    "# This file is a cache directory tag created by bindbuilder.\n"
    "# For information about cache directory tags see https://bford.info/cachedir/\n"
)


def _is_build_root(directory, markers):
    if os.path.isfile(os.path.join(directory, markers.sentinel)):
        return True
    if os.path.isfile(os.path.join(directory, markers.cache_tag)):
        return True
    parent = os.path.dirname(directory)
    return (
        os.path.basename(directory) == markers.root_name
        and os.path.isfile(os.path.join(parent, markers.manifest))
    )


def _climb(start, markers):
    directory = start
    while True:
        if _is_build_root(directory, markers):
            return directory
        parent = os.path.dirname(directory)
        if parent == directory:
            return None
        directory = parent


def resolve_build_root(out_dir, markers=DEFAULT_MARKERS, explicit=None, canonicalize=True):
    """Find the shared build root that ``out_dir`` is nested under.

    Only a deeply nested working directory is known here, so the walk climbs
    parent directories until one carries a build-root marker. Sibling
    libraries built in the same run end up in the same root.

    An absolute ``explicit`` directory short-circuits the search; a relative
    one cannot be anchored, so ``out_dir`` itself is used. When the
    walk fails, it is retried once from the canonical form of ``out_dir``
    (unless ``canonicalize`` is off, as on Windows targets).
    """
    if explicit:
        if os.path.isabs(explicit):
            return explicit
        logger.warning(f"Ignoring relative target directory '{explicit}', using {out_dir} as the build root.")
        return os.path.abspath(out_dir)

    root = _climb(os.path.abspath(out_dir), markers)
    if root is not None:
        return root

    if canonicalize and os.path.exists(out_dir):
        canonical = os.path.realpath(out_dir)
        logger.debug(f"Retrying build root search from canonical path {canonical}")
        root = _climb(canonical, markers)
        if root is not None:
            return root

    raise MalformedBuildPath(
        f"Could not find a build root above {out_dir}",
        hint=(
            f"Expected a directory containing '{markers.sentinel}' or '{markers.cache_tag}', "
            f"or a '{markers.root_name}' directory next to '{markers.manifest}'."
        ),
    )


def mark_build_root(path, markers=DEFAULT_MARKERS):
    """Tag ``path`` as a build root so later and sibling builds agree on it."""
    os.makedirs(path, exist_ok=True)
    tag_path = os.path.join(path, markers.cache_tag)
    if not os.path.exists(tag_path):
        with open(tag_path, "w") as f:
            f.write(CACHEDIR_TAG_CONTENT)
    return tag_path
