import os
import shutil
from dataclasses import dataclass

from .cli_logger import logger
from .errors import VcsToolMissing, VcsOperationFailed
from .utils import download_and_extract, run_shell_command, combine_output, format_command
from .utils.file_manager import archive_base_name, single_top_level_directory

REMOTE_NAME = "origin"
PARTIAL_SUFFIX = ".partial"


@dataclass(frozen=True)
class AcquiredRepository:
    path: str
    fresh_clone: bool

    def __fspath__(self):
        return self.path


def _run_git(git, args, cwd, env=None):
    command = [git] + list(args)
    logger.info(f"  - Running git: {format_command(command)}")
    try:
        stdout, stderr, returncode = run_shell_command(command, env=env, cwd=cwd)
    except FileNotFoundError as e:
        raise VcsToolMissing(
            f"Could not run '{git}', is git installed?",
            hint="Install git or point the GIT environment variable at it.",
        ) from e
    if returncode != 0:
        raise VcsOperationFailed(
            f"git {args[0]} failed in {cwd} (Exit Code: {returncode})",
            output=combine_output(stdout, stderr),
        )
    return stdout


def _fetch_and_reset(git, ref, working_copy, env, shallow):
    fetch_args = ["fetch", REMOTE_NAME, ref]
    if shallow:
        fetch_args[1:1] = ["--depth", "1"]
    _run_git(git, fetch_args, working_copy, env)
    # FETCH_HEAD is the commit just fetched for ref, whether ref is a branch or a tag.
    _run_git(git, ["reset", "--hard", "FETCH_HEAD"], working_copy, env)
    _run_git(git, ["submodule", "update", "--init", "--recursive"], working_copy, env)


def acquire_repository(id, url, ref, destination_root, git="git", env=None, shallow=False):
    """Ensure ``destination_root/id`` is a working copy of ``url`` at ``ref``.

    A missing working copy is initialised and fetched rather than cloned so
    only ``ref`` is pulled. An existing one is fetched and hard reset, which
    discards local modifications. Sub-repositories are always updated.
    """
    working_copy = os.path.join(os.path.abspath(destination_root), id)
    fresh_clone = not os.path.exists(working_copy)

    if not fresh_clone:
        logger.info(f"Updating existing working copy of {id} to {ref}...")
        _fetch_and_reset(git, ref, working_copy, env, shallow)
    else:
        logger.info(f"Cloning {id} from {url} at {ref}...")
        os.makedirs(working_copy)
        try:
            _run_git(git, ["init"], working_copy, env)
            _run_git(git, ["remote", "add", REMOTE_NAME, url], working_copy, env)
            _fetch_and_reset(git, ref, working_copy, env, shallow)
        except BaseException:
            # A half-initialised working copy would be mistaken for a reusable one next run.
            shutil.rmtree(working_copy, ignore_errors=True)
            raise

    logger.success(f"{id} is at {ref} in {working_copy}")
    return AcquiredRepository(path=working_copy, fresh_clone=fresh_clone)


def clone_repository(id, url, ref, destination_root, git="git", env=None, shallow=True):
    """One-shot ``git clone --branch ref --recurse``; an existing destination is reused as is."""
    destination_root = os.path.abspath(destination_root)
    working_copy = os.path.join(destination_root, id)
    if os.path.exists(working_copy):
        logger.info(f"Reusing existing clone of {id} at {working_copy}")
        return AcquiredRepository(path=working_copy, fresh_clone=False)

    os.makedirs(destination_root, exist_ok=True)
    args = ["clone", url]
    if shallow:
        args += ["--depth", "1"]
    args += ["--branch", ref, "--recurse", id]
    _run_git(git, args, destination_root, env)
    return AcquiredRepository(path=working_copy, fresh_clone=True)


def download_archive_source(id, url, destination_root, verbose=False):
    """
    Downloads a source archive and extracts it under ``destination_root/id``.

    An existing extraction is reused. The archive is downloaded and extracted
    into a ``.partial`` sibling that is renamed into place once extraction
    finishes; an interrupted run leaves nothing at ``destination_root/id``.
    Returns the project directory, which is the archive's single top-level
    folder when it has one.
    """
    extract_dir = os.path.join(os.path.abspath(destination_root), id)
    if os.path.isdir(extract_dir) and os.listdir(extract_dir):
        logger.info(f"Reusing extracted sources of {id} at {extract_dir}")
        return AcquiredRepository(path=single_top_level_directory(extract_dir), fresh_clone=False)

    logger.info(f"  - Downloading {id} from URL: {url}...")
    filename = os.path.basename(url.split("?", 1)[0]) or f"{id}.archive"
    partial_dir = extract_dir + PARTIAL_SUFFIX
    shutil.rmtree(partial_dir, ignore_errors=True)
    try:
        download_and_extract(url, partial_dir, filename, verbose=verbose)
    except BaseException:
        shutil.rmtree(partial_dir, ignore_errors=True)
        raise

    if os.path.isdir(extract_dir):
        os.rmdir(extract_dir)
    os.replace(partial_dir, extract_dir)
    logger.success(f"    - {archive_base_name(filename)} ready in {extract_dir}")
    return AcquiredRepository(path=single_top_level_directory(extract_dir), fresh_clone=True)
