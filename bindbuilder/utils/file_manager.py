import os
import requests
import zipfile
import tarfile
import shutil
import contextlib
from ..cli_logger import logger
from ..errors import DownloadFailed

ARCHIVE_EXTENSIONS = (".tar.gz", ".tar.bz2", ".tar.xz", ".tgz", ".tbz2", ".txz", ".zip")

# -------------------- Helpers: safe paths & extraction --------------------


def _safe_join(base, *paths):
    """Safely join paths, preventing path traversal attacks."""
    base = os.path.abspath(base)
    final = os.path.abspath(os.path.join(base, *paths))
    if not final.startswith(base + os.sep) and final != base:
        raise IOError(f"Unsafe path detected: {final}")
    return final


def _safe_extract_zip(zip_ref: zipfile.ZipFile, dest_dir: str, log_each=False):
    """Safely extract a zip file, preventing zip slip attacks."""
    for member in zip_ref.infolist():
        target_path = _safe_join(dest_dir, member.filename)
        if member.is_dir():
            if log_each:
                logger.step_info(f"creating: {member.filename}", indent=3)
            os.makedirs(target_path, exist_ok=True)
            continue
        os.makedirs(os.path.dirname(target_path), exist_ok=True)
        if log_each:
            logger.step_info(f"extracting: {member.filename}", indent=2)
        with zip_ref.open(member, 'r') as src, open(target_path, 'wb') as out:
            shutil.copyfileobj(src, out)
        # Preserve file permissions
        mode = member.external_attr >> 16
        if mode:
            os.chmod(target_path, mode)


def _safe_extract_tar(tar_ref: tarfile.TarFile, dest_dir: str, log_each=False):
    """Safely extract a tar file, preventing path traversal attacks."""
    for member in tar_ref.getmembers():
        member_path = _safe_join(dest_dir, member.name)
        if member.isdir():
            if log_each:
                logger.step_info(f"creating: {member.name}", indent=3)
            os.makedirs(member_path, exist_ok=True)
            continue
        os.makedirs(os.path.dirname(member_path), exist_ok=True)
        if log_each:
            logger.step_info(f"extracting: {member.name}", indent=2)
        src = tar_ref.extractfile(member)
        if src is None:
            # links and special files carry no data
            continue
        with src as src_file:
            with open(member_path, "wb") as out:
                shutil.copyfileobj(src_file, out)
        if member.mode:
            os.chmod(member_path, member.mode)


def archive_base_name(url_or_filename):
    """``https://x/zlib-1.3.tar.gz`` -> ``zlib-1.3``."""
    filename = os.path.basename(url_or_filename.split("?", 1)[0])
    for ext in ARCHIVE_EXTENSIONS:
        if filename.endswith(ext):
            return filename[:-len(ext)]
    return os.path.splitext(filename)[0]


def extract(filepath, dest_dir, verbose=False):
    """Extracts an archive file to a destination directory and removes the archive."""
    os.makedirs(dest_dir, exist_ok=True)
    filename = os.path.basename(filepath)

    try:
        if tarfile.is_tarfile(filepath):
            with tarfile.open(filepath, 'r:*') as tar:
                _safe_extract_tar(tar, dest_dir, log_each=verbose)
        elif zipfile.is_zipfile(filepath):
            with zipfile.ZipFile(filepath, 'r') as zip_ref:
                _safe_extract_zip(zip_ref, dest_dir, log_each=verbose)
        else:
            raise DownloadFailed(f"Unsupported archive type for {filename}.")
    except (zipfile.BadZipFile, tarfile.TarError, IOError) as e:
        raise DownloadFailed(f"Error extracting {filename}: {e}") from e

    with contextlib.suppress(OSError):
        os.remove(filepath)

    logger.success(f"Successfully extracted to {dest_dir}")
    return dest_dir


def single_top_level_directory(directory):
    """Source archives usually wrap everything in one folder; return it if so."""
    entries = [e for e in os.listdir(directory) if not e.startswith(".")]
    if len(entries) == 1 and os.path.isdir(os.path.join(directory, entries[0])):
        return os.path.join(directory, entries[0])
    return directory

# -------------------- Download & Extract --------------------


def download_and_extract(url, dest_dir, filename=None, timeout=60, verbose=False):
    """Download and extract a file to a destination directory."""
    os.makedirs(dest_dir, exist_ok=True)
    if filename is None:
        filename = url.split('/')[-1]
    filepath = os.path.join(dest_dir, filename)
    temp_filepath = filepath + ".tmp"

    try:
        with requests.get(url, stream=True, timeout=timeout) as r:
            r.raise_for_status()
            total_size = int(r.headers.get('content-length', 0))

            with open(temp_filepath, 'wb') as f:
                chunks = logger.progress(
                    r.iter_content(chunk_size=1024 * 256),  # 256KB chunks
                    description=f"Downloading {filename}",
                    total=total_size,
                    unit="b"
                )
                for chunk in chunks:
                    if chunk:  # keep-alive chunks may be empty
                        f.write(chunk)
        # Atomic rename
        os.replace(temp_filepath, filepath)
    except (requests.exceptions.RequestException, OSError) as e:
        with contextlib.suppress(OSError):
            if os.path.exists(temp_filepath):
                os.remove(temp_filepath)
        raise DownloadFailed(f"Error downloading {url}: {e}") from e

    logger.step_info(f"Archive:  {filename}")

    return extract(filepath, dest_dir, verbose=verbose)
