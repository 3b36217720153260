from .command_executor import run_shell_command, combine_output, format_command
from .configure_resolver import resolve_cmake_commands, resolve_build_target, DEFAULT_BUILD_TARGET
from .file_manager import download_and_extract, extract
from .platform_resolver import (
    Platform,
    LibraryKind,
    resolve_platform,
    static_extension,
    shared_extension,
    library_file_name,
)
from .target_dir_resolver import resolve_build_root, mark_build_root
