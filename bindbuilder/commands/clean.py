import click
import shutil
import os
import glob
from .. import config as config_module
from .. import builder
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..dependencies import get_dependencies


def _scratch_directories(directory):
    pattern = os.path.join(glob.escape(directory), f"{builder.SCRATCH_DIR_PREFIX}-*")
    return [path for path in glob.glob(pattern) if os.path.isdir(path)]


def _paths_to_clean(dependency, env):
    if dependency.build_dir:
        return _scratch_directories(dependency.build_dir)
    source = dependency.spec.source
    if isinstance(source, builder.PathSource):
        return _scratch_directories(source.path)
    # Acquired sources hold their own scratch directories.
    acquired = os.path.join(env.sources_directory(), dependency.name)
    return [acquired] if os.path.isdir(acquired) else []


@click.command()
@click.argument("names", nargs=-1)
@click.pass_context
@handle_exceptions
def clean(ctx, names):
    """Remove scratch directories and acquired sources.

    NAMES: Dependencies to clean (default: all).
    """
    path = ctx.obj["path"]
    conf = config_module.require_config(path)
    env = config_module.BuildEnvironment.from_environ(
        os.environ, project_path=path, build_config=conf.get("build", {})
    )
    logger.info("Cleaning build artifacts and acquired sources...")

    items_removed = 0
    for dependency in get_dependencies(conf, project_path=path, names=names):
        for directory in _paths_to_clean(dependency, env):
            logger.info(f"Attempting to remove directory {directory}...")
            try:
                shutil.rmtree(directory)
                logger.success(f"Removed directory {directory}")
                items_removed += 1
            except OSError as e:
                logger.error(f"Error removing directory {directory}: {e}")
                logger.info("Please check file permissions and ensure the directory is not in use.")

    if items_removed > 0:
        logger.success(f"Cleaning complete. Removed {items_removed} items.")
    else:
        logger.info("Project is already clean.")
