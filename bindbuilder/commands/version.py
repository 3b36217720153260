import click
import importlib.metadata
from ..cli_logger import logger


@click.command()
def version():
    """Print the version of the bindbuilder tool."""
    try:
        ver = importlib.metadata.version("bindbuilder")
        logger.info(f"bindbuilder version {ver}")
    except importlib.metadata.PackageNotFoundError:
        logger.error("Error: Could not determine the version of bindbuilder. Is it installed correctly?")
