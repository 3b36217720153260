import click
import os
from .. import config as config_module
from .. import builder
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..dependencies import get_dependencies


@click.command()
@click.argument("names", nargs=-1)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
@handle_exceptions
def fetch(ctx, names, verbose):
    """Acquire dependency sources without building them."""
    path = ctx.obj["path"]
    conf = config_module.require_config(path)
    env = config_module.BuildEnvironment.from_environ(
        os.environ, project_path=path, build_config=conf.get("build", {})
    )
    os.makedirs(env.out_dir, exist_ok=True)

    fetched = 0
    for dependency in get_dependencies(conf, project_path=path, names=names):
        if dependency.spec is None or isinstance(dependency.spec.source, builder.PathSource):
            logger.info(f"{dependency.name} is a local directory, nothing to fetch.")
            continue
        _, acquired = builder.acquire_source(dependency.spec, env, verbose=verbose)
        state = "fresh copy" if acquired.fresh_clone else "reused existing copy"
        logger.success(f"{dependency.name}: {acquired.path} ({state})")
        fetched += 1

    if fetched == 0:
        logger.info("No remote sources to fetch.")
