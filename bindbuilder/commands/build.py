import click
import os
from .. import config as config_module
from ..cli_logger import logger
from ..decorators import handle_exceptions
from .. import dependencies as dependencies_module
from ..linker import DirectiveEmitter
from ..utils import mark_build_root


@click.command()
@click.argument("names", nargs=-1)
@click.option("--profile", default=None, help="Build profile (Debug, Release, RelWithDebInfo, MinSizeRel).")
@click.option("--out-dir", default=None, help="Working output directory; the build root is found above it.")
@click.option("--target", "target_triple", default=None, help="Target triple (e.g., x86_64-unknown-linux-gnu).")
@click.option("--output", "-o", type=click.File("w"), default="-", help="Where to write linker directives (default: stdout).")
@click.option("--verbose", "-v", is_flag=True, help="Stream CMake output while building.")
@click.pass_context
@handle_exceptions
def build(ctx, names, profile, out_dir, target_triple, output, verbose):
    """Build and install dependencies, then print their linker directives.

    NAMES: Dependencies to build (default: all, in file order). Their
    register_deps are built as well.
    """
    path = ctx.obj["path"]
    conf = config_module.require_config(path)
    dependencies = dependencies_module.get_dependencies(
        conf, project_path=path, names=names, include_registered=True
    )
    if not dependencies:
        logger.warning(f"No [[dependency]] entries in {config_module.CONFIG_FILE}, nothing to build.")
        return

    env = config_module.BuildEnvironment.from_environ(
        os.environ,
        project_path=path,
        build_config=conf.get("build", {}),
        profile=profile,
        out_dir=out_dir,
        target=target_triple,
    )
    os.makedirs(env.out_dir, exist_ok=True)
    logger.info(f"Building {len(dependencies)} dependencies for {env.target} ({env.profile.value})")
    root = env.build_root()
    mark_build_root(root)
    logger.info(f"Build root: {root}")

    built, _ = dependencies_module.build_dependencies(dependencies, env, emitter=DirectiveEmitter(stream=output), verbose=verbose)
    logger.success(f"Built {', '.join(built)}.")
