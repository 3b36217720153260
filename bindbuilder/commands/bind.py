import click
import os
from .. import config as config_module
from .. import linker
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..errors import PathNotFound
from ..library import LibraryDescriptor


@click.command()
@click.argument("install_dir", type=click.Path())
@click.option("--link", "-l", "link_targets", multiple=True, help="Library to link (static preferred over shared).")
@click.option("--system", "-s", "system_targets", multiple=True, help="System library to link dynamically.")
@click.option("--include-dir", "include_dirs", multiple=True, help="Extra include directory, relative to INSTALL_DIR.")
@click.option("--lib-dir", "lib_dirs", multiple=True, help="Extra library directory, relative to INSTALL_DIR.")
@click.option("--rpath", is_flag=True, help="Let the final binary find shared libraries next to itself.")
@click.option("--target", "target_triple", default=None, help="Target triple (e.g., x86_64-pc-windows-msvc).")
@click.option("--binary-dir", default=None, help="Where shared libraries are copied (default: the build root).")
@click.option("--no-copy", is_flag=True, help="Do not copy shared libraries.")
@click.option("--output", "-o", type=click.File("w"), default="-", help="Where to write linker directives (default: stdout).")
@click.pass_context
@handle_exceptions
def bind(ctx, install_dir, link_targets, system_targets, include_dirs, lib_dirs, rpath,
         target_triple, binary_dir, no_copy, output):
    """Print linker directives for an already installed library.

    INSTALL_DIR: Install prefix of the library (containing include/ and lib/).
    """
    if not os.path.isdir(install_dir):
        raise PathNotFound(f"Install directory not found: {install_dir}")

    conf = config_module.load_config(path=ctx.obj["path"])
    env = config_module.BuildEnvironment.from_environ(
        os.environ,
        project_path=ctx.obj["path"],
        build_config=conf.get("build", {}),
        target=target_triple,
        binary_dir=binary_dir,
    )

    descriptor = LibraryDescriptor(install_dir, relative_rpath=rpath)
    for directory in include_dirs:
        descriptor.add_include_directory(directory)
    for directory in lib_dirs:
        descriptor.add_library_directory(directory)
    for name in link_targets:
        descriptor.link_target(name)
    for name in system_targets:
        descriptor.link_system_target(name)

    plan = linker.resolve(descriptor, env, emitter=linker.DirectiveEmitter(stream=output), copy_shared=not no_copy)
    for entry in plan.entries:
        logger.info(f"  - {entry.name}: {entry.kind.value}" + (f" ({entry.path})" if entry.path else ""))
