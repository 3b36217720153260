import subprocess
import shlex
from ..cli_logger import logger


def format_command(command):
    return shlex.join(str(part) for part in command)


def run_shell_command(command, stream_output=False, env=None, cwd=None):
    """
    Executes a command and waits for it to exit.

    Output is decoded as UTF-8 and undecodable bytes become U+FFFD.

    Args:
        command (list): The command to execute as a list of strings.
        stream_output (bool): If True, echoes the output line by line while the
            command runs. stderr is merged into stdout in that mode.
        env (dict, optional): A dictionary of environment variables.
        cwd (str, optional): The working directory for the command.

    Returns:
        A tuple (stdout, stderr, return_code).

    Raises:
        FileNotFoundError: If the executable cannot be found. Callers map this
            to the error naming the tool they expected.
    """
    command = [str(part) for part in command]
    logger.debug(f"Running: {format_command(command)}" + (f" (in {cwd})" if cwd else ""))

    if stream_output:
        process = subprocess.Popen(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            bufsize=1,
            encoding="utf-8",
            errors="replace",
            env=env,
            cwd=cwd
        )
        lines = []
        for line in process.stdout:
            lines.append(line)
            logger.step_info(line.rstrip(), indent=4)
        process.wait()
        return "".join(lines), "", process.returncode

    result = subprocess.run(
        command,
        capture_output=True,
        encoding="utf-8",
        errors="replace",
        env=env,
        check=False,
        cwd=cwd
    )
    return result.stdout, result.stderr, result.returncode


def combine_output(stdout, stderr):
    """Joins captured streams for error reports, skipping empty ones."""
    parts = []
    if stdout and stdout.strip():
        parts.append(f"Stdout:\n{stdout.rstrip()}")
    if stderr and stderr.strip():
        parts.append(f"Stderr:\n{stderr.rstrip()}")
    return "\n".join(parts)
