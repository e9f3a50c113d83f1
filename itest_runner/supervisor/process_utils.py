import os
import sys
import logging
import threading
import subprocess
from typing import Any, Callable, Dict, List, Mapping, Optional

log = logging.getLogger(__name__)

LineHandler = Callable[[str], None]


def get_popen_creation_flags() -> Dict[str, Any]:
    """
    Returns platform-specific keyword arguments for subprocess.Popen.

    The server runs in its own session (or process group on Windows) so a
    terminal Ctrl-C reaches only the orchestrator, which owns its shutdown.

    :return dict: A dictionary of keyword arguments for Popen.
    """
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def build_child_env(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
    """Returns a copy of the current environment with `overrides` applied as strings."""
    env = dict(os.environ)
    for key, value in (overrides or {}).items():
        env[key] = str(value)
    return env


def _handle_line(proc_logger: logging.Logger, line: str, line_handler: LineHandler) -> None:
    """Hands a line to the custom handler. A failing handler must not kill the reader."""
    try:
        line_handler(line)
    except Exception as e:
        proc_logger.error(f"Error in custom line_handler: {e}", exc_info=True)


def _read_pipe(pipe, process_name: str, log_level: int, line_handler: Optional[LineHandler] = None) -> None:
    """Target function for reader threads. Reads lines from a subprocess pipe."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            if line_handler:
                _handle_line(proc_logger, line, line_handler)
            else:
                proc_logger.log(log_level, line)
    except Exception as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        pipe.close()


def log_process_output(
    process: subprocess.Popen,
    process_name: str,
    stdout_handler: Optional[LineHandler] = None,
    stderr_handler: Optional[LineHandler] = None,
) -> List[threading.Thread]:
    """
    Consumes a process's stdout/stderr in background threads.

    Draining the pipes keeps the child from blocking on a full pipe buffer.
    Lines go to the given handlers, or to the `proc.<name>` logger (stdout at
    INFO, stderr at ERROR) when no handler is given.

    :param process: The `subprocess.Popen` object to read from.
    :param process_name: The logical name of the process for logging context.
    :param stdout_handler: Optional callable receiving each stdout line.
    :param stderr_handler: Optional callable receiving each stderr line.
    :return list: The started reader threads.
    """
    readers = []
    if process.stdout:
        readers.append(threading.Thread(
            target=_read_pipe,
            args=(process.stdout, process_name, logging.INFO, stdout_handler),
            daemon=True,
            name=f"{process_name}-stdout",
        ))
    if process.stderr:
        readers.append(threading.Thread(
            target=_read_pipe,
            args=(process.stderr, process_name, logging.ERROR, stderr_handler),
            daemon=True,
            name=f"{process_name}-stderr",
        ))
    for reader in readers:
        reader.start()
    return readers


def spawn_captured(args: List[str], env: Optional[Mapping[str, Any]] = None, cwd: Optional[str] = None) -> subprocess.Popen:
    """
    Spawns a process with stdout/stderr piped back to the caller.

    :raises OSError: If the executable is missing or cannot be started.
    """
    return subprocess.Popen(
        args,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        stdin=subprocess.DEVNULL,
        env=build_child_env(env),
        cwd=cwd,
        **get_popen_creation_flags(),
    )


def spawn_inherited(args: List[str], env: Optional[Mapping[str, Any]] = None, cwd: Optional[str] = None) -> subprocess.Popen:
    """
    Spawns a process sharing the orchestrator's stdin/stdout/stderr.

    :raises OSError: If the executable is missing or cannot be started.
    """
    return subprocess.Popen(args, env=build_child_env(env), cwd=cwd)
