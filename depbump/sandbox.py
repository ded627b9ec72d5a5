"""Sandboxed execution: scratch directories, isolated workers and helpers.

Native resolvers mutate process-wide state (working directory, environment
variables, tool settings). Everything that drives one therefore runs inside
`in_a_temporary_directory` and, where global state is touched, inside
`in_isolated_process` so nothing leaks back into the calling process.
"""

import json
import logging
import multiprocessing
import os
import shutil
import subprocess
import sys
import tempfile
import traceback
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .config import get_settings
from .credentials import sanitize_url
from .errors import ChildProcessFailed, HelperSubprocessFailed

logger = logging.getLogger(__name__)

TMP_DIR_PREFIX = "depbump_"


@contextmanager
def in_a_temporary_directory(root: str | os.PathLike | None = None) -> Iterator[Path]:
    """Yield a fresh directory under the scratch root, removed on exit."""
    scratch_root = Path(root if root is not None else get_settings().scratch_root)
    scratch_root.mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix=TMP_DIR_PREFIX, dir=scratch_root))
    logger.debug("Created sandbox directory %s", path)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        logger.debug("Removed sandbox directory %s", path)


def write_files(directory: Path, files: Mapping[str, str]) -> None:
    """Write `{relative path: content}` pairs below `directory`."""
    for name, content in files.items():
        path = directory / name.lstrip("/")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


def _start_method() -> str:
    methods = multiprocessing.get_all_start_methods()
    return "fork" if "fork" in methods else "spawn"


def _run_isolated(conn, stderr_path: str, fn: Callable, args: tuple, kwargs: dict) -> None:
    with open(stderr_path, "w") as stderr_file:
        os.dup2(stderr_file.fileno(), 2)
        sys.stderr = stderr_file
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:  # reported to the parent as ChildProcessFailed
            traceback.print_exc()
            conn.send(("error", type(exc).__name__, str(exc)))
        else:
            conn.send(("ok", result))
        finally:
            conn.close()


def in_isolated_process(
    fn: Callable[..., Any],
    *args: Any,
    timeout: float | None = None,
    scratch_root: str | os.PathLike | None = None,
    **kwargs: Any,
) -> Any:
    """Run `fn` in a separate process and return its (picklable) result.

    Any exception raised by `fn`, a crash of the worker, or a timeout is
    raised here as `ChildProcessFailed`. The worker's stderr is captured to a
    file under `scratch_root`.
    """
    ctx = multiprocessing.get_context(_start_method())
    receiver, sender = ctx.Pipe(duplex=False)
    stderr_dir = Path(scratch_root if scratch_root is not None else get_settings().scratch_root)
    stderr_dir.mkdir(parents=True, exist_ok=True)
    fd, stderr_path = tempfile.mkstemp(prefix=TMP_DIR_PREFIX, suffix=".stderr", dir=stderr_dir)
    os.close(fd)

    process = ctx.Process(
        target=_run_isolated,
        args=(sender, stderr_path, fn, args, kwargs),
        daemon=True,
    )
    try:
        process.start()
        sender.close()

        if not receiver.poll(timeout):
            process.kill()
            process.join()
            raise ChildProcessFailed(
                "TimeoutError",
                f"isolated process did not finish within {timeout} seconds",
                _read(stderr_path),
            )

        try:
            message = receiver.recv()
        except EOFError:
            process.join()
            raise ChildProcessFailed(
                "ChildProcessCrashed",
                f"isolated process exited with status {process.exitcode}",
                _read(stderr_path),
            ) from None
        process.join()

        if message[0] == "ok":
            return message[1]
        _, error_class, error_message = message
        raise ChildProcessFailed(error_class, error_message, _read(stderr_path))
    finally:
        receiver.close()
        if process.is_alive():
            process.kill()
            process.join()
        os.unlink(stderr_path)


def _read(path: str) -> str:
    with open(path, errors="replace") as handle:
        return handle.read()


def _argv(command: str | Sequence[str]) -> list[str]:
    return command.split() if isinstance(command, str) else list(command)


def run_helper_subprocess(
    command: str | Sequence[str],
    function: str,
    args: Sequence[Any],
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    cwd: str | os.PathLike | None = None,
) -> Any:
    """Call `function` in an out-of-process helper over JSON stdio."""
    argv = _argv(command)
    request = json.dumps({"function": function, "args": list(args)})
    logger.debug("Calling helper %s %s", " ".join(argv), function)

    try:
        process = subprocess.run(
            argv,
            input=request,
            capture_output=True,
            text=True,
            timeout=timeout if timeout is not None else get_settings().subprocess_timeout,
            env={**os.environ, **env} if env else None,
            cwd=cwd,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise HelperSubprocessFailed(
            f"Helper {function} timed out after {e.timeout} seconds",
            stdout=_decode(e.stdout),
            stderr=_decode(e.stderr),
        ) from None
    except OSError as e:
        raise HelperSubprocessFailed(f"Helper {argv[0]} could not be started: {e}") from None

    try:
        response = json.loads(process.stdout)
    except json.JSONDecodeError:
        response = None

    if process.returncode != 0 or not isinstance(response, dict) or "result" not in response:
        message = (
            response.get("error")
            if isinstance(response, dict) and response.get("error")
            else process.stderr.strip() or process.stdout.strip() or f"Helper {function} failed"
        )
        raise HelperSubprocessFailed(
            message,
            stdout=process.stdout,
            stderr=process.stderr,
            exit_status=process.returncode,
        )
    return response["result"]


def run_command(
    command: Sequence[str],
    cwd: str | os.PathLike | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> str:
    """Run a native tool and return its stdout."""
    argv = list(command)
    logger.debug("Running %s", sanitize_url(" ".join(argv)))
    try:
        process = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout if timeout is not None else get_settings().subprocess_timeout,
            env={**os.environ, **env} if env else None,
            cwd=cwd,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise HelperSubprocessFailed(
            f"{argv[0]} timed out after {e.timeout} seconds",
            stdout=_decode(e.stdout),
            stderr=_decode(e.stderr),
        ) from None
    except FileNotFoundError as e:
        raise HelperSubprocessFailed(f"{argv[0]} is not installed: {e}") from None
    except OSError as e:
        raise HelperSubprocessFailed(f"{argv[0]} could not be started: {e}") from None

    if process.returncode != 0:
        output = "\n".join(s for s in (process.stdout.strip(), process.stderr.strip()) if s)
        raise HelperSubprocessFailed(
            output or f"{argv[0]} exited with status {process.returncode}",
            stdout=process.stdout,
            stderr=process.stderr,
            exit_status=process.returncode,
        )
    return process.stdout


def _decode(stream: bytes | str | None) -> str:
    if stream is None:
        return ""
    return stream.decode(errors="replace") if isinstance(stream, bytes) else stream
