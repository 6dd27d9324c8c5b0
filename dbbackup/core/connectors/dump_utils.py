from __future__ import annotations

import asyncio
import contextlib
import hashlib
import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Sequence

PARTIAL_SUFFIX = ".partial"


@dataclass
class ToolResult:
    returncode: int
    stdout: str
    stderr: str


async def run_tool(
    cmd: Sequence[str],
    *,
    env: Optional[Dict[str, str]] = None,
    stdin_path: Optional[str] = None,
    stdout_path: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> ToolResult:
    """Run an engine client tool (mysqldump, psql, mongorestore, ...).

    stdin/stdout are streamed from/to files when paths are given so large
    dumps never sit in memory. On cancellation the child process is killed
    before the CancelledError propagates.
    """
    log = logger or logging.getLogger(__name__)
    with contextlib.ExitStack() as stack:
        stdin = stack.enter_context(open(stdin_path, "rb")) if stdin_path else asyncio.subprocess.DEVNULL
        stdout = stack.enter_context(open(stdout_path, "wb")) if stdout_path else asyncio.subprocess.PIPE

        log.debug("tool_exec | cmd=%s stdin=%s stdout=%s", cmd[0], stdin_path, stdout_path)
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=stdin,
            stdout=stdout,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
        try:
            stdout_data, stderr_data = await proc.communicate()
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            log.warning("tool_killed | cmd=%s reason=cancelled", cmd[0])
            raise

    return ToolResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=(stdout_data or b"").decode(errors="ignore"),
        stderr=(stderr_data or b"").decode(errors="ignore").strip(),
    )


@contextlib.contextmanager
def atomic_destination(destination: str) -> Iterator[str]:
    """Yield a temporary sibling path that replaces `destination` on success.

    Any exception (including cancellation) removes the temporary file, so
    `destination` is either the complete artifact or untouched.
    """
    parent = os.path.dirname(os.path.abspath(destination))
    os.makedirs(parent, exist_ok=True)
    tmp_path = f"{destination}{PARTIAL_SUFFIX}"
    try:
        yield tmp_path
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.remove(tmp_path)
        raise
    os.replace(tmp_path, destination)


def file_sha256(path: str) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def base_env(**overrides: str) -> Dict[str, str]:
    """Copy of the process environment with client credential variables set."""
    env = os.environ.copy()
    env.update(overrides)
    return env
