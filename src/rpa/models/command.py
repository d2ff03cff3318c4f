"""Backend that pipes prompts through an agent executable."""

from __future__ import annotations

import shlex
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Optional

from .llm_client import LLMClient, LLMTimeoutError, LLMTransportError

__all__ = ["CommandClient", "DEFAULT_COMMAND"]

DEFAULT_COMMAND: tuple[str, ...] = ("gopi", "--print")


class CommandClient(LLMClient):
    """Run ``command`` once per prompt, feeding the prompt on stdin.

    The child runs inside ``cwd`` and its trimmed stdout is the reply. The
    executable does not report tool usage, so this client only offers the
    plain :meth:`ask` capability.
    """

    def __init__(
        self,
        command: Sequence[str] | str = DEFAULT_COMMAND,
        *,
        cwd: Path | str | None = None,
    ) -> None:
        if isinstance(command, str):
            parts = tuple(shlex.split(command))
        else:
            parts = tuple(str(part) for part in command)
        if not parts:
            raise ValueError("An executable is required for the command backend.")
        self._command = parts
        self._cwd = Path(cwd).resolve() if cwd else None

    @property
    def command(self) -> tuple[str, ...]:
        return self._command

    def ask(self, prompt: str, *, timeout: Optional[float] = None) -> str:
        try:
            process = subprocess.run(  # noqa: S603 - command comes from local configuration
                self._command,
                cwd=self._cwd,
                input=prompt,
                capture_output=True,
                text=True,
                encoding="utf-8",
                timeout=timeout if timeout and timeout > 0 else None,
                check=False,
            )
        except subprocess.TimeoutExpired as error:
            raise LLMTimeoutError(f"{self._command[0]} timed out after {error.timeout:.0f}s") from error
        except OSError as error:
            raise LLMTransportError(f"Failed to launch {self._command[0]}: {error}") from error

        if process.returncode != 0:
            message = (process.stderr or "").strip() or f"exit status {process.returncode}"
            raise LLMTransportError(f"invoke {self._command[0]} failed: {message}")
        return (process.stdout or "").strip()
