"""
This module defines the ``CommandExecutor`` class, the single entry point
through which CACSetup components reach external tools (package managers,
``certutil``, ``modutil``, ``systemctl``, ``wget``, ``unzip`` and
``pkcs11-tool``).

Components receive the executor as a constructor argument, so tests replace it
with a fake that records invocations and returns scripted results. Any object
providing a compatible ``run`` method can be used.
"""


import subprocess
from datetime import datetime
from pathlib import Path
from typing import Union

from CACSetup import run, logger
from CACSetup.exceptions import CACSetupCommandFailed


class CommandExecutor:
    """
    Runs external commands and appends their raw standard output and standard
    error to the run log file. A command returning an unexpected code raises
    ``CACSetupCommandFailed`` referencing that file.
    """
    log_file: Path = None

    def __init__(self, log_file: Union[str, Path] = None):
        """
        :param log_file: Path to the plain-text run log. When ``None`` the
                         tool output is only logged at DEBUG level.
        :type log_file: pathlib.Path or str, optional
        """
        self.log_file = Path(log_file) if log_file is not None else None

    def run(self, cmd: list, check: bool = True, return_code: list = None,
            input: str = None) -> subprocess.CompletedProcess:
        """
        Executes the command and persists its output.

        :param cmd: The command with its arguments.
        :type cmd: list
        :param check: Raise ``CACSetupCommandFailed`` when the return code is
                      not in ``return_code``.
        :type check: bool
        :param return_code: Acceptable return codes, ``[0]`` by default.
        :type return_code: list, optional
        :param input: Text passed to the standard input of the command.
        :type input: str, optional
        :return: The completed process.
        :rtype: subprocess.CompletedProcess
        :raises CACSetupCommandFailed: If ``check`` is set and the command
                                       returned an unexpected code.
        """
        if return_code is None:
            return_code = [0]
        cmd = [str(i) for i in cmd]
        try:
            out = run(cmd, check=False, log=self.log_file is None,
                      input=input)
        except OSError as e:
            # tool is not installed or not executable
            logger.debug(f"Can't execute {cmd[0]}: {e}")
            out = subprocess.CompletedProcess(cmd, 127, stdout="",
                                              stderr=f"{e}\n")
        self._persist(cmd, out)
        if check and out.returncode not in return_code:
            logger.debug(f"Unexpected return code {out.returncode}. "
                         f"Expected: {return_code}")
            raise CACSetupCommandFailed(" ".join(cmd), out.returncode,
                                        self.log_file)
        return out

    def _persist(self, cmd: list, out: subprocess.CompletedProcess):
        if self.log_file is None:
            return
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        with self.log_file.open("a") as f:
            f.write(f"[{stamp}] $ {' '.join(cmd)} (rc={out.returncode})\n")
            if out.stdout:
                f.write(out.stdout if out.stdout.endswith("\n")
                        else out.stdout + "\n")
            if out.stderr:
                f.write(out.stderr if out.stderr.endswith("\n")
                        else out.stderr + "\n")
