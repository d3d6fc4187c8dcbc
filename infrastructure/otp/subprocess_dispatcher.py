from __future__ import annotations

import logging
import os
import subprocess
from typing import List, Optional

from domain.errors import ExternalProcessError
from domain.repositories import OtpDispatcher

logger = logging.getLogger(__name__)


class SubprocessOtpDispatcher(OtpDispatcher):
    """
    Runs the OTP-delivery script as `<python> -u <script> <email>`.

    The script is expected to write the generated code into the transfer
    channel and exit 0. The call blocks until the script exits; there is no
    timeout, so a hung script hangs the caller.
    """

    def __init__(
        self,
        script_path: str,
        python_path: str = "python",
        working_dir: Optional[str] = None,
    ) -> None:
        self._script_path = os.path.abspath(script_path)
        self._python_path = python_path
        self._working_dir = working_dir

    def _build_command(self, email: str) -> List[str]:
        return [self._python_path, "-u", self._script_path, email]

    def dispatch(self, email: str) -> None:
        try:
            completed = subprocess.run(
                self._build_command(email),
                capture_output=True,
                text=True,
                errors="replace",
                cwd=self._working_dir,
            )
        except OSError as exc:
            raise ExternalProcessError(
                f"Failed to start OTP process: {exc}"
            ) from exc

        logger.info("OTP process output: %s", completed.stdout)

        if completed.returncode != 0:
            logger.error(
                "OTP process error (exit code %s): %s",
                completed.returncode,
                completed.stderr,
            )
            raise ExternalProcessError(
                f"OTP process exited with code {completed.returncode}",
                exit_code=completed.returncode,
                stderr=completed.stderr,
            )
