from __future__ import annotations

import os

from domain.errors import ChannelError
from domain.repositories import OtpChannel


class FileOtpChannel(OtpChannel):
    """
    Transfer channel backed by one plain-text file.

    The file holds nothing but the current code. A missing file, an
    unreadable file and a blank file are all reported as `ChannelError`.
    """

    def __init__(self, path: str) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def read(self) -> str:
        try:
            with open(self._path, "r", encoding="utf-8") as fh:
                code = fh.read()
        except FileNotFoundError as exc:
            raise ChannelError(f"OTP file not found at: {self._path}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise ChannelError(f"Error reading OTP file: {exc}") from exc

        if not code.strip():
            raise ChannelError(f"OTP file is empty: {self._path}")
        return code

    def write(self, code: str) -> None:
        directory = os.path.dirname(self._path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                fh.write(code)
        except OSError as exc:
            raise ChannelError(f"Error writing OTP file: {exc}") from exc

    def clear(self) -> None:
        try:
            os.remove(self._path)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise ChannelError(f"Error deleting OTP file: {exc}") from exc
