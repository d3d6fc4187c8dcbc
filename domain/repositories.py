from __future__ import annotations

from typing import Dict, Optional, Protocol


class OtpDispatcher(Protocol):
    """
    Abstraction over whatever generates and delivers a one-time passcode.

    Implementations block until delivery has finished and put the new
    challenge into the transfer channel as a side effect.
    """

    def dispatch(self, email: str) -> None:
        """
        Send a fresh challenge to `email`.

        Raises `ExternalProcessError` if delivery could not be started or
        reported failure.
        """

        ...


class OtpChannel(Protocol):
    """
    Single-slot mailbox holding the outstanding OTP challenge.

    There is no per-challenge identity: a new write replaces whatever was
    there, and a missing value looks the same whether no code was sent or
    the last one was already consumed.
    """

    def read(self) -> str:
        """Return the stored challenge; raise `ChannelError` if there is none."""

        ...

    def write(self, code: str) -> None:
        ...

    def clear(self) -> None:
        """
        Erase the stored challenge. Clearing an empty channel is a no-op.

        Raises `ChannelError` only when the underlying storage fails.
        """

        ...


class ProfileRepository(Protocol):
    """
    Storage for credit templates and the per-user profiles copied from them.
    """

    def template_exists(self, template_name: str) -> bool:
        ...

    def copy_template(self, template_name: str, artifact_name: str) -> str:
        """
        Copy a template to the named artifact, replacing any existing one,
        and return the artifact's path.

        Raises `ProvisioningError` on I/O failure.
        """

        ...


class PreferenceRepository(Protocol):
    """Small string key-value store shared with downstream game systems."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set_values(self, values: Dict[str, str]) -> None:
        """Store all `values` together, overwriting existing keys."""

        ...
