from __future__ import annotations

import logging
from typing import Callable, Optional

from application.flow import CompletionHook, OnboardingFlow
from config import Settings
from infrastructure.db.preference_repository_sqlite import SqlitePreferenceRepository
from infrastructure.otp.file_channel import FileOtpChannel
from infrastructure.otp.subprocess_dispatcher import SubprocessOtpDispatcher
from infrastructure.storage.profile_repository_files import FileProfileRepository

FlowFactory = Callable[[Optional[CompletionHook]], OnboardingFlow]


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_flow_factory(settings: Settings) -> FlowFactory:
    """
    Wire the concrete adapters once and return a factory producing one
    `OnboardingFlow` per chat.

    All flows share the same transfer channel, so only one challenge can be
    outstanding at a time across every chat.
    """

    dispatcher = SubprocessOtpDispatcher(
        settings.otp_script_path,
        python_path=settings.python_path,
        working_dir=settings.otp_working_dir,
    )
    channel = FileOtpChannel(settings.otp_file_path)
    profile_repo = FileProfileRepository(settings.template_dir, settings.user_data_dir)
    preference_repo = SqlitePreferenceRepository(settings.db_path)

    def factory(on_complete: Optional[CompletionHook] = None) -> OnboardingFlow:
        return OnboardingFlow(
            dispatcher,
            channel,
            profile_repo,
            preference_repo,
            on_complete=on_complete,
        )

    return factory
