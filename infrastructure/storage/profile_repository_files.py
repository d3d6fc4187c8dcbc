from __future__ import annotations

import os
import shutil

from domain.errors import ProfileWriteError, TemplateMissingError
from domain.repositories import ProfileRepository


class FileProfileRepository(ProfileRepository):
    """
    Filesystem-backed implementation of `ProfileRepository`.

    Templates are read-only files in `template_dir`; user profiles live in
    `user_data_dir`, which is created on construction if needed.
    """

    def __init__(self, template_dir: str, user_data_dir: str) -> None:
        self._template_dir = template_dir
        self._user_data_dir = user_data_dir
        self._ensure_user_data_dir()

    def _ensure_user_data_dir(self) -> None:
        os.makedirs(self._user_data_dir, exist_ok=True)

    def _template_path(self, template_name: str) -> str:
        return os.path.join(self._template_dir, template_name)

    def artifact_path(self, artifact_name: str) -> str:
        return os.path.join(self._user_data_dir, artifact_name)

    def template_exists(self, template_name: str) -> bool:
        return os.path.isfile(self._template_path(template_name))

    def copy_template(self, template_name: str, artifact_name: str) -> str:
        source = self._template_path(template_name)
        target = self.artifact_path(artifact_name)
        try:
            # copyfile truncates an existing target, so re-running overwrites.
            shutil.copyfile(source, target)
        except FileNotFoundError as exc:
            if not os.path.exists(source):
                raise TemplateMissingError(source) from exc
            raise ProfileWriteError(f"Could not write {target}: {exc}") from exc
        except OSError as exc:
            raise ProfileWriteError(f"Could not write {target}: {exc}") from exc
        return target
