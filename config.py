import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    telegram_token: str
    discord_token: str
    python_path: str
    otp_script_path: str
    otp_working_dir: str
    otp_file_path: str
    template_dir: str
    user_data_dir: str
    db_path: str
    complete_scene: str


def load_settings() -> Settings:
    """Read settings from the environment (and `.env`, if present)."""

    return Settings(
        telegram_token=os.environ.get("TELEGRAM_TOKEN", ""),
        discord_token=os.environ.get("DISCORD_TOKEN", ""),
        python_path=os.environ.get("PYTHON_PATH", "python"),
        otp_script_path=os.environ.get("OTP_SCRIPT_PATH", "Assets/Scripts/db_otp.py"),
        otp_working_dir=os.environ.get("OTP_WORKING_DIR", "."),
        otp_file_path=os.environ.get("OTP_FILE_PATH", "Assets/otp.txt"),
        template_dir=os.environ.get("TEMPLATE_DIR", "."),
        user_data_dir=os.environ.get("USER_DATA_DIR", "UserData"),
        db_path=os.environ.get("DB_PATH", "preferences.db"),
        complete_scene=os.environ.get("COMPLETE_SCENE", "City"),
    )
