from bootstrap import build_flow_factory, configure_logging
from config import load_settings
from interfaces.telegram.handlers import create_telegram_bot


def main() -> None:
    configure_logging()
    settings = load_settings()
    if not settings.telegram_token:
        raise RuntimeError("TELEGRAM_TOKEN environment variable is not set.")

    flow_factory = build_flow_factory(settings)

    bot = create_telegram_bot(
        settings.telegram_token,
        flow_factory,
        complete_scene=settings.complete_scene,
    )
    bot.infinity_polling()


if __name__ == "__main__":
    main()
