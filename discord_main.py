from bootstrap import build_flow_factory, configure_logging
from config import load_settings
from interfaces.discord.handlers import create_discord_bot


def main() -> None:
    configure_logging()
    settings = load_settings()
    if not settings.discord_token:
        raise RuntimeError("DISCORD_TOKEN environment variable is not set.")

    flow_factory = build_flow_factory(settings)

    bot = create_discord_bot(flow_factory, complete_scene=settings.complete_scene)
    bot.run(settings.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
