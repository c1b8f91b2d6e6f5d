import logging
import sys

from telegram import Update
from telegram.request import HTTPXRequest
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from complaint_bot.config import Settings, get_settings
from complaint_bot.core import ComplaintBotCore
from complaint_bot.database import create_engine, create_session_factory, init_db
from complaint_bot.errors import ConfigurationError
from complaint_bot.i18n import t
from complaint_bot.observability import LOG_FORMAT, init_sentry, setup_logging, start_metrics_server
from complaint_bot.repository import ComplaintRepository
from complaint_bot.scheduler import build_scheduler
from complaint_bot.telegram_transport import TelegramTransport, make_update_handler

logger = logging.getLogger(__name__)


def build_application(settings: Settings) -> Application:
    """Wire settings, storage, core, handlers and scheduler into a PTB Application."""
    # Larger timeouts and a small pool ride out short network blips
    # when talking to the Telegram API.
    request = HTTPXRequest(
        connection_pool_size=32,
        connect_timeout=20.0,
        read_timeout=30.0,
        pool_timeout=10.0,
    )

    engine = create_engine(settings.database_url)
    repository = ComplaintRepository(create_session_factory(engine))

    async def post_init(application: Application) -> None:
        await init_db(engine)
        scheduler = build_scheduler(core, settings)
        scheduler.start()
        application.bot_data["scheduler"] = scheduler
        logger.info("Bot is initialized. Polling for updates...")

    async def post_shutdown(application: Application) -> None:
        scheduler = application.bot_data.get("scheduler")
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        await engine.dispose()

    application = (
        Application.builder()
        .token(settings.bot_token)
        .request(request)
        .get_updates_request(request)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    core = ComplaintBotCore.from_settings(settings, repository, TelegramTransport(application.bot))
    application.bot_data["core"] = core

    handle_update = make_update_handler(core)
    application.add_handler(MessageHandler(filters.ALL & ~filters.UpdateType.EDITED, handle_update))
    application.add_handler(CallbackQueryHandler(handle_update))

    # Unexpected exceptions in handlers are logged and the user gets an apology.
    async def global_error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Log exceptions and notify the user with a friendly message when possible."""
        logger.exception("Unhandled exception in update: %s", context.error)

        try:
            if isinstance(update, Update) and update.effective_message and update.effective_user:
                language = core.sessions.language_for(str(update.effective_user.id))
                await update.effective_message.reply_text(t(language, "genericError"))
        except Exception:
            # Swallow all exceptions here; we've already logged the original.
            logger.warning("Failed to send error notification to user.")

    application.add_error_handler(global_error_handler)
    return application


def main():
    """Initializes and runs the bot application."""
    try:
        settings = get_settings()
    except ConfigurationError as exc:
        logging.basicConfig(format=LOG_FORMAT, level=logging.ERROR)
        logger.error("Cannot start: %s", exc)
        sys.exit(1)

    setup_logging(settings.log_level, settings.log_json, settings.log_file)
    init_sentry(settings.sentry_dsn, settings.environment)
    start_metrics_server(settings.metrics_port)

    logger.info("Starting bot application (%s)...", settings.environment)
    application = build_application(settings)

    try:
        application.run_polling(allowed_updates=Update.ALL_TYPES)
    except Exception as exc:
        logger.exception("Unexpected error while polling: %s", exc)
    finally:
        logger.info("Bot application stopped.")


if __name__ == "__main__":
    main()
