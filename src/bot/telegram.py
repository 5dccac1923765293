"""Telegram application wiring for the Study Scheduler."""

from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
)

from .agent import StudyAgent


def build_application(bot_token: str, agent: StudyAgent) -> Application:
    """Configure the Telegram application instance."""
    application = ApplicationBuilder().token(bot_token).build()
    application.add_handler(CommandHandler("start", agent.handle_start))
    application.add_handler(CommandHandler("decks", agent.handle_decks))
    application.add_handler(CommandHandler("topics", agent.handle_topics))
    application.add_handler(CommandHandler("due", agent.handle_due))
    application.add_handler(CommandHandler("study", agent.handle_study))
    application.add_handler(CommandHandler("deletetopic", agent.handle_delete_topic))
    application.add_handler(CallbackQueryHandler(agent.handle_show_card, pattern=r"^st_show:"))
    application.add_handler(CallbackQueryHandler(agent.handle_rate_card, pattern=r"^st_rate:"))
    return application
