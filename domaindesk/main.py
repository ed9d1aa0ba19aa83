#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Process entry point: REST API + Socket.IO server, with the Telegram bot
running either on a webhook served by the same Flask app or on long
polling in a background thread.
"""

import logging
from threading import Thread

import telebot
from flask import Flask, request

from . import config
from .api import create_app
from .bot import ALLOWED_UPDATES, create_bot
from .realtime import socketio

logger = logging.getLogger("domaindesk")


def setup_logging():
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("engineio").setLevel(logging.WARNING)
    logging.getLogger("socketio").setLevel(logging.WARNING)


# -------------------------
# Webhook / polling setup
# -------------------------
def register_webhook_route(app: Flask, bot: telebot.TeleBot, token: str):
    @app.route(f"/{token}", methods=["POST"])
    def webhook_update():
        update = telebot.types.Update.de_json(request.get_data().decode("utf-8"))
        bot.process_new_updates([update])
        return "ok", 200


def setup_webhook(bot: telebot.TeleBot, web_domain: str, token: str):
    bot.remove_webhook()
    wh_url = f"{web_domain.rstrip('/')}/{token}"
    bot.set_webhook(url=wh_url, allowed_updates=ALLOWED_UPDATES)
    logger.info("Webhook set to %s", wh_url.replace(token, "<token>"))


def run_polling(bot: telebot.TeleBot):
    logger.info("Telegram bot running in polling mode")
    bot.remove_webhook()
    bot.infinity_polling(timeout=60, long_polling_timeout=20, allowed_updates=ALLOWED_UPDATES)


def main():
    setup_logging()
    app = create_app()
    token = app.config["BOT_TOKEN"]

    if not token or ":" not in token:
        logger.warning("BOT_TOKEN is not set: serving the API without the Telegram bot")
    else:
        bot, _ = create_bot(app.config)
        if app.config["USE_WEBHOOK"] and app.config["WEB_DOMAIN"]:
            register_webhook_route(app, bot, token)
            setup_webhook(bot, app.config["WEB_DOMAIN"], token)
        else:
            Thread(target=run_polling, args=(bot,), daemon=True).start()

    logger.info("Server is running on port %s", config.PORT)
    try:
        socketio.run(app, host=config.HOST, port=config.PORT, allow_unsafe_werkzeug=True)
    except KeyboardInterrupt:
        logger.info("Stopped manually")


if __name__ == "__main__":
    main()
