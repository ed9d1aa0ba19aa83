# -*- coding: utf-8 -*-
"""
Telegram bot for the storefront.

Every command is served only to members of CHANNEL_ID. Leads coming from
the web app (web_app_data) or /request become tickets, which are pushed
to the admin panel and announced to ADMIN_IDS. Join requests to the
channel are approved after a short pause or handed to the admins.
"""

import html
import json
import logging
import re
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests
import telebot
from telebot import types, util
from telebot.apihelper import ApiTelegramException

from . import telegram_users, tickets
from .domains import is_valid_domain_name, normalize_domain_name
from .errors import ValidationError
from .realtime import broadcast_new_ticket

logger = logging.getLogger(__name__)

MEMBER_STATUSES = ("creator", "administrator", "member")
# API refusals and transport failures (timeouts, dropped connections)
TELEGRAM_ERRORS = (ApiTelegramException, requests.exceptions.RequestException)

WELCOME_TEXT = """🎉 Welcome to Domain Store Bot!

Thank you for subscribing! You now have access to our premium domain marketplace.

✅ Browse available domains
✅ Check domain details and pricing
✅ Submit purchase requests
✅ Track your orders

Click the button below to launch our web application and start exploring!"""

WELCOME_BACK_TEXT = """🎉 Welcome back to Domain Store Bot!

You're already subscribed! Click the button below to launch our web application."""

HELP_TEXT = """🆘 <b>Domain Store Bot - Help</b>

<b>Available Commands:</b>
/start - Subscribe and launch the web app
/help - Show this help message
/request domain1.com domain2.com - Ask for a quote on domains

<b>How to use:</b>
1️⃣ Use /start to subscribe and get access
2️⃣ Click "Launch Web App" to browse domains
3️⃣ Browse available domains in our marketplace
4️⃣ Submit purchase requests directly through the app
5️⃣ Track your orders and tickets

<b>Need Support?</b>
Contact our support team for any assistance with your domain purchases or technical issues."""

HINT_TEXT = """Hello {name}! 👋

I understand you're trying to communicate, but I'm designed to help you access our domain marketplace.

Use these commands:
• /start - Subscribe and launch the web app
• /help - Get detailed help information

Ready to explore domains? Click the button below!"""

GATE_TEXT = """🔒 This bot is available to channel members only.

Join our channel, then press "I've joined" to continue."""

REQUEST_USAGE = "Send /request followed by the domain names, e.g. <code>/request example.com shop.io</code>"


def is_channel_member(bot: telebot.TeleBot, channel_id: str, user_id: int) -> bool:
    """Channel members pass; a failed lookup counts as not a member. No channel means no gate."""
    if not channel_id:
        return True
    try:
        member = bot.get_chat_member(channel_id, user_id)
    except TELEGRAM_ERRORS as e:
        logger.warning("Membership check failed for %s: %s", user_id, e)
        return False
    status = getattr(member, "status", None)
    if status in MEMBER_STATUSES:
        return True
    return status == "restricted" and bool(getattr(member, "is_member", False))


def parse_domain_list(values: Iterable[Any]) -> Tuple[List[str], List[str]]:
    """Splits raw names into (valid normalized names, rejected raw names), keeping order and dropping repeats."""
    valid: List[str] = []
    rejected: List[str] = []
    for raw in values:
        for part in re.split(r"[\s,;]+", str(raw)):
            if not part:
                continue
            name = normalize_domain_name(part)
            if is_valid_domain_name(name):
                if name not in valid:
                    valid.append(name)
            else:
                rejected.append(part)
    return valid, rejected


def display_name(user: Any) -> str:
    if getattr(user, "username", None):
        return f"@{user.username}"
    return getattr(user, "first_name", None) or str(getattr(user, "id", ""))


class StoreBot:
    """Handlers bound to one TeleBot instance and one settings mapping."""

    notify_delay = 0.05

    def __init__(self, bot: telebot.TeleBot, settings: Dict[str, Any]):
        self.bot = bot
        self.channel_id = str(settings.get("CHANNEL_ID") or "")
        self.invite_url = settings.get("CHANNEL_INVITE_URL") or ""
        self.web_app_url = settings.get("WEB_APP_URL") or ""
        self.support_url = settings.get("SUPPORT_URL") or ""
        self.admin_ids = set(settings.get("ADMIN_IDS") or ())
        self.auto_approve = bool(settings.get("JOIN_AUTO_APPROVE", True))
        self.approval_delay = float(settings.get("JOIN_APPROVAL_DELAY") or 0)

    # -------------------------
    # Markup
    # -------------------------
    def _web_app_button(self) -> types.InlineKeyboardButton:
        return types.InlineKeyboardButton("🚀 Launch Web App", web_app=types.WebAppInfo(url=self.web_app_url))

    def welcome_markup(self) -> types.InlineKeyboardMarkup:
        kb = types.InlineKeyboardMarkup(row_width=1)
        kb.add(self._web_app_button())
        kb.add(types.InlineKeyboardButton("📞 Contact Support", url=self.support_url))
        return kb

    def help_markup(self) -> types.InlineKeyboardMarkup:
        kb = types.InlineKeyboardMarkup(row_width=2)
        kb.add(self._web_app_button())
        kb.add(types.InlineKeyboardButton("🔄 Start Over", callback_data="start_over"),
               types.InlineKeyboardButton("📞 Support", url=self.support_url))
        return kb

    def hint_markup(self) -> types.InlineKeyboardMarkup:
        kb = types.InlineKeyboardMarkup(row_width=1)
        kb.add(self._web_app_button())
        kb.add(types.InlineKeyboardButton("🆘 Help", callback_data="help"))
        return kb

    def channel_url(self) -> str:
        if self.invite_url:
            return self.invite_url
        return f"https://t.me/{self.channel_id.lstrip('@')}"

    def join_markup(self) -> types.InlineKeyboardMarkup:
        kb = types.InlineKeyboardMarkup(row_width=1)
        kb.add(types.InlineKeyboardButton("📢 Join channel", url=self.channel_url()))
        kb.add(types.InlineKeyboardButton("✅ I've joined", callback_data="check_membership"))
        return kb

    def join_request_markup(self, chat_id: int, user_id: int) -> types.InlineKeyboardMarkup:
        kb = types.InlineKeyboardMarkup(row_width=2)
        kb.add(types.InlineKeyboardButton("✅ Approve", callback_data=f"jr::approve::{chat_id}::{user_id}"),
               types.InlineKeyboardButton("❌ Decline", callback_data=f"jr::decline::{chat_id}::{user_id}"))
        return kb

    # -------------------------
    # Helpers
    # -------------------------
    def send(self, chat_id: int, text: str, **kwargs):
        try:
            return self.bot.send_message(chat_id, text, **kwargs)
        except TELEGRAM_ERRORS as e:
            logger.warning("send_message to %s failed: %s", chat_id, e)
            return None

    def notify_admins(self, text: str, **kwargs):
        for admin_id in sorted(self.admin_ids):
            self.send(admin_id, text, **kwargs)
            if self.notify_delay:
                time.sleep(self.notify_delay)

    def spawn(self, target, *args):
        threading.Thread(target=target, args=args, daemon=True).start()

    def passes_gate(self, user: Any, chat_id: int) -> bool:
        if is_channel_member(self.bot, self.channel_id, user.id):
            return True
        telegram_users.save_user_info(user, subscribed=False)
        self.send(chat_id, GATE_TEXT, reply_markup=self.join_markup())
        return False

    def is_our_channel(self, chat: Any) -> bool:
        if not self.channel_id:
            return True
        if str(getattr(chat, "id", "")) == self.channel_id:
            return True
        username = getattr(chat, "username", None)
        return bool(username) and f"@{username}".lower() == self.channel_id.lower()

    # -------------------------
    # Commands
    # -------------------------
    def cmd_start(self, m: types.Message):
        logger.info("/start from %s (%s)", display_name(m.from_user), m.from_user.id)
        if not self.passes_gate(m.from_user, m.chat.id):
            return
        telegram_users.save_user_info(m.from_user)
        self.send(m.chat.id, WELCOME_TEXT, reply_markup=self.welcome_markup())

    def cmd_help(self, m: types.Message):
        if not self.passes_gate(m.from_user, m.chat.id):
            return
        telegram_users.save_user_info(m.from_user)
        self.send(m.chat.id, HELP_TEXT, reply_markup=self.help_markup())

    def cmd_request(self, m: types.Message):
        if not self.passes_gate(m.from_user, m.chat.id):
            return
        telegram_users.save_user_info(m.from_user)
        args = (m.text or "").split(None, 1)
        names, rejected = parse_domain_list(args[1:])
        if not names:
            self.send(m.chat.id, REQUEST_USAGE)
            return
        self.relay_lead(m.from_user, m.chat.id, names, rejected=rejected)

    def on_web_app_data(self, m: types.Message):
        if not self.passes_gate(m.from_user, m.chat.id):
            return
        telegram_users.save_user_info(m.from_user)
        raw = getattr(m.web_app_data, "data", "") or ""
        try:
            payload = json.loads(raw)
        except ValueError:
            payload = {"domains": [raw]}
        if isinstance(payload, list):
            payload = {"domains": payload}
        if not isinstance(payload, dict) or not isinstance(payload.get("domains"), list):
            self.send(m.chat.id, REQUEST_USAGE)
            return
        names, rejected = parse_domain_list(payload["domains"])
        if not names:
            self.send(m.chat.id, REQUEST_USAGE)
            return
        self.relay_lead(m.from_user, m.chat.id, names, price=payload.get("price"), rejected=rejected)

    def on_text(self, m: types.Message):
        if not self.passes_gate(m.from_user, m.chat.id):
            return
        telegram_users.save_user_info(m.from_user)
        logger.info("Message from %s (%s): %s", display_name(m.from_user), m.from_user.id, (m.text or "")[:200])
        name = html.escape(getattr(m.from_user, "first_name", None) or "there")
        self.send(m.chat.id, HINT_TEXT.format(name=name), reply_markup=self.hint_markup())

    # -------------------------
    # Leads -> tickets
    # -------------------------
    def relay_lead(self, user: Any, chat_id: int, names: List[str], price: Any = None,
                   rejected: Optional[List[str]] = None) -> Optional[Dict[str, Any]]:
        try:
            ticket = tickets.create_ticket(str(user.id), names, price=price, source="telegram")
        except ValidationError as e:
            self.send(chat_id, html.escape(e.message))
            return None
        broadcast_new_ticket(ticket)

        listed = ", ".join(html.escape(n) for n in ticket["request_domains"])
        self.notify_admins(f"🆕 New ticket from {html.escape(display_name(user))} ({user.id})\nDomains: {listed}")
        reply = f"✅ Your request #{ticket['id'][:8]} for {listed} has been received. We'll contact you shortly."
        if rejected:
            reply += "\n\n⚠️ Skipped invalid names: " + ", ".join(html.escape(r) for r in rejected)
        self.send(chat_id, reply)
        return ticket

    # -------------------------
    # Callbacks
    # -------------------------
    def on_callback(self, call: types.CallbackQuery):
        data = call.data or ""
        try:
            if data.startswith("jr::"):
                self.handle_join_decision(call)
                return
            chat_id = call.message.chat.id
            if data == "check_membership":
                if is_channel_member(self.bot, self.channel_id, call.from_user.id):
                    telegram_users.save_user_info(call.from_user)
                    self._edit(chat_id, call.message.message_id, WELCOME_TEXT, self.welcome_markup())
                else:
                    self._answer(call, "You haven't joined the channel yet.", alert=True)
                    return
            elif not self.passes_gate(call.from_user, chat_id):
                pass
            elif data == "start_over":
                telegram_users.save_user_info(call.from_user)
                self._edit(chat_id, call.message.message_id, WELCOME_BACK_TEXT, self.welcome_markup())
            elif data == "help":
                telegram_users.save_user_info(call.from_user)
                self.send(chat_id, HELP_TEXT, reply_markup=self.help_markup())
        except Exception:
            logger.exception("Callback %r failed", data)
        self._answer(call)

    def _answer(self, call: types.CallbackQuery, text: Optional[str] = None, alert: bool = False):
        try:
            self.bot.answer_callback_query(call.id, text, show_alert=alert)
        except TELEGRAM_ERRORS as e:
            logger.warning("answer_callback_query failed: %s", e)

    def _edit(self, chat_id: int, message_id: int, text: str, markup=None):
        try:
            self.bot.edit_message_text(text, chat_id, message_id, reply_markup=markup)
        except TELEGRAM_ERRORS as e:
            logger.warning("edit_message_text failed: %s", e)
            self.send(chat_id, text, reply_markup=markup)

    # -------------------------
    # Join requests
    # -------------------------
    def on_join_request(self, request: types.ChatJoinRequest):
        user = request.from_user
        if not self.is_our_channel(request.chat):
            logger.info("Ignoring join request to chat %s", request.chat.id)
            return
        telegram_users.save_user_info(user, subscribed=False)
        telegram_users.set_join_request(user.id, telegram_users.JOIN_PENDING)
        logger.info("Join request from %s (%s)", display_name(user), user.id)
        if self.auto_approve:
            self.spawn(self.approve_later, request.chat.id, user.id)
            return
        self.notify_admins(
            f"🙋 Join request from {html.escape(display_name(user))} ({user.id})",
            reply_markup=self.join_request_markup(request.chat.id, user.id),
        )

    def approve_later(self, chat_id: int, user_id: int):
        try:
            if self.approval_delay > 0:
                time.sleep(self.approval_delay)
            self.approve_join_request(chat_id, user_id)
        except Exception:
            logger.exception("Delayed approval of %s in %s failed", user_id, chat_id)

    def approve_join_request(self, chat_id: int, user_id: int) -> bool:
        try:
            self.bot.approve_chat_join_request(chat_id, user_id)
        except TELEGRAM_ERRORS as e:
            logger.warning("Approving join request of %s failed: %s", user_id, e)
            return False
        telegram_users.set_join_request(user_id, telegram_users.JOIN_APPROVED)
        self.send(user_id, WELCOME_TEXT, reply_markup=self.welcome_markup())
        logger.info("Join request of %s approved", user_id)
        return True

    def decline_join_request(self, chat_id: int, user_id: int) -> bool:
        try:
            self.bot.decline_chat_join_request(chat_id, user_id)
        except TELEGRAM_ERRORS as e:
            logger.warning("Declining join request of %s failed: %s", user_id, e)
            return False
        telegram_users.set_join_request(user_id, telegram_users.JOIN_DECLINED)
        logger.info("Join request of %s declined", user_id)
        return True

    def handle_join_decision(self, call: types.CallbackQuery):
        if call.from_user.id not in self.admin_ids:
            self._answer(call, "Admins only.", alert=True)
            return
        try:
            _, decision, chat_id, user_id = call.data.split("::")
            chat_id, user_id = int(chat_id), int(user_id)
        except ValueError:
            self._answer(call, "Malformed request.")
            return
        if decision == "approve":
            done = self.approve_join_request(chat_id, user_id)
            verdict = "✅ Approved" if done else "⚠️ Could not approve"
        else:
            done = self.decline_join_request(chat_id, user_id)
            verdict = "❌ Declined" if done else "⚠️ Could not decline"
        self._edit(call.message.chat.id, call.message.message_id, f"{verdict}: join request of {user_id}")
        self._answer(call)

    # -------------------------
    # Wiring
    # -------------------------
    def register(self):
        bot = self.bot
        bot.register_message_handler(self.cmd_start, commands=["start"])
        bot.register_message_handler(self.cmd_help, commands=["help"])
        bot.register_message_handler(self.cmd_request, commands=["request", "buy"])
        bot.register_message_handler(self.on_web_app_data, content_types=["web_app_data"])
        bot.register_message_handler(self.on_text, content_types=["text"],
                                     func=lambda m: not (m.text or "").startswith("/"))
        bot.register_callback_query_handler(self.on_callback, func=lambda c: True)
        bot.register_chat_join_request_handler(self.on_join_request, func=lambda r: True)


def create_bot(settings: Dict[str, Any]) -> Tuple[telebot.TeleBot, StoreBot]:
    bot = telebot.TeleBot(settings["BOT_TOKEN"], threaded=True, parse_mode="HTML")
    store_bot = StoreBot(bot, settings)
    store_bot.register()
    return bot, store_bot


ALLOWED_UPDATES = util.update_types
