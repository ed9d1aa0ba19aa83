"""Admin backend, storefront API and Telegram bot for a domain-flipping marketplace."""

__version__ = "0.1.0"
