"""Integration adapters (Telegram, HTTP feeds) implementing the core ports."""
