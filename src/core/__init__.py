"""Core domain package for sirenscope.

Core contains matching, deduplication, scheduling and the alert-driven state
machine without any Telegram or HTTP-specific code, keeping the logic portable.
"""
