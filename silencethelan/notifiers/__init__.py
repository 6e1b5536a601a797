"""Notification backends for silencethelan."""

from silencethelan.notifiers.slack import SlackConfig, SlackNotifier

__all__ = ["SlackConfig", "SlackNotifier"]
