"""Tests for the berlioz logger namespace."""

import logging

import pytest

from berlioz.adapters import media_fetcher, slack
from berlioz.commands.webhooks.slack_events_command import SlackEventsWebhookCommand
from berlioz.infra.logging_config import DEFAULT_LOGGER_NAME, get_logger
from berlioz.services import content_extractor, conversation_service, event_service
from berlioz.workers import event_worker, llm


def test_get_logger_prefixes_short_names():
    assert get_logger("event_worker").name == "berlioz.event_worker"
    assert get_logger().name == DEFAULT_LOGGER_NAME


def test_get_logger_keeps_module_names():
    assert get_logger("berlioz.services.event_service").name == "berlioz.services.event_service"


@pytest.mark.parametrize(
    "module",
    [media_fetcher, slack, content_extractor, conversation_service, event_service, event_worker, llm],
)
def test_module_loggers_live_under_package_namespace(module):
    assert module.logger.name.startswith(f"{DEFAULT_LOGGER_NAME}.")


def test_command_logger_follows_package_level(db):
    command = SlackEventsWebhookCommand(db)
    parent = logging.getLogger(DEFAULT_LOGGER_NAME)
    previous = parent.level
    parent.setLevel(logging.ERROR)
    try:
        assert not command.logger.isEnabledFor(logging.WARNING)
    finally:
        parent.setLevel(previous)
