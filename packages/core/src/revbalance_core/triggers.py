"""Post-assignment triggers.

A trigger runs after reviewers have been applied and the marker comment
posted. Every trigger receives the same arguments, and the balancer
isolates failures: one broken trigger is logged and never stops the others
or undoes the assignment.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from revbalance_store.models import Reviewer

logger = logging.getLogger(__name__)

SLACK_MESSAGE_TEMPLATE = "{mentions}, you have a PR to review: {url}"


class ReviewerTrigger(ABC):
    name: str = "trigger"

    @abstractmethod
    def fire(self, required: list[Reviewer], optional: list[Reviewer], pull_request_url: str) -> None:
        """React to a completed assignment. May raise; the caller logs and continues."""


class SlackTrigger(ReviewerTrigger):
    """Mention the selected reviewers in a Slack channel.

    ``alias_map`` converts reviewer aliases to Slack user ids; an alias
    without an entry is mentioned as-is.
    """

    name = "slack"

    def __init__(self, token: str, channel: str, alias_map: dict[str, str] | None = None, client=None):
        if client is None:
            from slack_sdk import WebClient

            client = WebClient(token=token)
        self._client = client
        self._channel = channel
        self._alias_map = dict(alias_map or {})

    def mention(self, alias: str) -> str:
        return f"<@{self._alias_map.get(alias, alias)}>"

    def fire(self, required: list[Reviewer], optional: list[Reviewer], pull_request_url: str) -> None:
        reviewers = [*required, *optional]
        if not reviewers:
            return
        text = SLACK_MESSAGE_TEMPLATE.format(
            mentions=" ".join(self.mention(r.alias) for r in reviewers),
            url=pull_request_url,
        )
        self._client.chat_postMessage(channel=self._channel, text=text)
        logger.debug("Posted Slack notification to %s", self._channel)


def build_triggers(config: dict) -> list[ReviewerTrigger]:
    """Instantiate the triggers enabled by configuration."""
    triggers: list[ReviewerTrigger] = []
    slack = config.get("slack") or {}
    if slack.get("token") and slack.get("channel"):
        triggers.append(SlackTrigger(slack["token"], slack["channel"], slack.get("alias_map")))
        logger.info("Slack trigger enabled for channel %s", slack["channel"])
    elif slack.get("channel"):
        logger.warning("Slack channel configured but SLACK_BOT_TOKEN is not set; Slack trigger disabled.")
    return triggers
