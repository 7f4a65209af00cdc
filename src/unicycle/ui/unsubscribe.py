"""
Unsubscribe button attached to repeating echo direct messages.

The button carries the job id in its custom id (``cancel-echo-job:<job id>``)
so a click can be matched to its job even after a restart, without keeping
the view registered. :func:`handle_unsubscribe_interaction` deletes the job,
swaps the button for a disabled "Successfully Unsubscribed" one and
acknowledges the interaction.
"""

from __future__ import annotations

import discord

from unicycle.scheduler.job_store import JobStore
from unicycle.util.logger import get_logger

logger = get_logger("unsubscribe_ui")

CANCEL_ECHO_PREFIX = "cancel-echo-job"
UNSUBSCRIBED_CUSTOM_ID = "successfully-unsubscribed"


def cancel_echo_custom_id(job_id: str) -> str:
    return f"{CANCEL_ECHO_PREFIX}:{job_id}"


def parse_cancel_echo_custom_id(custom_id: str | None) -> str | None:
    """Return the job id from a ``cancel-echo-job:<id>`` custom id, else ``None``."""
    if not custom_id:
        return None
    parts = custom_id.split(":")
    if len(parts) != 2 or parts[0] != CANCEL_ECHO_PREFIX or not parts[1]:
        return None
    return parts[1]


def build_unsubscribe_view(job_id: str) -> discord.ui.View:
    """View with a single "Unsubscribe" button for the given echo job."""
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label="Unsubscribe",
            style=discord.ButtonStyle.primary,
            custom_id=cancel_echo_custom_id(job_id),
        )
    )
    return view


def build_unsubscribed_view() -> discord.ui.View:
    """View replacing the unsubscribe button once the job is gone."""
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label="Successfully Unsubscribed",
            style=discord.ButtonStyle.success,
            custom_id=UNSUBSCRIBED_CUSTOM_ID,
            disabled=True,
        )
    )
    return view


async def handle_unsubscribe_interaction(interaction: discord.Interaction, store: JobStore) -> bool:
    """Handle a component interaction if it is an unsubscribe click.

    Returns ``True`` when the interaction was an unsubscribe click (handled),
    ``False`` when it belongs to some other component.
    """
    if interaction.type is not discord.InteractionType.component:
        return False

    custom_id = (interaction.data or {}).get("custom_id")
    job_id = parse_cancel_echo_custom_id(custom_id)
    if job_id is None:
        return False

    logger.info("Received unsubscribe click for job %s", job_id)
    job = store.get(job_id)
    if job is None:
        logger.info("Ignoring unsubscribe button click for job %s because that job no longer exists", job_id)
        await interaction.response.defer()
        return True

    logger.info("Cancelling job %s due to unsubscribe button click", job_id)
    await store.remove(job)
    await interaction.response.edit_message(view=build_unsubscribed_view())
    return True
