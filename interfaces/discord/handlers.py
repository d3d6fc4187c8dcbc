from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict

import discord
from discord.ext import commands

from application.flow import FlowResult, OnboardingFlow
from bootstrap import FlowFactory
from domain.models import SessionPreferences, Stage

logger = logging.getLogger(__name__)

STAGE_HINTS = {
    Stage.EMAIL_ENTRY: "Send `!email <address>` to receive a code.",
    Stage.OTP_ENTRY: "Check your inbox and send `!otp <code>`.",
    Stage.CREDIT_SELECT: "Pick your credit score with `!credit bad|average|good`.",
    Stage.COMPLETE: "You are all set. Use `!start` to start over.",
}


async def run_flow_event(event: Callable[[str], FlowResult], value: str) -> FlowResult:
    """
    Run a flow event in a worker thread.

    Events can block on the OTP script, and the gateway heartbeat must keep
    running meanwhile. The awaiting command still waits for the result.
    """

    return await asyncio.to_thread(event, value)


def create_discord_bot(
    flow_factory: FlowFactory,
    complete_scene: str = "City",
) -> commands.Bot:
    """
    Configure and return a Discord bot with the same onboarding steps as
    the Telegram interface, driven by explicit commands.
    """

    intents = discord.Intents.default()
    intents.message_content = True

    # Disable the default help command so we can provide our own `!help`.
    bot = commands.Bot(command_prefix="!", intents=intents, help_command=None)

    # One flow per channel, keyed by channel ID.
    flows: Dict[int, OnboardingFlow] = {}

    # Completion hooks run synchronously inside the flow, so the welcome
    # text is queued here and sent once the command has finished.
    completed: Dict[int, SessionPreferences] = {}

    def _start_flow(channel_id: int) -> OnboardingFlow:
        def on_complete(preferences: SessionPreferences) -> None:
            completed[channel_id] = preferences

        flow = flow_factory(on_complete)
        flows[channel_id] = flow
        return flow

    def _get_flow(ctx: commands.Context) -> OnboardingFlow:
        return flows.get(ctx.channel.id) or _start_flow(ctx.channel.id)

    async def _report(
        ctx: commands.Context, flow: OnboardingFlow, result: FlowResult
    ) -> None:
        if not result.success:
            await ctx.send(result.error_message)
            return

        preferences = completed.pop(ctx.channel.id, None)
        if preferences is not None:
            await ctx.send(
                f"Welcome, {preferences.email}! Loading {complete_scene}..."
            )
            return
        await ctx.send(STAGE_HINTS[flow.stage])

    @bot.event
    async def on_ready():
        logger.info("Discord bot logged in as %s (id=%s)", bot.user, bot.user.id)

    @bot.command(name="start")
    async def start_cmd(ctx: commands.Context):
        flow = _start_flow(ctx.channel.id)
        await ctx.send("Welcome!\n" + STAGE_HINTS[flow.stage])

    @bot.command(name="help")
    async def help_cmd(ctx: commands.Context):
        await ctx.send(
            "!start                       - begin (or restart) onboarding\n"
            "!email <address>             - send a code to your email\n"
            "!otp <code>                  - verify the code you received\n"
            "!credit <bad|average|good>   - choose your credit score\n"
        )

    @bot.command(name="email")
    async def email_cmd(ctx: commands.Context, address: str = ""):
        flow = _get_flow(ctx)
        await _report(ctx, flow, await run_flow_event(flow.submit_email, address))

    @bot.command(name="otp")
    async def otp_cmd(ctx: commands.Context, code: str = ""):
        flow = _get_flow(ctx)
        await _report(ctx, flow, await run_flow_event(flow.verify_code, code))

    @bot.command(name="credit")
    async def credit_cmd(ctx: commands.Context, label: str = ""):
        flow = _get_flow(ctx)
        await _report(
            ctx, flow, await run_flow_event(flow.select_credit_score, label)
        )

    return bot
