import asyncio
import io
from typing import Optional

import discord
from discord import app_commands

from selfgate.core.engine import VerificationEngine, VerificationRequest
from selfgate.core.errors import PlatformNotReady, RoleNotFound
from selfgate.observability.logging import error_text, log

VERIFY_INTRO = (
    "📱 **Verification Required**\n\n"
    "To access exclusive restricted channels in this server, please complete "
    "verification using the Self.xyz mobile app.\n\n"
)
VERIFY_OUTRO = (
    "Once verified, you'll automatically receive the **Self.xyz Verified** role "
    "and gain access to exclusive channels!\n\n"
    "━━━━━━━━━━━━━━━━━━━━━━"
)


def build_dm_content(request: VerificationRequest) -> str:
    if request.qrPng:
        body = ""
        if request.buttonUrl:
            body += "**On Mobile?**\nTap the button below to open the Self app directly.\n\n"
        body += "**On Desktop?**\nScan the QR code below with the Self.xyz app on your phone.\n\n"
    elif request.buttonUrl:
        body = (
            "**Steps:**\n"
            "1️⃣ Tap the button below to open the Self app\n"
            "2️⃣ Complete the verification process\n\n"
        )
    else:
        body = f"Open this link on your phone to start:\n{request.universalLink}\n\n"
    return VERIFY_INTRO + body + VERIFY_OUTRO


class DiscordPlatform:
    """Access-grant collaborator backed by a logged-in discord.py client."""

    def __init__(self, client: Optional[discord.Client] = None) -> None:
        self.client = client

    def attach(self, client: discord.Client) -> None:
        self.client = client

    def _ready_client(self) -> discord.Client:
        if self.client is None or not self.client.is_ready():
            raise PlatformNotReady("Discord client not ready")
        return self.client

    async def fetch_member(self, origin_id: str, requester_id: str):
        client = self._ready_client()
        guild = client.get_guild(int(origin_id)) or await client.fetch_guild(int(origin_id))
        return await guild.fetch_member(int(requester_id))

    async def add_role(self, member, role_id: str) -> None:
        guild = member.guild
        role = guild.get_role(int(role_id))
        if role is None:
            roles = await guild.fetch_roles()
            role = next((r for r in roles if r.id == int(role_id)), None)
        if role is None:
            raise RoleNotFound(str(guild.id), str(role_id))
        await member.add_roles(role, reason="Self.xyz verification")

    async def send_direct_message(self, requester_id: str, text: str) -> None:
        client = self._ready_client()
        user = client.get_user(int(requester_id)) or await client.fetch_user(int(requester_id))
        await user.send(text)


class VerifyBot(discord.Client):
    def __init__(self, engine: VerificationEngine, *, guild_id: str = "", role_id: str = "") -> None:
        intents = discord.Intents.default()
        intents.members = True
        super().__init__(intents=intents)
        self.engine = engine
        self.guild_id = guild_id
        self.role_id = role_id
        self.tree = app_commands.CommandTree(self)
        register_commands(self)

    async def setup_hook(self) -> None:
        if not self.guild_id:
            log(
                "discord.config_missing",
                "Skipping slash command registration, DISCORD_GUILD_ID not set",
            )
            return
        guild = discord.Object(id=int(self.guild_id))
        self.tree.copy_global_to(guild=guild)
        try:
            await self.tree.sync(guild=guild)
        except discord.HTTPException as e:
            log("discord.commands_error", "Failed to register slash commands", error=error_text(e))
            return
        log("discord.commands_registered", "Registered slash commands", guildId=self.guild_id)

    async def on_ready(self) -> None:
        log(
            "discord.ready",
            "Discord bot logged in",
            username=getattr(self.user, "name", None),
            id=getattr(self.user, "id", None),
        )

    def _already_verified(self, member) -> bool:
        if not self.role_id or not isinstance(member, discord.Member):
            return False
        return member.get_role(int(self.role_id)) is not None

    async def _edit_reply(self, interaction: discord.Interaction, content: str, context: str) -> None:
        try:
            await interaction.edit_original_response(content=content)
        except discord.HTTPException as e:
            log(
                "discord.interaction_edit_error",
                f"Failed to edit interaction reply {context}",
                error=error_text(e),
            )

    async def handle_verify(self, interaction: discord.Interaction) -> None:
        user, guild = interaction.user, interaction.guild

        if guild is None:
            await interaction.response.send_message(
                "This command can only be used inside a server.", ephemeral=True
            )
            return

        if self._already_verified(user):
            await interaction.response.send_message(
                "You are already verified and should see the restricted channels.", ephemeral=True
            )
            return

        try:
            await interaction.response.send_message(
                "Generating your Self verification link… I'll DM it to you shortly.", ephemeral=True
            )
        except discord.HTTPException as e:
            log("discord.interaction_reply_error", "Failed to send initial interaction reply", error=error_text(e))
            return

        try:
            # QR rendering is CPU-bound; keep the gateway loop responsive
            request = await asyncio.to_thread(self.engine.start_session, str(user.id), str(guild.id))
        except Exception as e:
            log(
                "verification.start_error",
                "Failed to start verification session",
                discordUserId=str(user.id),
                errorType=type(e).__name__,
                error=error_text(e),
            )
            await self._edit_reply(
                interaction,
                "I couldn't create a verification link right now. Please try again later.",
                "after link error",
            )
            return

        view = None
        if request.buttonUrl:
            view = discord.ui.View()
            view.add_item(
                discord.ui.Button(label="Open in Self App", url=request.buttonUrl, style=discord.ButtonStyle.link)
            )
        files = []
        if request.qrPng:
            files.append(discord.File(io.BytesIO(request.qrPng), filename=request.qrName))

        try:
            kwargs = {"content": build_dm_content(request), "files": files}
            if view is not None:
                kwargs["view"] = view
            await user.send(**kwargs)
        except discord.HTTPException as e:
            self.engine.abandon(request.sessionId)
            log(
                "verification.dm_error",
                "Failed to DM user with verification link",
                sessionId=request.sessionId,
                discordUserId=str(user.id),
                error=error_text(e),
            )
            await self._edit_reply(
                interaction,
                "I couldn't send you a DM. Please enable DMs from this server and try `/verify` again.",
                "after DM error",
            )
            return

        await self._edit_reply(
            interaction,
            "I've sent you a DM with a Self verification link. Complete verification in the "
            "Self app and I'll automatically grant you access.",
            "after sending verification DM",
        )
        log(
            "verification.started",
            "Started verification session",
            sessionId=request.sessionId,
            discordUserId=str(user.id),
            guildId=str(guild.id),
            delivery="qr" if request.qrPng else "link",
        )


def register_commands(bot: VerifyBot) -> None:
    @bot.tree.command(name="verify", description="Verify your age/identity using Self.")
    async def verify(interaction: discord.Interaction):
        try:
            await bot.handle_verify(interaction)
        except Exception as e:
            log(
                "discord.interaction_error",
                "Error handling interaction",
                commandName="verify",
                errorType=type(e).__name__,
                error=error_text(e),
            )


async def run_bot(bot: VerifyBot, token: str) -> None:
    if not token:
        log("discord.config_missing", "DISCORD_BOT_TOKEN is not set, Discord bot will not start")
        return
    try:
        await bot.start(token)
    except discord.LoginFailure as e:
        log("discord.login_error", "Failed to login Discord bot", error=error_text(e))
    except discord.DiscordException as e:
        log("discord.start_error", "Discord bot stopped", errorType=type(e).__name__, error=error_text(e))
