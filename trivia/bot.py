import discord
from discord import app_commands
from discord.ext import commands
import logging
import asyncio
from typing import Any, Dict, Optional, Set
import os
from pathlib import Path

from .data_manager import DataManager
from .config_manager import ConfigManager
from .models import OPTION_LABELS, Lifeline, SessionPhase
from .quiz_controller import TriviaController
from .quiz_engine import EngineEvent, QuizSessionEngine
from .rendering import (
    COLOR_ACTIVE, build_session_embed, should_refresh_timer, t,
)
from .session_clock import AsyncioScheduler


def setup_logging(log_directory: str = "logs", level: int = logging.INFO):
    """Set up logging to console, logs/bot.log and logs/errors.log."""
    logs_dir = Path(log_directory)
    logs_dir.mkdir(exist_ok=True)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),  # Console output
            logging.FileHandler(logs_dir / "bot.log", encoding='utf-8'),  # File output
        ]
    )

    error_handler = logging.FileHandler(logs_dir / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s\n%(exc_info)s'
    ))
    logging.getLogger().addHandler(error_handler)

    # Reduce discord.py noise
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)

    return logging.getLogger(__name__)


logger = logging.getLogger(__name__)


class AnswerButton(discord.ui.Button):
    """One of the A-D option buttons."""

    def __init__(self, bot: "TriviaBot", label: str, disabled: bool):
        super().__init__(label=label, style=discord.ButtonStyle.primary, disabled=disabled, row=0)
        self.bot = bot
        self.option = label

    async def callback(self, interaction: discord.Interaction):
        result = self.bot.trivia_controller.select_answer(interaction.channel_id, self.option)
        await self.bot.acknowledge_action(interaction, result)


class LifelineButton(discord.ui.Button):
    """Hint, skip or eliminate-two."""

    EMOJI = {Lifeline.HINT: "💡", Lifeline.SKIP: "⏭️", Lifeline.ELIMINATE: "✂️"}

    def __init__(self, bot: "TriviaBot", lifeline: Lifeline, language: str, disabled: bool):
        super().__init__(
            label=t(f"lifeline_{lifeline.value}", language),
            emoji=self.EMOJI[lifeline],
            style=discord.ButtonStyle.secondary,
            disabled=disabled,
            row=1
        )
        self.bot = bot
        self.lifeline = lifeline

    async def callback(self, interaction: discord.Interaction):
        controller = self.bot.trivia_controller
        actions = {
            Lifeline.HINT: controller.use_hint,
            Lifeline.SKIP: controller.use_skip,
            Lifeline.ELIMINATE: controller.use_eliminate,
        }
        result = actions[self.lifeline](interaction.channel_id)
        await self.bot.acknowledge_action(interaction, result)


class NextButton(discord.ui.Button):
    def __init__(self, bot: "TriviaBot", label: str, disabled: bool):
        super().__init__(label=label, style=discord.ButtonStyle.success, disabled=disabled, row=2)
        self.bot = bot

    async def callback(self, interaction: discord.Interaction):
        result = self.bot.trivia_controller.advance(interaction.channel_id)
        await self.bot.acknowledge_action(interaction, result)


class PlayAgainButton(discord.ui.Button):
    def __init__(self, bot: "TriviaBot", language: str):
        super().__init__(label=t('play_again', language), emoji="🔄", style=discord.ButtonStyle.primary)
        self.bot = bot

    async def callback(self, interaction: discord.Interaction):
        result = self.bot.trivia_controller.restart_game(interaction.channel_id)
        await self.bot.acknowledge_action(interaction, result)


class QuestionView(discord.ui.View):
    """Buttons for the current question, enabled according to the engine state."""

    def __init__(self, bot: "TriviaBot", engine: QuizSessionEngine, language: str):
        super().__init__(timeout=None)
        locked = engine.state.answer_locked
        lifelines = engine.lifelines

        for label in OPTION_LABELS:
            self.add_item(AnswerButton(bot, label, disabled=locked or lifelines.is_eliminated(label)))

        for lifeline in (Lifeline.HINT, Lifeline.SKIP, Lifeline.ELIMINATE):
            self.add_item(LifelineButton(
                bot, lifeline, language, disabled=not lifelines.is_available(lifeline, locked)
            ))

        is_last = engine.state.current_index + 1 >= len(engine.state.pool)
        can_advance = locked and not (engine.team_mode and engine.turns.steal_active)
        self.add_item(NextButton(
            bot, t('finish_game' if is_last else 'next_question', language), disabled=not can_advance
        ))


class ResultsView(discord.ui.View):
    def __init__(self, bot: "TriviaBot", language: str):
        super().__init__(timeout=600)
        self.add_item(PlayAgainButton(bot, language))


class TriviaBot(commands.Bot):
    """Discord bot for bilingual trivia sessions"""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None
        self.trivia_controller: Optional[TriviaController] = None

        # Question message, revealed hint and refresh lock per channel
        self._messages: Dict[int, discord.Message] = {}
        self._hints: Dict[int, str] = {}
        self._refresh_locks: Dict[int, asyncio.Lock] = {}
        self._pending_tasks: Set[asyncio.Task] = set()

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager()
            config_errors = self.config_manager.apply_config(self.app_config)
            for error in config_errors:
                logger.warning(f"Configuration value ignored: {error}")

            self.data_manager = DataManager(
                self.config_manager.get_data_directory(),
                self.config_manager.get_results_directory()
            )
            self.trivia_controller = TriviaController(
                self.data_manager, self.config_manager, scheduler_factory=AsyncioScheduler
            )

            await self.load_trivia_data()
            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    async def load_trivia_data(self):
        """Load category files and purchases from the data directory"""
        try:
            self.data_manager.load_data()
            summary = self.data_manager.get_loading_summary()
            logger.info(
                f"Loaded {summary['total_questions']} questions in {summary['total_categories']} categories "
                f"from {summary['data_directory']}"
            )
            for error in summary['errors']:
                logger.warning(f"Data loading issue: {error}")
        except Exception as e:
            logger.error(f"Error loading trivia data: {e}")
            # Bot stays up; /play reports missing purchases

    async def setup_commands(self):
        """Register all slash commands"""

        @self.tree.command(name="help", description="Display available commands")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="purchases", description="List purchases available to play")
        async def purchases_command(interaction: discord.Interaction):
            await self.handle_purchases(interaction)

        @self.tree.command(name="play", description="Start a trivia game for a purchase")
        @app_commands.describe(
            purchase="Purchase identifier (see /purchases)",
            team_mode="Play as two teams with steals",
            language="Display language"
        )
        @app_commands.choices(language=[
            app_commands.Choice(name="العربية", value="ar"),
            app_commands.Choice(name="English", value="en"),
        ])
        async def play_command(interaction: discord.Interaction, purchase: str,
                               team_mode: bool = False,
                               language: Optional[app_commands.Choice[str]] = None):
            await self.handle_play(interaction, purchase, team_mode, language.value if language else None)

        @self.tree.command(name="stop", description="Stop the trivia game in this channel")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="status", description="Show the current game status")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="language", description="Switch the display language")
        @app_commands.choices(language=[
            app_commands.Choice(name="العربية", value="ar"),
            app_commands.Choice(name="English", value="en"),
        ])
        async def language_command(interaction: discord.Interaction, language: app_commands.Choice[str]):
            await self.handle_language(interaction, language.value)

        @self.tree.command(name="set_timer", description="Set the time per question (5-300 seconds)")
        async def set_timer_command(interaction: discord.Interaction, seconds: int):
            await self.handle_set_timer(interaction, seconds)

        logger.info("Slash commands registered")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        print(f"🤖 {self.user} is Ready and Online!")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.trivia_controller is not None:
            stopped = self.trivia_controller.close_all()
            if stopped:
                logger.info(f"Stopped {stopped} trivia sessions on shutdown")
        await super().close()

    # ------------------------------------------------------------------
    # Engine events and message refresh
    # ------------------------------------------------------------------

    def make_engine_listener(self, channel_id: int):
        """Build the engine listener that keeps a channel's message in sync."""
        def on_event(event: EngineEvent, engine: QuizSessionEngine, data: Dict[str, Any]) -> None:
            if event is EngineEvent.HINT:
                self._hints[channel_id] = data['text']
            elif event in (EngineEvent.STARTED, EngineEvent.ADVANCED):
                self._hints.pop(channel_id, None)

            if event is EngineEvent.TICK and not should_refresh_timer(data['remaining']):
                return
            self.schedule_refresh(channel_id)
        return on_event

    def schedule_refresh(self, channel_id: int) -> None:
        if channel_id not in self._messages:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop to refresh channel {channel_id}")
            return
        task = loop.create_task(self.refresh_session_message(channel_id))
        self._pending_tasks.add(task)
        task.add_done_callback(self._pending_tasks.discard)

    def build_session_message(self, channel_id: int):
        """
        Build the embed and view for a channel's session.

        Returns:
            (embed, view) tuple, or None if the channel has no session
        """
        session = self.trivia_controller.get_session(channel_id)
        if session is None:
            return None

        engine = session.engine
        language = session.language

        if engine.phase is SessionPhase.IN_PROGRESS:
            category_name = None
            question = engine.current_question
            if question is not None and question.category_id:
                category = self.data_manager.get_category(question.category_id)
                category_name = category.name(language) if category else None
            embed = build_session_embed(
                engine, language,
                category_name=category_name,
                hint_text=self._hints.get(channel_id)
            )
            return embed, QuestionView(self, engine, language)

        embed = build_session_embed(engine, language)
        if engine.phase is SessionPhase.FINISHED:
            return embed, ResultsView(self, language)
        return embed, None

    async def refresh_session_message(self, channel_id: int) -> None:
        message = self._messages.get(channel_id)
        built = self.build_session_message(channel_id)
        if message is None or built is None:
            return

        embed, view = built
        lock = self._refresh_locks.setdefault(channel_id, asyncio.Lock())
        async with lock:
            try:
                await message.edit(embed=embed, view=view)
            except discord.NotFound:
                logger.warning(f"Trivia message for channel {channel_id} was deleted")
                self._messages.pop(channel_id, None)
            except discord.HTTPException as e:
                logger.error(f"Failed to refresh trivia message in channel {channel_id}: {e}")

    async def acknowledge_action(self, interaction: discord.Interaction, result: Dict[str, Any]) -> None:
        """Reply to a button press; accepted actions show up through the message refresh."""
        try:
            if result.get('success'):
                await interaction.response.defer()
            elif result.get('user_message'):
                await interaction.response.send_message(result['user_message'], ephemeral=True)
            else:
                await interaction.response.defer()
        except discord.HTTPException as e:
            logger.error(f"Failed to acknowledge interaction: {e}")

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    def _language_for(self, channel_id: int) -> str:
        session = self.trivia_controller.get_session(channel_id)
        return session.language if session else self.config_manager.get_default_language()

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            help_embed = discord.Embed(
                title="🎯 Trivia Bot",
                description="لعبة أسئلة ثنائية اللغة | Bilingual trivia game",
                color=COLOR_ACTIVE
            )
            help_embed.add_field(
                name="🎮 Game Commands",
                value=(
                    "`/purchases` - List purchases you can play\n"
                    "`/play <purchase> [team_mode] [language]` - Start a game\n"
                    "`/stop` - Stop the game in this channel\n"
                    "`/status` - Show progress and scores"
                ),
                inline=False
            )
            help_embed.add_field(
                name="📋 Settings",
                value=(
                    "`/language <ar|en>` - Switch the display language\n"
                    "`/set_timer <seconds>` - Time per question (5-300 seconds)"
                ),
                inline=False
            )
            help_embed.add_field(
                name="🛟 Lifelines",
                value="💡 Hint · ⏭️ Skip · ✂️ 50/50 (each once per game)",
                inline=False
            )
            help_embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )
            await interaction.response.send_message(embed=help_embed)

        except Exception as e:
            logger.error(f"Error in help command: {e}")
            await self.send_error_response(interaction, "Failed to display help information")

    async def handle_purchases(self, interaction: discord.Interaction):
        """Handle /purchases command"""
        language = self._language_for(interaction.channel_id)
        purchases = self.data_manager.get_available_purchases()
        if not purchases:
            await self.send_warning_response(
                interaction, "No purchases found. Add them to purchases.json in the data directory."
            )
            return

        embed = discord.Embed(title="🛒 Purchases", color=COLOR_ACTIVE)
        for purchase_ref in purchases[:25]:
            names = []
            for category_id in self.data_manager.get_purchase_categories(purchase_ref):
                category = self.data_manager.get_category(category_id)
                names.append(category.name(language) if category else category_id)
            embed.add_field(name=purchase_ref, value=", ".join(names) or "-", inline=False)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    async def handle_play(self, interaction: discord.Interaction, purchase: str,
                          team_mode: bool = False, language: Optional[str] = None):
        """Handle /play command"""
        channel_id = interaction.channel_id
        result = self.trivia_controller.start_game(
            channel_id, purchase, team_mode=team_mode, language=language,
            listener=self.make_engine_listener(channel_id)
        )

        if not result['success'] and not result.get('empty'):
            await self.send_error_response(
                interaction, result.get('user_message', "Failed to start the game"), "❌ Cannot Start Game"
            )
            return

        built = self.build_session_message(channel_id)
        if built is None:
            await self.send_error_response(interaction, "Failed to start the game")
            return

        embed, view = built
        try:
            if view is None:
                await interaction.response.send_message(embed=embed)
            else:
                await interaction.response.send_message(embed=embed, view=view)
            self._messages[channel_id] = await interaction.original_response()
        except discord.HTTPException as e:
            logger.error(f"Failed to send trivia question in channel {channel_id}: {e}")
            self.trivia_controller.stop_game(channel_id)

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        channel_id = interaction.channel_id
        result = self.trivia_controller.stop_game(channel_id)
        self._messages.pop(channel_id, None)
        self._hints.pop(channel_id, None)

        if result['success']:
            await self.send_info_response(interaction, "Trivia game stopped.", "⏹️ Game Stopped")
        else:
            await self.send_info_response(interaction, result['user_message'])

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        summary = self.trivia_controller.get_session_status_summary(interaction.channel_id)
        await self.send_info_response(interaction, summary, "📊 Game Status")

    async def handle_language(self, interaction: discord.Interaction, language: str):
        """Handle /language command"""
        result = self.trivia_controller.set_language(interaction.channel_id, language)
        if result['success']:
            await self.send_info_response(interaction, result['user_message'], "🌐 Language")
            self.schedule_refresh(interaction.channel_id)
        else:
            await self.send_error_response(interaction, result['user_message'])

    async def handle_set_timer(self, interaction: discord.Interaction, seconds: int):
        """Handle /set_timer command"""
        result = self.config_manager.set_timer_duration(seconds)
        if result['success']:
            embed = discord.Embed(
                title="✅ Timer Duration Updated",
                description=f"Questions in new games will have **{seconds} seconds**",
                color=COLOR_ACTIVE
            )
            health_check = self.config_manager.get_configuration_health_check()
            if health_check['warnings']:
                embed.add_field(name="⚠️ Note", value="\n".join(health_check['warnings']), inline=False)
            await interaction.response.send_message(embed=embed)
        else:
            await interaction.response.send_message(result['user_message'], ephemeral=True)

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        await self._send_embed_response(interaction, message, title, 0xff0000,
                                        footer="If this error persists, try using /help for available commands")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        await self._send_embed_response(interaction, message, title, 0x6699ff)

    async def send_warning_response(self, interaction: discord.Interaction, message: str, title: str = "⚠️ Warning"):
        """Send formatted warning response to user"""
        await self._send_embed_response(interaction, message, title, 0xffaa00)

    async def _send_embed_response(self, interaction: discord.Interaction, message: str, title: str,
                                   color: int, footer: Optional[str] = None):
        try:
            embed = discord.Embed(title=title, description=message, color=color)
            if footer:
                embed.set_footer(text=footer)

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error(f"Failed to send response to user: {title}")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = TriviaBot(config)

    try:
        logger.info("Starting trivia bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
