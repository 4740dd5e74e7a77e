"""
Discord front end for the Hero Trivia engine.

Hosts one game per channel and one profile per Discord user. The bot holds
no game rules: it translates slash commands into controller calls and engine
events into embeds.
"""
import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Set

import discord
from discord import app_commands
from discord.ext import commands

from .achievements import AchievementEvaluator, get_catalog
from .config_manager import ConfigManager
from .data_manager import DataManager
from .events import (
    ACHIEVEMENT_UNLOCKED, ANSWER_RESULT, QUESTION_CHANGED, SESSION_COMPLETED, TIMER_TICK,
    AchievementUnlocked, AnswerResult, EventEmitter, NotificationCenter, QuestionChanged,
    SessionCompleted, TimerTick
)
from .exceptions import InsufficientDataError, InvalidTransitionError
from .models import GameMode, PlayerProfile, SessionStatus
from .profile_store import JsonFileProfileStorage, PlayerProfileStore
from .question_generator import QuestionGenerator
from .session_controller import GameSessionController

logger = logging.getLogger(__name__)

OPTION_LABELS = "ABCD"

COLOR_INFO = 0x6699ff
COLOR_SUCCESS = 0x00ff00
COLOR_WARNING = 0xffaa00
COLOR_ERROR = 0xff0000
COLOR_QUESTION = 0xe23636

MODE_CHOICES = [app_commands.Choice(name=m.value.title(), value=m.value) for m in GameMode]
DIFFICULTY_CHOICES = [
    app_commands.Choice(name="Easy", value="easy"),
    app_commands.Choice(name="Medium", value="medium"),
    app_commands.Choice(name="Hard", value="hard"),
]
OPTION_CHOICES = [app_commands.Choice(name=label, value=label) for label in OPTION_LABELS]


def setup_logging(level: int = logging.INFO, log_directory: str = "logs") -> logging.Logger:
    """Set up console and file logging for the bot."""
    logs_dir = Path(log_directory)
    logs_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(logs_dir / "bot.log", encoding='utf-8'),
        ]
    )

    error_handler = logging.FileHandler(logs_dir / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    logging.getLogger().addHandler(error_handler)

    # Reduce discord.py noise
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)

    return logger


def build_question_embed(payload: QuestionChanged, lives: int) -> discord.Embed:
    question = payload.question
    number = payload.index + 1
    heading = f"Question {number}/{payload.total}" if payload.total else f"Question {number}"

    embed = discord.Embed(
        title=f"❓ {heading}",
        description=f"**{question.prompt}**",
        color=COLOR_QUESTION
    )
    embed.add_field(
        name="Options",
        value="\n".join(f"**{OPTION_LABELS[i]}.** {text}" for i, text in enumerate(question.options)),
        inline=False
    )
    if question.image_url:
        embed.set_image(url=question.image_url)

    footer = f"{question.difficulty.value.title()} • {question.points} pts • ❤️ {lives}"
    if payload.time_limit_sec:
        footer += f" • ⏱️ {payload.time_limit_sec}s"
    embed.set_footer(text=footer)
    return embed


def build_result_embed(payload: AnswerResult, correct_text: str) -> discord.Embed:
    if payload.correct:
        title, color = f"✅ Correct! +{payload.points_earned}", COLOR_SUCCESS
    elif payload.timed_out:
        title, color = "⏰ Time's up!", COLOR_WARNING
    elif payload.skipped:
        title, color = "⏭️ Skipped", COLOR_INFO
    else:
        title, color = "❌ Wrong answer", COLOR_ERROR

    embed = discord.Embed(title=title, description=payload.explanation, color=color)
    embed.add_field(
        name="Answer",
        value=f"**{OPTION_LABELS[payload.correct_index]}.** {correct_text}",
        inline=False
    )
    embed.add_field(name="Score", value=str(payload.score), inline=True)
    embed.add_field(name="Streak", value=f"🔥 {payload.streak}", inline=True)
    embed.add_field(name="Lives", value=f"❤️ {payload.lives}", inline=True)
    if payload.power_up_activated:
        embed.add_field(name="⚡ Power-up", value="Double points for the next 10 seconds!", inline=False)
    return embed


def build_completion_embed(payload: SessionCompleted) -> discord.Embed:
    summary = payload.summary
    title = "🏁 Quiz Ended Early" if summary.ended_early else "🎉 Quiz Complete!"
    embed = discord.Embed(
        title=title,
        description=f"Grade **{payload.grade}** with **{payload.score}** points",
        color=COLOR_SUCCESS
    )
    embed.add_field(
        name="📊 Results",
        value=(
            f"Correct: {summary.correct_answers}/{summary.questions_answered}\n"
            f"Accuracy: {payload.accuracy:.1f}%\n"
            f"Best streak: {payload.best_streak}\n"
            f"Timeouts: {summary.timeouts} • Skips: {summary.skips}\n"
            f"Time played: {summary.duration_sec:.0f}s"
        ),
        inline=False
    )
    if payload.unlocked:
        embed.add_field(
            name="🏆 Achievements Unlocked",
            value="\n".join(f"**{a.name}** (+{a.points} XP)" for a in payload.unlocked),
            inline=False
        )
    embed.set_footer(text="Use /play to start another quiz")
    return embed


def build_achievement_embed(payload: AchievementUnlocked) -> discord.Embed:
    achievement = payload.achievement
    embed = discord.Embed(
        title=f"🏆 {achievement.name}",
        description=achievement.description,
        color=COLOR_WARNING
    )
    embed.set_footer(text=f"{achievement.rarity.title()} • +{achievement.points} XP")
    return embed


def build_profile_embed(profile: PlayerProfile) -> discord.Embed:
    stats = profile.statistics
    embed = discord.Embed(
        title=f"🦸 {profile.display_name}",
        description=f"Level **{profile.level}** • {profile.experience} XP",
        color=COLOR_INFO
    )
    embed.add_field(
        name="🎮 Games",
        value=f"Played: {profile.games_played}\nTotal score: {profile.total_score}",
        inline=True
    )
    embed.add_field(
        name="🎯 Answers",
        value=(
            f"Answered: {stats.total_questions_answered}\n"
            f"Accuracy: {stats.accuracy:.1f}%\n"
            f"Avg time: {stats.average_response_time_ms / 1000:.1f}s"
        ),
        inline=True
    )
    embed.add_field(
        name="⭐ Highlights",
        value=(
            f"Best streak: {stats.best_streak}\n"
            f"Favorite category: {stats.favorite_category}\n"
            f"Achievements: {len(profile.achievements)}"
        ),
        inline=True
    )
    return embed


def build_status_embed(progress: Dict[str, Any]) -> discord.Embed:
    status = progress['status']
    color = {'active': COLOR_SUCCESS, 'paused': COLOR_WARNING}.get(status, COLOR_INFO)
    total = progress['total_questions']
    position = f"{progress['current_question']}/{total}" if total else str(progress['current_question'])

    embed = discord.Embed(
        title=f"📊 {progress['mode'].title()} Quiz Status",
        description=f"Status: **{status.title()}**",
        color=color
    )
    embed.add_field(
        name="Progress",
        value=(
            f"Question: {position}\n"
            f"Score: {progress['score']}\n"
            f"Streak: {progress['streak']} (best {progress['best_streak']})\n"
            f"Lives: {progress['lives']}"
        ),
        inline=False
    )
    if status != 'completed' and progress['time_remaining']:
        embed.add_field(name="Time remaining", value=f"{progress['time_remaining']}s", inline=False)
    return embed


@dataclass
class ChannelGame:
    """A channel's game: its controller, the player who owns it, and message state."""
    channel: Any
    player_id: int
    controller: GameSessionController
    profile_store: PlayerProfileStore
    question_message: Optional[discord.Message] = None
    advance_task: Optional[asyncio.Task] = None

    def cancel_advance(self) -> None:
        if self.advance_task is not None and not self.advance_task.done():
            self.advance_task.cancel()
        self.advance_task = None


class QuizBot(commands.Bot):
    """Discord bot that runs Hero Trivia games."""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None
        self.notifications = NotificationCenter()

        self.games: Dict[int, ChannelGame] = {}
        self.profiles: Dict[int, PlayerProfileStore] = {}
        self._background_tasks: Set[asyncio.Task] = set()

    async def setup_hook(self):
        """Called when the bot is starting up"""
        logger.info("Setting up bot components...")

        self.config_manager = ConfigManager()
        self.apply_configuration()

        settings = self.config_manager.get_settings()
        self.data_manager = DataManager(settings.dataset_path)
        self.load_subjects()

        await self.setup_commands()
        logger.info("Bot setup completed successfully")

    def apply_configuration(self):
        """Apply the quiz section of the configuration file."""
        result = self.config_manager.load_from_dict(self.app_config.get('quiz', {}))
        if result['success']:
            logger.info("Configuration applied successfully")
        else:
            logger.warning(f"Configuration applied with {len(result['errors'])} rejected values")

    def load_subjects(self):
        subjects = self.data_manager.load_subjects()
        logger.info(f"Loaded {len(subjects)} subjects")
        if self.data_manager.fallback_active:
            logger.warning(f"Using bundled dataset: {self.data_manager.get_load_errors()}")

    async def setup_commands(self):
        """Register slash commands"""

        @self.tree.command(name="help", description="Display available commands")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="play", description="Start a trivia game in this channel")
        @app_commands.describe(mode="Game mode", difficulty="Question difficulty")
        @app_commands.choices(mode=MODE_CHOICES, difficulty=DIFFICULTY_CHOICES)
        async def play_command(interaction: discord.Interaction, mode: str = "story", difficulty: str = "medium"):
            await self.handle_play(interaction, mode, difficulty)

        @self.tree.command(name="answer", description="Answer the current question")
        @app_commands.choices(option=OPTION_CHOICES)
        async def answer_command(interaction: discord.Interaction, option: str):
            await self.handle_answer(interaction, option)

        @self.tree.command(name="skip", description="Skip the current question")
        async def skip_command(interaction: discord.Interaction):
            await self.handle_skip(interaction)

        @self.tree.command(name="next", description="Move on to the next question")
        async def next_command(interaction: discord.Interaction):
            await self.handle_next(interaction)

        @self.tree.command(name="pause", description="Pause the current game")
        async def pause_command(interaction: discord.Interaction):
            await self.handle_pause(interaction)

        @self.tree.command(name="resume", description="Resume the paused game")
        async def resume_command(interaction: discord.Interaction):
            await self.handle_resume(interaction)

        @self.tree.command(name="stop", description="End the current game early")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="status", description="Show the current game's progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="profile", description="Show your player profile")
        async def profile_command(interaction: discord.Interaction):
            await self.handle_profile(interaction)

        @self.tree.command(name="achievements", description="List achievements and your progress")
        async def achievements_command(interaction: discord.Interaction):
            await self.handle_achievements(interaction)

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        logger.error(f"An error occurred in event {event}", exc_info=True)

    # ------------------------------------------------------------------
    # Game wiring
    # ------------------------------------------------------------------

    def get_profile_store(self, user) -> PlayerProfileStore:
        store = self.profiles.get(user.id)
        if store is None:
            storage = JsonFileProfileStorage(self.config_manager.get_settings().profile_directory)
            store = PlayerProfileStore(storage, str(user.id), getattr(user, 'display_name', str(user)))
            store.load()
            self.profiles[user.id] = store
        return store

    def create_game(self, channel, user) -> ChannelGame:
        """
        Build a controller wired to the channel.

        Raises:
            InsufficientDataError: If the loaded dataset cannot produce questions
        """
        settings = self.config_manager.get_settings()
        generator = QuestionGenerator(self.data_manager.get_subjects(), history_limit=settings.history_limit)
        emitter = EventEmitter()
        profile_store = self.get_profile_store(user)
        controller = GameSessionController(
            generator,
            profile_store=profile_store,
            evaluator=AchievementEvaluator(emitter, self.notifications),
            emitter=emitter,
            tick_seconds=settings.tick_seconds
        )
        game = ChannelGame(channel=channel, player_id=user.id, controller=controller, profile_store=profile_store)

        emitter.on(QUESTION_CHANGED, lambda payload: self.on_question_changed(game, payload))
        emitter.on(ANSWER_RESULT, lambda payload: self.on_answer_result(game, payload))
        emitter.on(SESSION_COMPLETED, lambda payload: self.on_session_completed(game, payload))
        emitter.on(ACHIEVEMENT_UNLOCKED, lambda payload: self.on_achievement_unlocked(game, payload))
        emitter.on(TIMER_TICK, lambda payload: self.on_timer_tick(game, payload))
        return game

    def spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def safe_send(self, channel, **kwargs) -> Optional[discord.Message]:
        try:
            return await channel.send(**kwargs)
        except discord.HTTPException as e:
            logger.error(f"Failed to send message to channel {getattr(channel, 'id', '?')}: {e}")
            return None

    def on_question_changed(self, game: ChannelGame, payload: QuestionChanged) -> None:
        game.cancel_advance()
        embed = build_question_embed(payload, game.controller.session.lives)

        async def send_question():
            game.question_message = await self.safe_send(game.channel, embed=embed)

        self.spawn(send_question())

    def on_answer_result(self, game: ChannelGame, payload: AnswerResult) -> None:
        question = game.controller.session.current_question
        self.spawn(self.safe_send(game.channel, embed=build_result_embed(payload, question.correct_option)))
        if not payload.skipped and game.controller.status is SessionStatus.ACTIVE:
            self.schedule_advance(game)

    def on_session_completed(self, game: ChannelGame, payload: SessionCompleted) -> None:
        game.cancel_advance()
        self.spawn(self.safe_send(game.channel, embed=build_completion_embed(payload)))

    def on_achievement_unlocked(self, game: ChannelGame, payload: AchievementUnlocked) -> None:
        delete_after = payload.notification.duration_sec if payload.notification else None
        self.spawn(self.safe_send(game.channel, embed=build_achievement_embed(payload), delete_after=delete_after))

    def on_timer_tick(self, game: ChannelGame, payload: TimerTick) -> None:
        if payload.remaining % 10 != 0 and payload.remaining != 5:
            return
        message = game.question_message
        if message is None or not message.embeds:
            return
        embed = message.embeds[0]
        embed.set_author(name=f"⏱️ {payload.remaining}s left")

        async def edit_timer():
            try:
                await message.edit(embed=embed)
            except discord.HTTPException as e:
                logger.debug(f"Failed to update timer display: {e}")

        self.spawn(edit_timer())

    def schedule_advance(self, game: ChannelGame) -> None:
        """Advance to the next question after the configured delay."""
        game.cancel_advance()
        delay = self.config_manager.get_settings().advance_delay_sec

        async def advance():
            await asyncio.sleep(delay)
            game.advance_task = None
            try:
                game.controller.next_question()
            except InvalidTransitionError as e:
                logger.debug(f"Auto-advance skipped: {e}")

        game.advance_task = self.spawn(advance())

    def get_game(self, channel_id: int) -> Optional[ChannelGame]:
        return self.games.get(channel_id)

    async def require_player_game(self, interaction: discord.Interaction) -> Optional[ChannelGame]:
        game = self.get_game(interaction.channel_id)
        if game is None or game.controller.status in (SessionStatus.IDLE, SessionStatus.COMPLETED):
            await self.send_info_response(interaction, "No game is running in this channel. Use `/play` to start one.",
                                          "ℹ️ No Active Game")
            return None
        if interaction.user.id != game.player_id:
            await self.send_warning_response(interaction, "Only the player who started this game can control it.")
            return None
        return game

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            help_embed = discord.Embed(
                title="🦸 Hero Trivia Commands",
                description="Test your comic-book knowledge",
                color=COLOR_SUCCESS
            )
            help_embed.add_field(
                name="🎮 Playing",
                value=(
                    "`/play <mode> <difficulty>` - Start a game (story, blitz, survival, multiplayer)\n"
                    "`/answer <A-D>` - Answer the current question\n"
                    "`/skip` - Skip the current question (no points, streak resets)\n"
                    "`/next` - Move on without waiting"
                ),
                inline=False
            )
            help_embed.add_field(
                name="⏯️ Game Control",
                value=(
                    "`/pause` - Pause the game and its timer\n"
                    "`/resume` - Resume a paused game\n"
                    "`/stop` - End the game early\n"
                    "`/status` - Show progress"
                ),
                inline=False
            )
            help_embed.add_field(
                name="🏆 Progress",
                value="`/profile` - Your level and statistics\n`/achievements` - Achievement list",
                inline=False
            )
            help_embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )
            await interaction.response.send_message(embed=help_embed)

        except Exception as e:
            logger.error(f"Error in help command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to display help", "❌ Help Error")

    async def handle_play(self, interaction: discord.Interaction, mode: str, difficulty: str):
        """Handle /play command"""
        try:
            channel_id = interaction.channel_id
            existing = self.get_game(channel_id)
            if existing is not None and existing.controller.status in (SessionStatus.ACTIVE, SessionStatus.PAUSED):
                await self.send_warning_response(
                    interaction,
                    "A game is already running in this channel. Use `/stop` to end it first.",
                    "⚠️ Game In Progress"
                )
                return

            game = self.create_game(interaction.channel, interaction.user)
            config = self.config_manager.get_session_config(GameMode(mode))

            embed = discord.Embed(
                title=f"🎮 {mode.title()} Mode",
                description=f"{interaction.user.mention} is playing at **{difficulty}** difficulty. Good luck!",
                color=COLOR_SUCCESS
            )
            await interaction.response.send_message(embed=embed)

            self.games[channel_id] = game
            game.controller.start(mode, difficulty, config)

        except InsufficientDataError as e:
            logger.error(f"Cannot start game: {e}")
            await self.send_error_response(interaction, "Not enough characters are loaded to build questions.",
                                           "❌ Dataset Error")
        except InvalidTransitionError as e:
            await self.send_warning_response(interaction, str(e))
        except ValueError as e:
            await self.send_error_response(interaction, f"Invalid game options: {e}", "❌ Invalid Options")
        except Exception as e:
            logger.error(f"Error in play command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to start the game", "❌ Game Error")

    async def handle_answer(self, interaction: discord.Interaction, option: str):
        """Handle /answer command"""
        try:
            game = await self.require_player_game(interaction)
            if game is None:
                return

            letter = option.strip().upper()
            if len(letter) != 1 or letter not in OPTION_LABELS:
                await self.send_error_response(interaction, f"Choose one of {', '.join(OPTION_LABELS)}.",
                                               "❌ Invalid Option")
                return

            # Result embeds are sent from spawned tasks, after this response
            game.controller.submit_answer(OPTION_LABELS.index(letter))
            await interaction.response.send_message(f"🔒 {interaction.user.display_name} chose **{letter}**")

        except InvalidTransitionError as e:
            await self.send_warning_response(interaction, str(e))
        except Exception as e:
            logger.error(f"Error in answer command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to record your answer", "❌ Answer Error")

    async def handle_skip(self, interaction: discord.Interaction):
        try:
            game = await self.require_player_game(interaction)
            if game is None:
                return
            game.controller.skip()
            await self.send_info_response(interaction, "Question skipped.", "⏭️ Skipped")
        except InvalidTransitionError as e:
            await self.send_warning_response(interaction, str(e))
        except Exception as e:
            logger.error(f"Error in skip command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to skip the question", "❌ Game Error")

    async def handle_next(self, interaction: discord.Interaction):
        try:
            game = await self.require_player_game(interaction)
            if game is None:
                return
            game.cancel_advance()
            game.controller.next_question()
            await self.send_info_response(interaction, "Next question coming up.", "➡️ Next")
        except InvalidTransitionError as e:
            await self.send_warning_response(interaction, str(e))
        except Exception as e:
            logger.error(f"Error in next command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to advance", "❌ Game Error")

    async def handle_pause(self, interaction: discord.Interaction):
        """Handle /pause command"""
        try:
            game = await self.require_player_game(interaction)
            if game is None:
                return
            game.cancel_advance()
            game.controller.pause()

            embed = discord.Embed(
                title="⏸️ Game Paused",
                description="The timer is frozen. Use `/resume` to continue.",
                color=COLOR_WARNING
            )
            await interaction.response.send_message(embed=embed)

        except InvalidTransitionError as e:
            await self.send_warning_response(interaction, str(e))
        except Exception as e:
            logger.error(f"Error in pause command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to pause the game", "❌ Game Control Error")

    async def handle_resume(self, interaction: discord.Interaction):
        """Handle /resume command"""
        try:
            game = await self.require_player_game(interaction)
            if game is None:
                return
            game.controller.resume()

            embed = discord.Embed(
                title="▶️ Game Resumed",
                description="The timer picks up where it left off.",
                color=COLOR_SUCCESS
            )
            await interaction.response.send_message(embed=embed)

            # An answered question was waiting to advance when the game paused
            if game.controller.is_resolved:
                self.schedule_advance(game)

        except InvalidTransitionError as e:
            await self.send_warning_response(interaction, str(e))
        except Exception as e:
            logger.error(f"Error in resume command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to resume the game", "❌ Game Control Error")

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        try:
            game = await self.require_player_game(interaction)
            if game is None:
                return
            game.cancel_advance()
            await interaction.response.send_message(embed=discord.Embed(
                title="⏹️ Game Stopped",
                description="Tallying your results...",
                color=COLOR_WARNING
            ))
            game.controller.end_early()

        except InvalidTransitionError as e:
            await self.send_warning_response(interaction, str(e))
        except Exception as e:
            logger.error(f"Error in stop command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to stop the game", "❌ Game Control Error")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        try:
            game = self.get_game(interaction.channel_id)
            progress = game.controller.progress() if game is not None else None
            if progress is None:
                await self.send_info_response(interaction, "No game has been played in this channel yet.",
                                              "ℹ️ No Game")
                return
            await interaction.response.send_message(embed=build_status_embed(progress))

        except Exception as e:
            logger.error(f"Error in status command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to get game status", "❌ Status Error")

    async def handle_profile(self, interaction: discord.Interaction):
        try:
            store = self.get_profile_store(interaction.user)
            await interaction.response.send_message(embed=build_profile_embed(store.profile), ephemeral=True)
        except Exception as e:
            logger.error(f"Error in profile command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to load your profile", "❌ Profile Error")

    async def handle_achievements(self, interaction: discord.Interaction):
        try:
            profile = self.get_profile_store(interaction.user).profile
            lines = []
            for achievement in get_catalog():
                mark = "🏆" if profile.has_achievement(achievement.id) else "🔒"
                lines.append(f"{mark} **{achievement.name}** - {achievement.description} ({achievement.points} XP)")

            unlocked = sum(1 for a in get_catalog() if profile.has_achievement(a.id))
            embed = discord.Embed(
                title="🏆 Achievements",
                description="\n".join(lines),
                color=COLOR_WARNING
            )
            embed.set_footer(text=f"{unlocked}/{len(lines)} unlocked")
            await interaction.response.send_message(embed=embed, ephemeral=True)

        except Exception as e:
            logger.error(f"Error in achievements command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to list achievements", "❌ Achievements Error")

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    async def _respond(self, interaction: discord.Interaction, embed: discord.Embed):
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=True)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=True)

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        embed = discord.Embed(title=title, description=message, color=COLOR_ERROR)
        embed.set_footer(text="If this error persists, try using /help for available commands")
        try:
            await self._respond(interaction, embed)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        embed = discord.Embed(title=title, description=message, color=COLOR_INFO)
        try:
            await self._respond(interaction, embed)
        except discord.HTTPException:
            logger.error("Failed to send info response to user")

    async def send_warning_response(self, interaction: discord.Interaction, message: str, title: str = "⚠️ Warning"):
        embed = discord.Embed(title=title, description=message, color=COLOR_WARNING)
        try:
            await self._respond(interaction, embed)
        except discord.HTTPException:
            logger.error("Failed to send warning response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Hero Trivia bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
