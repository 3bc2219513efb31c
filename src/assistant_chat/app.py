"""Textual shell that observes the session store and forwards user actions."""

from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import Any

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widgets import Footer, Header, Input, LoadingIndicator, OptionList, Static
from textual.widgets.option_list import Option

from .config import load_config, resolve_token
from .controller import (
    DeleteConversation,
    LoadConversations,
    NewConversation,
    SelectConversation,
    SessionCommand,
    SessionController,
    SubmitMessage,
)
from .exceptions import GatewayError
from .logging_utils import configure_logging
from .managers import SendOutcome
from .models import Conversation, Role
from .screens import ConfirmScreen
from .state import DisplayMode, SessionSnapshot

LOGGER = logging.getLogger(__name__)

WELCOME_TEXT = "Welcome!\n\nType a message below to start a conversation."


def format_timestamp(moment: datetime, now: datetime | None = None) -> str:
    """Render a sidebar timestamp relative to ``now``.

    Same day shows the clock time, then "Yesterday", the weekday within a
    week, and day/month beyond that.
    """
    current = now or datetime.now(UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    if current.tzinfo is None:
        current = current.replace(tzinfo=UTC)
    hours = (current - moment).total_seconds() / 3600
    local = moment.astimezone(current.tzinfo)
    if hours < 24:
        return local.strftime("%H:%M")
    if hours < 48:
        return "Yesterday"
    if hours < 168:
        return local.strftime("%A")
    return local.strftime("%d/%m")


class AssistantChatApp(App[None]):
    """Conversation sidebar, transcript view and message input."""

    CSS = """
    #app-root {
        height: 1fr;
    }

    #sidebar {
        width: 32;
        border-right: solid $panel;
    }

    #sidebar-title {
        padding: 0 1;
        text-style: bold;
    }

    #conversation_list {
        height: 1fr;
    }

    #conversation_title {
        padding: 0 1;
        text-style: bold;
    }

    #welcome {
        height: 1fr;
        content-align: center middle;
        text-align: center;
    }

    #loading {
        height: 1fr;
    }

    #transcript {
        height: 1fr;
        padding: 0 1;
    }
    """

    DEFAULT_ACTION_DESCRIPTIONS: dict[str, str] = {
        "new_conversation": "New chat",
        "delete_conversation": "Delete chat",
        "refresh_conversations": "Refresh",
        "quit": "Quit",
    }

    def __init__(
        self,
        controller: SessionController | None = None,
        config: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        super().__init__()
        if config is None:
            config = load_config()
            configure_logging(config["logging"])
        self.config = config
        self.controller = controller or SessionController.from_config(
            config, resolve_token(config)
        )
        self.store = self.controller.store
        self._binding_specs = self._binding_specs_from_config(config)
        self._mounted = False
        self._listed_ids: list[str] = []

    @classmethod
    def _binding_specs_from_config(
        cls, config: dict[str, dict[str, Any]]
    ) -> list[Binding]:
        keybinds = config.get("keybinds", {})
        bindings: list[Binding] = []
        for action_name, description in cls.DEFAULT_ACTION_DESCRIPTIONS.items():
            binding_key = keybinds.get(action_name)
            if isinstance(binding_key, str) and binding_key.strip():
                bindings.append(
                    Binding(key=binding_key.strip(), action=action_name, description=description)
                )
        return bindings

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="app-root"):
            with Vertical(id="sidebar"):
                yield Static("Conversations", id="sidebar-title")
                yield OptionList(id="conversation_list")
            with Vertical(id="main"):
                yield Static("", id="conversation_title")
                yield Static(WELCOME_TEXT, id="welcome")
                yield LoadingIndicator(id="loading")
                with VerticalScroll(id="transcript"):
                    yield Static("", id="transcript_body")
                yield Input(placeholder="Type your message...", id="message_input")
        yield Footer()

    def on_mount(self) -> None:
        self.title = str(self.config["app"]["title"])
        for binding in self._binding_specs:
            self.bind(binding.key, binding.action, description=binding.description)
        self._mounted = True
        self.store.subscribe(self._render_snapshot)
        self._render_snapshot(self.store.snapshot())
        self.query_one("#message_input", Input).focus()
        self._submit(LoadConversations())

    async def on_unmount(self) -> None:
        self.store.unsubscribe(self._render_snapshot)
        await self.controller.aclose()

    # -- rendering -------------------------------------------------------

    def _render_snapshot(self, snapshot: SessionSnapshot) -> None:
        if not self._mounted:
            return
        self._render_conversation_list(snapshot)
        active = snapshot.active_conversation
        self.query_one("#conversation_title", Static).update(
            active.title if active is not None else ""
        )
        mode = snapshot.display_mode
        self.query_one("#welcome", Static).display = mode is DisplayMode.WELCOME
        self.query_one("#loading", LoadingIndicator).display = mode is DisplayMode.LOADING
        transcript = self.query_one("#transcript", VerticalScroll)
        transcript.display = mode is DisplayMode.TRANSCRIPT
        if mode is DisplayMode.TRANSCRIPT:
            self.query_one("#transcript_body", Static).update(
                self._transcript_text(snapshot)
            )
            transcript.scroll_end(animate=False)
        input_widget = self.query_one("#message_input", Input)
        was_disabled = input_widget.disabled
        input_widget.disabled = snapshot.sending
        if was_disabled and not snapshot.sending:
            input_widget.focus()

    def _render_conversation_list(self, snapshot: SessionSnapshot) -> None:
        option_list = self.query_one("#conversation_list", OptionList)
        option_list.clear_options()
        option_list.add_options(
            [self._conversation_option(item) for item in snapshot.conversations]
        )
        self._listed_ids = [item.id for item in snapshot.conversations]
        active = snapshot.active_conversation
        if active is not None and active.id in self._listed_ids:
            option_list.highlighted = self._listed_ids.index(active.id)

    @staticmethod
    def _conversation_option(conversation: Conversation) -> Option:
        label = Text(conversation.title, overflow="ellipsis", no_wrap=True)
        label.append(f"  {format_timestamp(conversation.updated_at)}", style="dim")
        return Option(label, id=conversation.id)

    @staticmethod
    def _transcript_text(snapshot: SessionSnapshot) -> Text:
        text = Text()
        for entry in snapshot.transcript:
            speaker = "You" if entry.role is Role.USER else "Assistant"
            style = "bold cyan" if entry.role is Role.USER else "bold green"
            text.append(f"{speaker}", style=style)
            if entry.is_provisional:
                text.append(" (sending...)", style="dim")
            text.append("\n")
            text.append(f"{entry.content}\n\n")
        return text

    # -- commands --------------------------------------------------------

    def _submit(self, command: SessionCommand) -> None:
        self.run_worker(self._run_command(command), group="session", exit_on_error=False)

    async def _run_command(self, command: SessionCommand) -> None:
        try:
            result = await self.controller.dispatch(command)
        except GatewayError as exc:
            self.notify(str(exc), title="Error", severity="error")
            return
        if isinstance(command, DeleteConversation):
            self.notify("The conversation was removed.", title="Conversation deleted")
        elif result is SendOutcome.REJECTED:
            if isinstance(command, SubmitMessage):
                input_widget = self.query_one("#message_input", Input)
                if not input_widget.value:
                    input_widget.value = command.content
            self.notify("Wait for the current reply before sending again.", severity="warning")

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "message_input":
            return
        event.stop()
        if self.store.sending or not event.value.strip():
            return
        event.input.value = ""
        self._submit(SubmitMessage(event.value))

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option_list.id != "conversation_list":
            return
        event.stop()
        conversation_id = event.option.id
        if conversation_id and conversation_id != self.store.active_conversation_id:
            self._submit(SelectConversation(conversation_id))

    def action_new_conversation(self) -> None:
        self._submit(NewConversation())

    def action_refresh_conversations(self) -> None:
        self._submit(LoadConversations())

    def action_delete_conversation(self) -> None:
        option_list = self.query_one("#conversation_list", OptionList)
        target: str | None = None
        index = option_list.highlighted
        if index is not None and 0 <= index < len(self._listed_ids):
            target = self._listed_ids[index]
        if target is None:
            target = self.store.active_conversation_id
        if target is None:
            return
        conversation = self.store.get_conversation(target)
        title = conversation.title if conversation is not None else target

        def _on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self._submit(DeleteConversation(target))

        self.push_screen(
            ConfirmScreen(
                "Delete conversation?",
                f"{title!r} and all of its messages will be removed.",
            ),
            _on_confirm,
        )
