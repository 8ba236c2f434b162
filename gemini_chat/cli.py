# gemini_chat/cli.py
import logging
import time

from gemini_chat import config
from gemini_chat.exceptions import ChatError
from gemini_chat.models.message import Role
from gemini_chat.services.chat_service import ChatService
from gemini_chat.services.llm_service import LLMService, clean_title
from gemini_chat.services.store import ConversationStore

logger = logging.getLogger(__name__)

EXIT_TOKEN = "/bye"
AGENT_PREFIX = "Agent: "
USER_PREFIX = "You: "

MENU = """
=== GEMINI CLI Chat App ===
1) List conversations
2) Start new conversation
3) Continue a conversation
4) List available models
5) Delete conversation
6) Exit"""


def read_input(prompt: str) -> str:
    """Raises EOFError when stdin is closed."""
    return input(prompt).strip()


def get_valid_choice(prompt: str, max_choice: int) -> int:
    while True:
        choice = read_input(prompt)
        try:
            value = int(choice)
        except ValueError:
            value = 0
        if 1 <= value <= max_choice:
            return value
        print(f"Invalid choice. Please enter a number between 1 and {max_choice}.")


def clear_screen():
    print("\033[2J\033[H", end="", flush=True)


def echo_fragment(text: str):
    print(text, end="", flush=True)


def type_out(text: str, delay: float):
    for ch in text:
        print(ch, end="", flush=True)
        if delay:
            time.sleep(delay)
    print()


class Shell:
    """Numbered menu over the store and the Gemini service."""

    def __init__(self, store: ConversationStore, llm: LLMService, typing_effect: bool = True):
        self.store = store
        self.llm = llm
        self.chat = ChatService(store, llm)
        self.typing_effect = typing_effect

    # ---------- helpers ----------
    def _print_conversations(self, convos, header):
        print(f"\n{header}")
        for i, convo in enumerate(convos, start=1):
            print(f"{i}) {clean_title(convo.title)} (Model: {convo.model})")

    def _conversations_or_none(self):
        try:
            convos = self.store.list_conversations()
        except ChatError as e:
            print("Error retrieving conversations:", e)
            return None
        if not convos:
            print("No conversations found.")
            return None
        return convos

    def _select_model(self):
        models = self.llm.list_models()
        if not models:
            print("No models available.")
            return None
        print("\nAvailable Models:")
        for i, m in enumerate(models, start=1):
            print(f"{i}) {m.display_name}")
        choice = get_valid_choice("Enter model choice number: ", len(models))
        return models[choice - 1].model_id

    # ---------- menu actions ----------
    def list_conversations(self):
        convos = self._conversations_or_none()
        if convos is None:
            return
        print("\nConversations:")
        for i, convo in enumerate(convos, start=1):
            print(f"{i}) {clean_title(convo.title)} (ID: {convo.id})")

        while True:
            view = read_input("Do you want to view messages of a conversation? (y/n): ").lower()
            if view == "y":
                choice = get_valid_choice("Enter choice number: ", len(convos))
                self.show_conversation_messages(convos[choice - 1].id)
                return
            if view == "n":
                return
            print("Invalid choice. Please enter 'y' or 'n'.")

    def show_conversation_messages(self, conversation_id: str):
        try:
            messages = self.store.get_messages(conversation_id)
        except ChatError as e:
            print("Error retrieving messages:", e)
            return
        if not messages:
            print("No messages found for this conversation.")
            return
        print(f"\nMessages for conversation {conversation_id}:")
        for m in messages:
            print(f"[{m.created_at:%H:%M:%S}] {m.role.value}: {m.content}")

    def start_new_conversation(self):
        try:
            model = self._select_model()
        except ChatError as e:
            print("Error listing models:", e)
            return
        if model is None:
            return

        initial = read_input("Start Your Conversation: ")
        if not initial:
            print("Message cannot be empty.")
            return
        try:
            convo, reply = self.chat.start_conversation(model, initial)
        except ChatError as e:
            logger.warning("Conversation start failed: %s", e)
            print("Error starting conversation:", e)
            return

        print(AGENT_PREFIX, end="")
        type_out(reply, config.TYPE_CHAR_DELAY if self.typing_effect else 0.0)
        print(f"New conversation created with ID: {convo.id} and title: {convo.title}")
        self.conversation_loop(convo.id, convo.model)

    def continue_conversation(self):
        convos = self._conversations_or_none()
        if convos is None:
            return
        self._print_conversations(convos, "Select a conversation to continue:")
        choice = get_valid_choice("Enter choice number: ", len(convos))
        convo = convos[choice - 1]

        clear_screen()
        print(f"\n=== Conversation History: {clean_title(convo.title)} ===")
        try:
            messages = self.store.get_messages(convo.id)
        except ChatError as e:
            print("Error retrieving messages:", e)
            return
        for m in messages:
            prefix = AGENT_PREFIX if m.role is Role.ASSISTANT else USER_PREFIX
            print(f"{prefix}{m.content}")

        self.conversation_loop(convo.id, convo.model)

    def conversation_loop(self, conversation_id: str, model: str):
        while True:
            text = read_input(f"Enter your message (type {EXIT_TOKEN} to exit): ")
            if text == EXIT_TOKEN:
                break
            if not text:
                continue
            print(AGENT_PREFIX, end="", flush=True)
            try:
                self.chat.exchange(conversation_id, model, text, on_fragment=echo_fragment)
            except ChatError as e:
                print()
                logger.warning("Exchange failed in %s: %s", conversation_id, e)
                print("Error in conversation:", e)
                continue
            print()

    def list_models(self):
        try:
            models = self.llm.list_models()
        except ChatError as e:
            print("Error listing models:", e)
            return
        print("\nAvailable Models:")
        for m in models:
            print(f"{m.display_name} ({m.model_id})")

    def delete_conversation(self):
        convos = self._conversations_or_none()
        if convos is None:
            return
        self._print_conversations(convos, "Select a conversation to delete:")
        choice = get_valid_choice("Enter choice number: ", len(convos))
        convo = convos[choice - 1]

        confirm = read_input(f"Are you sure you want to delete '{clean_title(convo.title)}'? (y/n): ")
        if confirm.lower() != "y":
            print("Deletion cancelled.")
            return
        try:
            self.store.delete_conversation(convo.id)
        except ChatError as e:
            print("Error deleting conversation:", e)
            return
        print(f"Conversation '{clean_title(convo.title)}' has been deleted.")

    def run(self):
        actions = {
            "1": self.list_conversations,
            "2": self.start_new_conversation,
            "3": self.continue_conversation,
            "4": self.list_models,
            "5": self.delete_conversation,
        }
        try:
            while True:
                print(MENU)
                choice = read_input("Enter choice: ")
                if choice == "6":
                    print("Exiting...")
                    return
                action = actions.get(choice)
                if action is None:
                    print("Invalid choice. Please try again.")
                    continue
                action()
        except EOFError:
            print("\nExiting...")
