# gemini_chat/services/chat_service.py
import logging
from typing import Callable, Optional, Tuple

from gemini_chat.schemas.conversation import ConversationOut
from gemini_chat.schemas.message import MessageOut
from gemini_chat.services.llm_service import LLMService
from gemini_chat.services.store import ConversationStore

logger = logging.getLogger(__name__)


class ChatService:
    """Runs one exchange at a time; nothing is stored unless the model call succeeds."""

    def __init__(self, store: ConversationStore, llm: LLMService):
        self.store = store
        self.llm = llm

    def start_conversation(self, model: str, initial_message: str) -> Tuple[ConversationOut, str]:
        titled = self.llm.start_conversation(model, initial_message)
        convo = self.store.create_conversation(
            titled.title, model, exchange=(initial_message, titled.reply)
        )
        logger.info("Created conversation %s (%s) on %s", convo.id, convo.title, model)
        return convo, titled.reply

    def exchange(
        self,
        conversation_id: str,
        model: str,
        user_text: str,
        on_fragment: Optional[Callable[[str], None]] = None,
    ) -> str:
        """
        Send user_text with the stored history as context, then store the pair.
        Returns the reply.
        """
        messages = self.store.get_messages(conversation_id)
        messages.append(MessageOut.pending(user_text))
        reply = self.llm.generate_reply(model, messages, on_fragment=on_fragment)
        self.store.add_exchange(conversation_id, user_text, reply)
        logger.debug("Stored exchange in conversation %s", conversation_id)
        return reply
