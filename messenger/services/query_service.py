"""
Query/Read API

Stateless composition of the directory, ledger and delivery tracker into the
response shapes clients consume. Errors from the components pass through
unchanged.
"""

from typing import List, Optional
from sqlmodel import Session

from messenger.config import DEFAULT_PAGE_SIZE
from messenger.errors import NotParticipant
from messenger.models.conversation import Conversation
from messenger.schemas.conversation import ConversationSummary
from messenger.schemas.message import MessageStatusView, MessageView
from messenger.services.conversation_directory import ConversationDirectory
from messenger.services.delivery_status import DeliveryStatusTracker
from messenger.services.message_ledger import MessageLedger
from messenger.services.publisher import MessagePublisher, NullPublisher


class QueryService:
    """Builds conversation and message views for one request"""

    def __init__(self, db: Session, publisher: Optional[MessagePublisher] = None, **ledger_options):
        self.db = db
        self.directory = ConversationDirectory(db)
        self.tracker = DeliveryStatusTracker(db)
        self.ledger = MessageLedger(
            db,
            self.directory,
            self.tracker,
            publisher if publisher is not None else NullPublisher(),
            **ledger_options,
        )

    def create_or_get_conversation(self, user_id: str, other_user_id: str) -> ConversationSummary:
        conversation, _ = self.directory.get_or_create(user_id, other_user_id)
        return self.summarize(conversation, user_id)

    def get_conversations_for_user(self, user_id: str) -> List[ConversationSummary]:
        return [
            self.summarize(conversation, user_id)
            for conversation in self.directory.list_for_user(user_id)
        ]

    def get_message_page(
        self,
        conversation_id: int,
        viewer_id: str,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        before_id: Optional[int] = None,
    ) -> List[MessageView]:
        self.directory.require_participant(conversation_id, viewer_id)
        messages = self.ledger.list_by_conversation(conversation_id, page, page_size, before_id)
        return [MessageView.model_validate(message) for message in messages]

    def send_message(
        self,
        conversation_id: int,
        sender_id: str,
        body: str,
        client_nonce: Optional[str] = None,
    ) -> MessageView:
        message, _ = self.ledger.append(conversation_id, sender_id, body, client_nonce)
        return MessageView.model_validate(message)

    def message_statuses(self, message_id: int, viewer_id: str) -> List[MessageStatusView]:
        message = self.ledger.get(message_id)
        conversation = self.directory.get(message.conversation_id)
        if not conversation.has_participant(viewer_id):
            raise NotParticipant("You are not a participant in this conversation")
        return [MessageStatusView.model_validate(row) for row in self.tracker.statuses_for(message_id)]

    def summarize(self, conversation: Conversation, viewer_id: str) -> ConversationSummary:
        last_message = None
        if conversation.last_message_id is not None:
            last_message = MessageView.model_validate(self.ledger.get(conversation.last_message_id))

        return ConversationSummary(
            id=conversation.id,
            participant_ids=conversation.participant_ids,
            last_message=last_message,
            unread_count=self.tracker.unread_count(conversation.id, viewer_id),
            updated_at=conversation.updated_at,
        )
