"""
CITH Weekly Report Tracker
Direct messaging between users, restricted along the hierarchy.

Who may message whom:
    admin             → anyone
    anyone            → admin
    district_pastor   → area supervisors and centre leaders in their district
    area_supervisor   → centre leaders under them, their district pastor
    cith_centre       → their area supervisor
"""

import logging
from datetime import datetime, timezone

from cith.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from cith.models.auth import ROLE_ADMIN, ROLE_AREA, ROLE_CENTRE, ROLE_PASTOR
from cith.models.message import MESSAGE_CATEGORIES, MESSAGE_PRIORITIES, Message

logger = logging.getLogger(__name__)

MAX_SUBJECT_LENGTH = 300
MESSAGE_BOXES = ("inbox", "sent")


class MessagingService:
    def __init__(self, repos, directory, notifier, *, clock=None):
        self.repos = repos
        self.directory = directory
        self.notifier = notifier
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def can_message(self, sender, recipient) -> bool:
        if sender.role == ROLE_ADMIN or recipient.role == ROLE_ADMIN:
            return True
        try:
            if sender.role == ROLE_PASTOR:
                if recipient.role == ROLE_AREA:
                    area = self.directory.resolve_area_chain(recipient.area_supervisor_id)
                    return area.district.id == sender.district_id
                if recipient.role == ROLE_CENTRE:
                    chain = self.directory.resolve_centre_chain(recipient.cith_centre_id)
                    return chain.district.id == sender.district_id
                return False
            if sender.role == ROLE_AREA:
                if recipient.role == ROLE_CENTRE:
                    chain = self.directory.resolve_centre_chain(recipient.cith_centre_id)
                    return chain.area.id == sender.area_supervisor_id
                if recipient.role == ROLE_PASTOR:
                    area = self.directory.resolve_area_chain(sender.area_supervisor_id)
                    return area.district.id == recipient.district_id
                return False
            if sender.role == ROLE_CENTRE and recipient.role == ROLE_AREA:
                chain = self.directory.resolve_centre_chain(sender.cith_centre_id)
                return chain.area.id == recipient.area_supervisor_id
        except NotFoundError:
            # Unassigned or dangling membership never grants a messaging path
            return False
        return False

    def send(self, sender, to_id, subject, content, *, priority="normal", category="general", reply_to_id=None):
        recipient = self.repos.actors.get(to_id)
        if recipient is None:
            raise NotFoundError(resource="User", resource_id=to_id)
        if not sender.is_active or not self.can_message(sender, recipient):
            logger.warning(
                "Message denied: %s (%s) -> %s (%s)", sender.id, sender.role, recipient.id, recipient.role,
                extra={"actor_id": sender.id, "event_type": "message_denied", "deny_reason": "scope"},
            )
            raise AuthorizationError("send-message", "scope")

        errors = {}
        subject = subject.strip() if isinstance(subject, str) else ""
        content = content.strip() if isinstance(content, str) else ""
        if not subject:
            errors["subject"] = "required"
        elif len(subject) > MAX_SUBJECT_LENGTH:
            errors["subject"] = f"must be at most {MAX_SUBJECT_LENGTH} characters"
        if not content:
            errors["content"] = "required"
        priority = priority or "normal"
        category = category or "general"
        if priority not in MESSAGE_PRIORITIES:
            errors["priority"] = f"must be one of {sorted(MESSAGE_PRIORITIES)}"
        if category not in MESSAGE_CATEGORIES:
            errors["category"] = f"must be one of {sorted(MESSAGE_CATEGORIES)}"
        if reply_to_id is not None:
            original = self.repos.messages.get(reply_to_id)
            if original is None or sender.id not in (original.from_id, original.to_id):
                errors["reply_to_id"] = "must reference a message in your conversation"
        if errors:
            raise ValidationError("Invalid message", details=errors)

        message = Message(
            from_id=sender.id,
            to_id=recipient.id,
            subject=subject,
            content=content,
            priority=priority,
            category=category,
            reply_to_id=reply_to_id,
        )
        self.repos.messages.add(message)
        self.repos.commit()

        logger.info(
            "Message %s sent %s -> %s", message.id, sender.id, recipient.id,
            extra={"actor_id": sender.id, "event_type": "message_sent"},
        )
        self.notifier.message_sent(message)
        return message

    def list_messages(self, actor, *, box="inbox", is_read=None, limit=20, offset=0):
        """Returns (items, total) for the actor's inbox or sent box."""
        if box not in MESSAGE_BOXES:
            raise ValidationError(f"Invalid box '{box}'", details={"box": f"must be one of {list(MESSAGE_BOXES)}"})
        if box == "sent":
            return self.repos.messages.sent(actor.id, limit=limit, offset=offset)
        return self.repos.messages.inbox(actor.id, is_read=is_read, limit=limit, offset=offset)

    def get_message(self, message_id, actor):
        """Fetch a message the actor sent or received; reading it marks it read."""
        message = self.repos.messages.require(message_id)
        if actor.id not in (message.from_id, message.to_id):
            raise AuthorizationError("read-message", "scope")
        if message.to_id == actor.id and not message.is_read:
            self.repos.messages.mark_read([message.id], actor.id, self._clock())
            self.repos.commit()
            self.repos.expire(message)
        return message

    def unread_count(self, actor) -> int:
        return self.repos.messages.unread_count(actor.id)

    def mark_read(self, actor, message_ids) -> int:
        if not isinstance(message_ids, list) or not all(
            isinstance(i, int) and not isinstance(i, bool) for i in message_ids
        ):
            raise ValidationError("message_ids must be a list of ids", details={"message_ids": "must be a list of integers"})
        count = self.repos.messages.mark_read(message_ids, actor.id, self._clock())
        self.repos.commit()
        return count
