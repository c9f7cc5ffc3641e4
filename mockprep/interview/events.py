"""
Event-driven architecture for the interview system.
"""
import logging
from abc import ABC
from typing import Dict, Any, List, Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of interview events."""
    INTERVIEW_STARTED = "interview_started"
    QUESTION_PRESENTED = "question_presented"
    STATE_CHANGED = "state_changed"
    ANSWER_SCORED = "answer_scored"
    FOLLOW_UP_GENERATED = "follow_up_generated"
    FOLLOW_UP_FAILED = "follow_up_failed"
    CAPTURE_STOPPED = "capture_stopped"
    CLIP_UPLOADED = "clip_uploaded"
    CLIP_UPLOAD_FAILED = "clip_upload_failed"
    INTERVIEW_COMPLETED = "interview_completed"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class InterviewEvent(ABC):
    """Base class for all interview events."""
    event_type: EventType
    interview_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class InterviewStartedEvent(InterviewEvent):
    """Event fired when the first question is about to be presented."""
    def __init__(self, interview_id: str, timestamp: float, total_questions: int):
        super().__init__(
            event_type=EventType.INTERVIEW_STARTED,
            interview_id=interview_id,
            timestamp=timestamp,
            data={"total_questions": total_questions}
        )


@dataclass
class QuestionPresentedEvent(InterviewEvent):
    """Event fired when a root or follow-up question is put to the user."""
    def __init__(self, interview_id: str, timestamp: float, question_index: int,
                 question: str, is_follow_up: bool):
        super().__init__(
            event_type=EventType.QUESTION_PRESENTED,
            interview_id=interview_id,
            timestamp=timestamp,
            data={
                "question_index": question_index,
                "question": question,
                "is_follow_up": is_follow_up
            }
        )


@dataclass
class StateChangedEvent(InterviewEvent):
    def __init__(self, interview_id: str, timestamp: float, old_state: str, new_state: str):
        super().__init__(
            event_type=EventType.STATE_CHANGED,
            interview_id=interview_id,
            timestamp=timestamp,
            data={"old_state": old_state, "new_state": new_state}
        )


@dataclass
class AnswerScoredEvent(InterviewEvent):
    """Event fired once an answer is scored and stored."""
    def __init__(self, interview_id: str, timestamp: float, answer_id: int,
                 question_index: int, rating: int, is_follow_up: bool):
        super().__init__(
            event_type=EventType.ANSWER_SCORED,
            interview_id=interview_id,
            timestamp=timestamp,
            data={
                "answer_id": answer_id,
                "question_index": question_index,
                "rating": rating,
                "is_follow_up": is_follow_up
            }
        )


@dataclass
class FollowUpGeneratedEvent(InterviewEvent):
    def __init__(self, interview_id: str, timestamp: float, parent_answer_id: int, question: str):
        super().__init__(
            event_type=EventType.FOLLOW_UP_GENERATED,
            interview_id=interview_id,
            timestamp=timestamp,
            data={"parent_answer_id": parent_answer_id, "question": question}
        )


@dataclass
class FollowUpFailedEvent(InterviewEvent):
    """Event fired when no follow-up could be generated; the interview moves on."""
    def __init__(self, interview_id: str, timestamp: float, parent_answer_id: int, reason: str):
        super().__init__(
            event_type=EventType.FOLLOW_UP_FAILED,
            interview_id=interview_id,
            timestamp=timestamp,
            data={"parent_answer_id": parent_answer_id, "reason": reason}
        )


@dataclass
class CaptureStoppedEvent(InterviewEvent):
    """Event fired when speech capture ends without the user asking for it."""
    def __init__(self, interview_id: str, timestamp: float, reason: str):
        super().__init__(
            event_type=EventType.CAPTURE_STOPPED,
            interview_id=interview_id,
            timestamp=timestamp,
            data={"reason": reason}
        )


@dataclass
class ClipUploadedEvent(InterviewEvent):
    def __init__(self, interview_id: str, timestamp: float, answer_id: int, url: str):
        super().__init__(
            event_type=EventType.CLIP_UPLOADED,
            interview_id=interview_id,
            timestamp=timestamp,
            data={"answer_id": answer_id, "url": url}
        )


@dataclass
class ClipUploadFailedEvent(InterviewEvent):
    def __init__(self, interview_id: str, timestamp: float, answer_id: int):
        super().__init__(
            event_type=EventType.CLIP_UPLOAD_FAILED,
            interview_id=interview_id,
            timestamp=timestamp,
            data={"answer_id": answer_id}
        )


@dataclass
class InterviewCompletedEvent(InterviewEvent):
    """Event fired when the last question has been answered."""
    def __init__(self, interview_id: str, timestamp: float, answered_count: int,
                 follow_up_count: int):
        super().__init__(
            event_type=EventType.INTERVIEW_COMPLETED,
            interview_id=interview_id,
            timestamp=timestamp,
            data={
                "answered_count": answered_count,
                "follow_up_count": follow_up_count
            }
        )


@dataclass
class ErrorOccurredEvent(InterviewEvent):
    """Event fired when an error occurs."""
    def __init__(self, interview_id: str, timestamp: float, error_type: str,
                 error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            interview_id=interview_id,
            timestamp=timestamp,
            data={
                "error_type": error_type,
                "error_message": error_message,
                "component": component
            }
        )


EventHandler = Callable[[InterviewEvent], None]


class InterviewEventBus:
    """Event bus for interview system communication."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: InterviewEvent) -> None:
        """
        Emit an event to all subscribers.

        A failing handler is logged and does not stop the others.
        """
        logger.debug(f"Emitting event: {event.event_type} for interview {event.interview_id}")

        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in list(self._global_handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")

    def clear_handlers(self) -> None:
        """Clear all event handlers."""
        self._handlers.clear()
        self._global_handlers.clear()
        logger.debug("Cleared all event handlers")


class EventLogger:
    """Logs all events for debugging and analysis."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.logger.setLevel(log_level)

    def handle_event(self, event: InterviewEvent) -> None:
        """Log event details."""
        self.logger.info(f"Event: {event.event_type.value} | Interview: {event.interview_id} | Data: {event.data}")


class InterviewMetrics:
    """Collects metrics from interview events."""

    def __init__(self):
        self.reset()

    def handle_event(self, event: InterviewEvent) -> None:
        """Update metrics based on event."""
        if event.event_type == EventType.INTERVIEW_STARTED:
            self.interviews_started += 1
        elif event.event_type == EventType.INTERVIEW_COMPLETED:
            self.interviews_completed += 1
        elif event.event_type == EventType.QUESTION_PRESENTED:
            self.questions_presented += 1
        elif event.event_type == EventType.ANSWER_SCORED:
            self.answers_scored += 1
        elif event.event_type == EventType.FOLLOW_UP_GENERATED:
            self.follow_ups_generated += 1
        elif event.event_type == EventType.FOLLOW_UP_FAILED:
            self.follow_ups_failed += 1
        elif event.event_type == EventType.CAPTURE_STOPPED:
            self.capture_stops += 1
        elif event.event_type == EventType.CLIP_UPLOADED:
            self.clips_uploaded += 1
        elif event.event_type == EventType.CLIP_UPLOAD_FAILED:
            self.upload_failures += 1
        elif event.event_type == EventType.ERROR_OCCURRED:
            self.errors_occurred += 1

    def get_metrics(self) -> Dict[str, int]:
        """Get current metrics snapshot."""
        return {
            "interviews_started": self.interviews_started,
            "interviews_completed": self.interviews_completed,
            "questions_presented": self.questions_presented,
            "answers_scored": self.answers_scored,
            "follow_ups_generated": self.follow_ups_generated,
            "follow_ups_failed": self.follow_ups_failed,
            "capture_stops": self.capture_stops,
            "clips_uploaded": self.clips_uploaded,
            "upload_failures": self.upload_failures,
            "errors_occurred": self.errors_occurred
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self.interviews_started = 0
        self.interviews_completed = 0
        self.questions_presented = 0
        self.answers_scored = 0
        self.follow_ups_generated = 0
        self.follow_ups_failed = 0
        self.capture_stops = 0
        self.clips_uploaded = 0
        self.upload_failures = 0
        self.errors_occurred = 0
