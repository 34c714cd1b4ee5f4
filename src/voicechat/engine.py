"""Engines that run one spoken turn of a conversation.

An engine owns the ordering of a pipeline run:
transcribe -> load session -> compose -> complete -> persist -> synthesize.
It reaches its collaborators through the bound app (``app.speech``,
``app.llm``, ``app.store`` and ``app.options``).
"""

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import IO, Any, Dict, List, Optional, Union

from .exceptions import (
    CancelledError,
    CollaboratorError,
    EmptyTranscriptError,
    InputError,
    StoreError,
    VoiceChatError,
)
from .models import (
    ASSISTANT_ROLE,
    SYSTEM_ROLE,
    USER_ROLE,
    Message,
    Reply,
    Session,
    is_valid_session_id,
    new_session_id,
)

logger = logging.getLogger(__name__)

AudioInput = Union[bytes, bytearray, memoryview, IO[bytes]]


class Stage(str, Enum):
    RECEIVING_AUDIO = "receiving_audio"
    TRANSCRIBING = "transcribing"
    LOADING_SESSION = "loading_session"
    COMPOSING = "composing"
    AWAITING_COMPLETION = "awaiting_completion"
    PERSISTING = "persisting"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    FAILED = "failed"


class Engine(ABC):
    """Abstract base class for pipeline engines."""

    def __init__(self, app: Any = None) -> None:
        self.app = app

    @abstractmethod
    def handle(
        self,
        audio: AudioInput,
        session_id: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Reply:
        """Produces a spoken reply to one spoken utterance.

        Parameters
        ----------
        audio : bytes or binary file-like
            The complete utterance. Streams are read to the end first.
        session_id : str, optional
            Conversation to continue. ``None`` or ``""`` starts a new one.
        cancel : threading.Event, optional
            Set by the caller to abandon the run. It is checked between
            stages, so a provider call already in flight runs until it
            returns or its timeout expires.

        Returns
        -------
        Reply
            Session id (new or continued), transcript, reply text and audio.

        Raises
        ------
        VoiceChatError
            ``InputError``, ``CollaboratorError``, ``StoreError`` or
            ``CancelledError``, tagged with the stage that failed.
        """
        pass


class Synchronous(Engine):
    """Runs every stage on the calling thread."""

    def handle(self, audio, session_id=None, cancel=None):
        if self.app is None:
            raise RuntimeError("Engine is not bound to an app")

        stage = Stage.RECEIVING_AUDIO
        try:
            self._enter(stage, cancel)
            data = self._read_audio(audio)
            session_id = self._check_session_id(session_id)
            logger.info("Received %d bytes of voice data", len(data))

            stage = Stage.TRANSCRIBING
            self._enter(stage, cancel)
            transcript = self._transcribe(data)
            logger.debug("Transcript: %s", transcript)

            stage = Stage.LOADING_SESSION
            self._enter(stage, cancel)
            # The session lock is held until the updated history is saved.
            with self.app.store.checkout(session_id) as session:
                stage = Stage.COMPOSING
                self._enter(stage, cancel)
                history = list(session.messages) if session is not None else []
                target_id = session.id if session is not None else new_session_id()
                user_message = Message(role=USER_ROLE, content=transcript)
                prompt = self._compose(history, user_message)

                stage = Stage.AWAITING_COMPLETION
                self._enter(stage, cancel)
                reply_message = self._complete(prompt)

                stage = Stage.PERSISTING
                self._enter(stage, cancel)
                updated = Session(
                    id=target_id, messages=history + [user_message, reply_message]
                )
                self._persist(updated)

            stage = Stage.SYNTHESIZING
            self._enter(stage, cancel)
            reply_audio = self._synthesize(reply_message.content)

            stage = Stage.DONE
            logger.debug("Run for session %s is %s", target_id, stage.value)
            return Reply(
                session_id=target_id,
                transcript=transcript,
                reply_text=reply_message.content,
                audio=reply_audio,
            )
        except VoiceChatError as e:
            e.stage = stage.value
            logger.warning(
                "Pipeline run %s during %s: %s", Stage.FAILED.value, stage.value, e
            )
            raise

    def _enter(self, stage: Stage, cancel: Optional[threading.Event]) -> None:
        if cancel is not None and cancel.is_set():
            raise CancelledError(f"Run cancelled before {stage.value}")
        logger.debug("Entering stage %s", stage.value)

    @staticmethod
    def _read_audio(audio: AudioInput) -> bytes:
        if isinstance(audio, (bytes, bytearray, memoryview)):
            data = bytes(audio)
        elif hasattr(audio, "read"):
            try:
                data = audio.read()
            except (OSError, ValueError) as e:
                raise InputError(f"Could not read audio: {e}") from e
            if not isinstance(data, (bytes, bytearray)):
                raise InputError("Audio stream must be opened in binary mode")
            data = bytes(data)
        else:
            raise InputError(f"Unsupported audio input: {type(audio).__name__}")
        if not data:
            raise InputError("Audio is empty")
        return data

    @staticmethod
    def _check_session_id(session_id: Optional[str]) -> Optional[str]:
        if not session_id:
            return None
        if not is_valid_session_id(session_id):
            raise InputError(f"Malformed session id: {session_id!r}")
        return session_id

    def _transcribe(self, data: bytes) -> str:
        try:
            transcript = self.app.speech.transcribe(data)
        except Exception as e:
            raise CollaboratorError(f"Transcription failed: {e}") from e
        transcript = (transcript or "").strip()
        if not transcript:
            raise EmptyTranscriptError("Transcription produced no text")
        return transcript

    def _compose(
        self, history: List[Message], user_message: Message
    ) -> List[Dict[str, str]]:
        system = Message(role=SYSTEM_ROLE, content=self.app.options.system_prompt)
        return [m.model_dump() for m in [system, *history, user_message]]

    def _complete(self, prompt: List[Dict[str, str]]) -> Message:
        model = self.app.options.model
        try:
            response = self.app.llm.generate_response(prompt, model=model)
            choices = self.app.llm.extract_choices(response)
        except Exception as e:
            raise CollaboratorError(f"Chat completion failed: {e}") from e
        if not choices:
            raise CollaboratorError("Received empty chat completion (no choices)")
        content = choices[0].content or ""
        if not content.strip():
            raise CollaboratorError("Chat completion returned an empty reply")
        return Message(role=ASSISTANT_ROLE, content=content)

    def _persist(self, session: Session) -> None:
        try:
            self.app.store.save_session(session)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Could not save session {session.id!r}: {e}") from e

    def _synthesize(self, text: str) -> bytes:
        try:
            audio = self.app.speech.synthesize(text)
        except Exception as e:
            raise CollaboratorError(f"Speech synthesis failed: {e}") from e
        if not audio:
            raise CollaboratorError("Speech synthesis returned no audio")
        return bytes(audio)
