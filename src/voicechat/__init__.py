"""
The main entrypoint for the voicechat package.

This module contains the VoiceChat class, which wires the pluggable pillars
(speech, llm, store, engine) together. Each pillar is an abstract base class
with concrete implementations in its own module, so any of them can be
swapped without touching the others.
"""

import threading
from typing import Optional

from . import config, engine, llm, speech, store
from .exceptions import (
    CancelledError,
    CollaboratorError,
    ConfigurationError,
    EmptyTranscriptError,
    InputError,
    StoreError,
    VoiceChatError,
)
from .models import Message, Reply, Session

__all__ = [
    "VoiceChat",
    "Message",
    "Reply",
    "Session",
    "VoiceChatError",
    "InputError",
    "CollaboratorError",
    "EmptyTranscriptError",
    "StoreError",
    "CancelledError",
    "ConfigurationError",
]


class VoiceChat:
    """
    Spoken multi-turn conversations backed by a session store.

    This class holds the injected pillars and hands each request to the
    engine, which orchestrates them. The constructor uses concrete
    default implementations, making it easy to get started while remaining
    fully customizable.
    """

    def __init__(
        self,
        llm: Optional["llm.LLM"] = None,
        speech: Optional["speech.Speech"] = None,
        store: Optional["store.Store"] = None,
        engine: Optional["engine.Engine"] = None,
        options: Optional["config.Options"] = None,
    ) -> None:
        """
        Initialize the application with configurable pillars.

        Parameters
        ----------
        llm : llm.LLM, optional
            Chat-completion provider. Defaults to llm.OpenAI() with the
            configured model and timeout.
        speech : speech.Speech, optional
            Transcription and synthesis provider. Defaults to
            speech.GoogleCloud().
        store : store.Store, optional
            Session persistence. Defaults to store.File() in
            ``options.session_dir``.
        engine : engine.Engine, optional
            Pipeline engine. Defaults to engine.Synchronous(). An engine
            created without an app is bound to this one.
        options : config.Options, optional
            Runtime options. Defaults to config.Options.from_env().

        Notes
        -----
        When a default provider's SDK is not installed, an Echo stand-in is
        used instead and a UserWarning is emitted.

        Examples
        --------
        >>> app = VoiceChat()
        >>> reply = app.handle(open("question.webm", "rb"))

        Custom configuration:

        >>> app = VoiceChat(
        ...     llm=llm.Anthropic(),
        ...     store=store.SQLite("sessions.db"),
        ... )
        """
        llm_module = globals()["llm"]
        speech_module = globals()["speech"]
        store_module = globals()["store"]
        engine_module = globals()["engine"]

        self.options = options if options is not None else config.Options.from_env()

        if llm:
            self.llm = llm
        else:
            try:
                self.llm = llm_module.OpenAI(
                    default_model=self.options.model, timeout=self.options.timeout
                )
            except ImportError:
                import warnings

                warnings.warn(
                    "VoiceChat is running with a simple Echo LLM because the 'openai' package is not installed. "
                    'For the default OpenAI integration, install with: pip install "voicechat[default]"',
                    UserWarning,
                )
                self.llm = llm_module.Echo()

        if speech:
            self.speech = speech
        else:
            try:
                self.speech = speech_module.GoogleCloud(
                    language_code=self.options.language_code,
                    timeout=self.options.timeout,
                )
            except ImportError:
                import warnings

                warnings.warn(
                    "VoiceChat is running with Echo speech because the Google Cloud speech packages are not installed. "
                    'For the default Google Cloud integration, install with: pip install "voicechat[default]"',
                    UserWarning,
                )
                self.speech = speech_module.Echo()

        self.store = (
            store if store is not None else store_module.File(str(self.options.session_dir))
        )

        self.engine = engine if engine is not None else engine_module.Synchronous()
        if self.engine.app is None:
            self.engine.app = self

    def handle(
        self,
        audio,
        session_id: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Reply:
        """Runs one spoken turn. See :meth:`engine.Engine.handle`."""
        return self.engine.handle(audio, session_id=session_id, cancel=cancel)

    def get_session(self, session_id: Optional[str]) -> Optional[Session]:
        """Returns the stored conversation for ``session_id``, if any."""
        return self.store.load_session(session_id)
