"""Concrete implementations for speech providers.

A speech provider turns an utterance into text and a reply back into audio.
The engine only relies on :class:`Speech`; which cloud does the work is a
deployment choice.
"""

import io
import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class Speech(ABC):
    """Interface for speech recognition and synthesis."""

    @abstractmethod
    def transcribe(self, audio: bytes) -> str:
        """Returns the text spoken in ``audio``.

        Failures must be raised, not reported as an empty transcript.
        """
        pass

    @abstractmethod
    def synthesize(self, text: str) -> bytes:
        """Returns encoded audio speaking ``text``."""
        pass


class GoogleCloud(Speech):
    """Google Cloud Speech-to-Text and Text-to-Speech.

    Credentials are resolved by the Google client libraries, normally from
    ``GOOGLE_APPLICATION_CREDENTIALS``.

    Parameters
    ----------
    language_code : str, default="en-US"
        Language used for both recognition and synthesis.
    sample_rate_hertz : int, default=48000
        Sample rate of the uploaded WEBM/Opus audio.
    timeout : float, default=60.0
        Seconds allowed for each recognition or synthesis call.
    speech_client, tts_client : optional
        Pre-built clients, mainly for testing.
    """

    def __init__(
        self,
        language_code: str = "en-US",
        sample_rate_hertz: int = 48000,
        timeout: float = 60.0,
        speech_client: Any = None,
        tts_client: Any = None,
    ):
        from google.cloud import speech, texttospeech

        self._speech = speech
        self._tts = texttospeech
        self.speech_client = speech_client or speech.SpeechClient()
        self.tts_client = tts_client or texttospeech.TextToSpeechClient()
        self.language_code = language_code
        self.sample_rate_hertz = sample_rate_hertz
        self.timeout = timeout

    def transcribe(self, audio: bytes) -> str:
        config = self._speech.RecognitionConfig(
            encoding=self._speech.RecognitionConfig.AudioEncoding.WEBM_OPUS,
            sample_rate_hertz=self.sample_rate_hertz,
            audio_channel_count=1,
            language_code=self.language_code,
        )
        operation = self.speech_client.long_running_recognize(
            config=config,
            audio=self._speech.RecognitionAudio(content=audio),
            timeout=self.timeout,
        )
        response = operation.result(timeout=self.timeout)
        parts = [
            result.alternatives[0].transcript.strip()
            for result in response.results
            if result.alternatives
        ]
        logger.debug("Recognized %d result(s)", len(parts))
        return " ".join(p for p in parts if p)

    def synthesize(self, text: str) -> bytes:
        response = self.tts_client.synthesize_speech(
            input=self._tts.SynthesisInput(text=text),
            voice=self._tts.VoiceSelectionParams(
                language_code=self.language_code,
                ssml_gender=self._tts.SsmlVoiceGender.NEUTRAL,
            ),
            audio_config=self._tts.AudioConfig(
                audio_encoding=self._tts.AudioEncoding.MP3
            ),
            timeout=self.timeout,
        )
        return response.audio_content


class OpenAI(Speech):
    """OpenAI Whisper transcription and text-to-speech."""

    def __init__(
        self,
        transcription_model: str = "whisper-1",
        speech_model: str = "tts-1",
        voice: str = "alloy",
        timeout: float = 60.0,
        client: Any = None,
    ):
        if client is None:
            from openai import OpenAI

            client = OpenAI(timeout=timeout)
        self.client = client
        self.transcription_model = transcription_model
        self.speech_model = speech_model
        self.voice = voice
        self.timeout = timeout

    def transcribe(self, audio: bytes) -> str:
        with io.BytesIO(audio) as buf:
            buf.name = "input.webm"
            resp = self.client.audio.transcriptions.create(
                model=self.transcription_model, file=buf, timeout=self.timeout
            )
        return (resp.text or "").strip()

    def synthesize(self, text: str) -> bytes:
        resp = self.client.audio.speech.create(
            model=self.speech_model,
            voice=self.voice,
            input=text,
            response_format="mp3",
            timeout=self.timeout,
        )
        return resp.content


class Echo(Speech):
    """Treats audio as UTF-8 text, for tests and offline demos."""

    def transcribe(self, audio: bytes) -> str:
        return audio.decode("utf-8", errors="replace").strip()

    def synthesize(self, text: str) -> bytes:
        return text.encode("utf-8")
