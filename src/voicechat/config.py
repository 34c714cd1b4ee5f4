"""Runtime options for the VoiceChat application."""

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

DEFAULT_SYSTEM_PROMPT = (
    "You are responding to a text message that was transcribed from audio. "
    "It likely will miss punctuation especially periods. Do your best to make "
    "sense of it. The text that you return will be synthesized back to speech, "
    "so please do not return extremely long responses."
)

# Environment variable -> Options field
ENV_VARS = {
    "VOICECHAT_MODEL": "model",
    "VOICECHAT_SESSION_DIR": "session_dir",
    "VOICECHAT_TIMEOUT": "timeout",
    "VOICECHAT_LANGUAGE": "language_code",
}


class Options(BaseModel):
    """Settings shared by the engine and the default collaborators.

    Parameters
    ----------
    model : str, default="gpt-4"
        Chat-completion model identifier sent with every request.
    session_dir : Path
        Directory used by the default file store.
    timeout : float, default=60.0
        Seconds allowed for each outbound collaborator call.
    system_prompt : str
        Instruction placed ahead of every conversation history.
    language_code : str, default="en-US"
        BCP-47 language used for recognition and synthesis.
    """

    model: str = "gpt-4"
    session_dir: Path = Field(
        default_factory=lambda: Path("~/.voicechat-sessions").expanduser()
    )
    timeout: float = Field(default=60.0, gt=0)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    language_code: str = "en-US"

    @field_validator("session_dir")
    @classmethod
    def _expand(cls, value: Path) -> Path:
        return value.expanduser()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Options":
        """Builds options from ``VOICECHAT_*`` environment variables.

        Unset variables keep their defaults.

        Raises
        ------
        ConfigurationError
            If a variable holds a value the field does not accept.
        """
        environ = os.environ if environ is None else environ
        values = {
            field: environ[var]
            for var, field in ENV_VARS.items()
            if environ.get(var, "").strip()
        }
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid voicechat configuration: {e}") from e
