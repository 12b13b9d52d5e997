"""
Shared wire models for the Azure Voice Live realtime protocol.

Session, voice, turn detection, conversation item and response payloads
used by both client and server events. Outbound models serialize with
``exclude_none`` so unset options are omitted from the wire.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base model for protocol payloads (tolerates extra fields)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump to a JSON-compatible dict without unset options."""
        return self.model_dump(mode="json", exclude_none=True)


# === Enumerations ===


class Modality(str, Enum):
    TEXT = "text"
    AUDIO = "audio"
    ANIMATION = "animation"
    AVATAR = "avatar"


class AudioFormat(str, Enum):
    PCM16 = "pcm16"
    G711_ULAW = "g711_ulaw"
    G711_ALAW = "g711_alaw"


class OutputAudioFormat(str, Enum):
    PCM16 = "pcm16"
    PCM16_8000HZ = "pcm16_8000hz"
    PCM16_16000HZ = "pcm16_16000hz"
    G711_ULAW = "g711_ulaw"
    G711_ALAW = "g711_alaw"


class ItemStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"


class ResponseStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    INCOMPLETE = "incomplete"
    FAILED = "failed"


# === Voices ===


class OpenAIVoice(WireModel):
    type: Literal["openai"] = "openai"
    name: str


class AzureStandardVoice(WireModel):
    """Azure neural TTS voice; ``rate`` is the speaking-rate multiplier as text."""

    type: Literal["azure-standard"] = "azure-standard"
    name: str
    temperature: float | None = None
    custom_lexicon_url: str | None = None
    prefer_locales: list[str] | None = None
    locale: str | None = None
    style: str | None = None
    pitch: str | None = None
    rate: str | None = None
    volume: str | None = None


class AzureCustomVoice(WireModel):
    type: Literal["azure-custom"] = "azure-custom"
    name: str
    endpoint_id: str
    temperature: float | None = None
    style: str | None = None
    pitch: str | None = None
    rate: str | None = None
    volume: str | None = None


class AzurePersonalVoice(WireModel):
    type: Literal["azure-personal"] = "azure-personal"
    name: str
    model: str
    temperature: float | None = None


Voice = Annotated[
    OpenAIVoice | AzureStandardVoice | AzureCustomVoice | AzurePersonalVoice,
    Field(discriminator="type"),
]


# === Turn detection ===


class ServerVAD(WireModel):
    type: Literal["server_vad"] = "server_vad"
    threshold: float | None = None
    prefix_padding_ms: int | None = None
    silence_duration_ms: int | None = None
    create_response: bool | None = None
    interrupt_response: bool | None = None
    auto_truncate: bool | None = None


class SemanticVAD(WireModel):
    type: Literal["semantic_vad"] = "semantic_vad"
    eagerness: str | None = None
    create_response: bool | None = None
    interrupt_response: bool | None = None


class AzureSemanticVAD(WireModel):
    type: Literal["azure_semantic_vad"] = "azure_semantic_vad"
    threshold: float | None = None
    prefix_padding_ms: int | None = None
    silence_duration_ms: int | None = None
    speech_duration_ms: int | None = None
    remove_filler_words: bool | None = None
    languages: list[str] | None = None
    create_response: bool | None = None
    interrupt_response: bool | None = None


class AzureSemanticVADMultilingual(WireModel):
    type: Literal["azure_semantic_vad_multilingual"] = "azure_semantic_vad_multilingual"
    threshold: float | None = None
    prefix_padding_ms: int | None = None
    silence_duration_ms: int | None = None
    speech_duration_ms: int | None = None
    remove_filler_words: bool | None = None
    languages: list[str] | None = None
    create_response: bool | None = None
    interrupt_response: bool | None = None


TurnDetection = Annotated[
    ServerVAD | SemanticVAD | AzureSemanticVAD | AzureSemanticVADMultilingual,
    Field(discriminator="type"),
]


# === Session ===


class InputAudioTranscription(WireModel):
    model: str = "whisper-1"
    language: str | None = None
    phrase_list: list[str] | None = None
    prompt: str | None = None


class NoiseReduction(WireModel):
    # near_field, far_field or azure_deep_noise_suppression
    type: str = "azure_deep_noise_suppression"


class EchoCancellation(WireModel):
    type: Literal["server_echo_cancellation"] = "server_echo_cancellation"


class FunctionTool(WireModel):
    type: Literal["function"] = "function"
    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None


class RequestSession(WireModel):
    """Session configuration sent with ``session.update``."""

    model: str | None = None
    modalities: list[Modality] | None = None
    voice: Voice | None = None
    instructions: str | None = None
    input_audio_sampling_rate: int | None = None
    input_audio_format: AudioFormat | None = None
    output_audio_format: OutputAudioFormat | None = None
    input_audio_noise_reduction: NoiseReduction | None = None
    input_audio_echo_cancellation: EchoCancellation | None = None
    input_audio_transcription: InputAudioTranscription | None = None
    turn_detection: TurnDetection | None = None
    tools: list[FunctionTool] | None = None
    tool_choice: str | None = None
    temperature: float | None = None
    max_response_output_tokens: int | Literal["inf"] | None = None


class ResponseSession(WireModel):
    """Session as reported by the service in ``session.created``/``session.updated``."""

    id: str
    object: str | None = None
    model: str | None = None
    modalities: list[str] | None = None
    instructions: str | None = None
    voice: dict[str, Any] | str | None = None
    input_audio_format: str | None = None
    output_audio_format: str | None = None
    input_audio_sampling_rate: int | None = None
    turn_detection: dict[str, Any] | None = None
    temperature: float | None = None
    max_response_output_tokens: int | str | None = None


# === Conversation items ===


class ContentPart(WireModel):
    """Content of a conversation item (input_text, input_audio, text, audio)."""

    type: str
    text: str | None = None
    audio: str | None = None
    transcript: str | None = None


class ConversationItem(WireModel):
    """Conversation item as returned by the service."""

    id: str
    type: str
    object: str | None = None
    status: ItemStatus | None = None
    role: str | None = None
    content: list[ContentPart] = Field(default_factory=list)
    call_id: str | None = None
    name: str | None = None
    arguments: str | None = None
    output: str | None = None


class MessageRequestItem(WireModel):
    """Message item sent with ``conversation.item.create``."""

    type: Literal["message"] = "message"
    role: Literal["system", "user", "assistant"]
    content: list[ContentPart]
    id: str | None = None

    @classmethod
    def user_text(cls, text: str, item_id: str | None = None) -> MessageRequestItem:
        return cls(role="user", content=[ContentPart(type="input_text", text=text)], id=item_id)

    @classmethod
    def system_text(cls, text: str, item_id: str | None = None) -> MessageRequestItem:
        return cls(role="system", content=[ContentPart(type="input_text", text=text)], id=item_id)


class FunctionCallOutputItem(WireModel):
    type: Literal["function_call_output"] = "function_call_output"
    call_id: str
    output: str
    id: str | None = None


ConversationRequestItem = Annotated[
    MessageRequestItem | FunctionCallOutputItem,
    Field(discriminator="type"),
]


# === Responses ===


class ResponseOptions(WireModel):
    """Per-response overrides for ``response.create``."""

    modalities: list[Modality] | None = None
    instructions: str | None = None
    voice: Voice | None = None
    output_audio_format: OutputAudioFormat | None = None
    tools: list[FunctionTool] | None = None
    tool_choice: str | None = None
    temperature: float | None = None
    max_output_tokens: int | Literal["inf"] | None = None
    conversation: str | None = None
    metadata: dict[str, str] | None = None


class Response(WireModel):
    id: str
    object: str | None = None
    status: ResponseStatus | None = None
    status_details: dict[str, Any] | None = None
    output: list[ConversationItem] = Field(default_factory=list)
    usage: dict[str, Any] | None = None


# === System ===


class ErrorDetails(WireModel):
    type: str
    code: str | None = None
    message: str
    param: str | None = None
    event_id: str | None = None


class RateLimit(WireModel):
    name: str
    limit: int
    remaining: int
    reset_seconds: float
