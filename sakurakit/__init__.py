"""
Async client toolkit for realtime speech services.

Public API:
    - RealtimeSession: Conversation session for the OpenAI Realtime API
    - PlayAIClient: Streaming text-to-speech over the Play.ht / PlayAI websocket
    - ConnectionManager: Socket lifecycle, receive task and ordered event stream

Commands:
    - SessionUpdate, ConversationItemCreate, InputAudioBufferAppend, ...:
      Typed outbound commands
    - TTSCommand: One synthesis request
    - encode: Serialize a command to a JSON text frame
    - NULL: Marker for fields that must be sent as explicit JSON null

Events:
    - ConnectionOpened / ConnectionClosed / ConnectionFailed: Lifecycle
    - ServerEvent / RawEvent / MalformedMessage: Inbound control traffic
    - AudioArtifact: A fully assembled audio clip

Configuration:
    - RealtimeConfig: Realtime endpoint and handshake settings
    - PlayAIConfig: PlayAI authentication and synthesis defaults

Exceptions:
    - SakuraKitError: Base exception for this library
    - ConnectError / TransportError / SessionError: Connection failures
    - PlayAIError: Authentication exchange failures
"""

from __future__ import annotations

from .audio_buffer import AudioAssemblyBuffer
from .commands import (
    NULL,
    ClientEventType,
    ContentPart,
    ConversationItem,
    ConversationItemCreate,
    ConversationItemDelete,
    ConversationItemTruncate,
    InputAudioBufferAppend,
    InputAudioBufferClear,
    InputAudioBufferCommit,
    InputAudioTranscription,
    OutboundCommand,
    OutputFormat,
    Quality,
    ResponseCancel,
    ResponseConfiguration,
    ResponseCreate,
    SessionConfiguration,
    SessionUpdate,
    Tool,
    TTSCommand,
    TurnDetection,
    encode,
    with_event_id,
)
from .config import PlayAIConfig, RealtimeConfig
from .connection import ConnectionManager, ConnectionState, ConnectionStats
from .demux import InboundDemultiplexer, RealtimeProfile, TTSProfile
from .events import (
    AudioArtifact,
    ConnectionClosed,
    ConnectionFailed,
    ConnectionOpened,
    InboundEvent,
    InboundEventKind,
    MalformedMessage,
    RawEvent,
    ServerEvent,
    ServerEventType,
)
from .exceptions import (
    ActiveGenerationError,
    AuthenticationError,
    ConfigurationError,
    ConnectError,
    EncodeError,
    EventTimeoutError,
    InvalidResponseError,
    PlayAIError,
    PlayAIServerError,
    ProtocolError,
    SakuraKitError,
    SessionError,
    SynthesisTimeoutError,
    TransportError,
)
from .frames import BinaryFrame, MessageFrame, TextFrame
from .ids import EventIdSequence
from .observer import LoggingObserver, NoOpObserver, SessionObserver
from .playai import PlayAIClient, TTSOptions
from .realtime import RealtimeSession
from .transport import HttpxAdapter, WebsocketsTransport

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Façades
    "RealtimeSession",
    "PlayAIClient",
    "TTSOptions",
    # Connection
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStats",
    "InboundDemultiplexer",
    "RealtimeProfile",
    "TTSProfile",
    "AudioAssemblyBuffer",
    "EventIdSequence",
    # Frames
    "TextFrame",
    "BinaryFrame",
    "MessageFrame",
    # Commands
    "ClientEventType",
    "OutputFormat",
    "Quality",
    "NULL",
    "InputAudioTranscription",
    "TurnDetection",
    "Tool",
    "SessionConfiguration",
    "ResponseConfiguration",
    "ContentPart",
    "ConversationItem",
    "SessionUpdate",
    "ConversationItemCreate",
    "InputAudioBufferAppend",
    "InputAudioBufferCommit",
    "InputAudioBufferClear",
    "ConversationItemTruncate",
    "ConversationItemDelete",
    "ResponseCreate",
    "ResponseCancel",
    "TTSCommand",
    "OutboundCommand",
    "encode",
    "with_event_id",
    # Events
    "ServerEventType",
    "InboundEventKind",
    "ConnectionOpened",
    "ServerEvent",
    "RawEvent",
    "MalformedMessage",
    "AudioArtifact",
    "ConnectionClosed",
    "ConnectionFailed",
    "InboundEvent",
    # Configuration
    "RealtimeConfig",
    "PlayAIConfig",
    # Observers
    "SessionObserver",
    "NoOpObserver",
    "LoggingObserver",
    # Transports
    "WebsocketsTransport",
    "HttpxAdapter",
    # Exceptions
    "SakuraKitError",
    "ConfigurationError",
    "ConnectError",
    "EncodeError",
    "EventTimeoutError",
    "TransportError",
    "ProtocolError",
    "SessionError",
    "SynthesisTimeoutError",
    "PlayAIError",
    "AuthenticationError",
    "ActiveGenerationError",
    "PlayAIServerError",
    "InvalidResponseError",
]
