from .types import (
    ExecuteRequest,
    InterruptRequest,
    HelloMessage,
    StatusMessage,
    ExecuteReply,
    StreamMessage,
    ErrorMessage,
    DisplayMessage,
    KernelServerMessage,
    parse_server_message,
    encode_message,
)
from .channel import (
    ChannelFactory,
    ChannelHandlers,
    DuplexChannel,
    WebSocketChannel,
    kernel_channel_factory,
    collab_channel_factory,
)

__all__ = [
    "ExecuteRequest", "InterruptRequest",
    "HelloMessage", "StatusMessage", "ExecuteReply", "StreamMessage", "ErrorMessage",
    "DisplayMessage", "KernelServerMessage", "parse_server_message", "encode_message",
    "ChannelFactory", "ChannelHandlers", "DuplexChannel", "WebSocketChannel",
    "kernel_channel_factory", "collab_channel_factory",
]
