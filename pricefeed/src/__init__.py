"""
Price Feed Reflector - On-Chain Round Polling Module

This module polls AggregatorV3 price feed contracts over JSON-RPC and
reflects every decoded round to a subscriber:
- AggregatorCodec: Selector encoding and latestRoundData() decoding
- FeedRegistry: Ordered, validated set of tracked contracts
- RpcGateway: eth_call transport interface and HTTP JSON-RPC implementation
- Reflector: Channel and callback delivery sinks
- TaskRunner: Event loop task and dedicated thread backends
- FeedScheduler: Tick loop, lifecycle and per-contract failure isolation
"""

from .AggregatorCodec import decode_decimals, decode_round_data, encode_call
from .errors import (
    ConfigError,
    DecodeError,
    DeliveryError,
    DuplicateAddress,
    EmptyFeedSet,
    FeedErrorEvent,
    InvalidAddress,
    InvalidContract,
    InvalidInterval,
    InvalidReflector,
    InvalidRpcUrl,
    MalformedResponse,
    PriceFeedError,
    RpcHTTPError,
    RpcResponseError,
    RpcTimeoutError,
    SchedulerStateError,
    TooShort,
    TransportError,
)
from .FeedRegistry import Contract, FeedRegistry
from .FeedScheduler import FeedScheduler, SchedulerState
from .Reflector import CallbackReflector, ChannelReflector, Reflector
from .RoundData import RoundData
from .RpcGateway import NETWORKS, HttpRpcGateway, RpcGateway, resolve_rpc_url
from .TaskRunner import AsyncioTaskRunner, TaskRunner, ThreadTaskRunner

__all__ = [
    "NETWORKS",
    "AsyncioTaskRunner",
    "CallbackReflector",
    "ChannelReflector",
    "ConfigError",
    "Contract",
    "DecodeError",
    "DeliveryError",
    "DuplicateAddress",
    "EmptyFeedSet",
    "FeedErrorEvent",
    "FeedRegistry",
    "FeedScheduler",
    "HttpRpcGateway",
    "InvalidAddress",
    "InvalidContract",
    "InvalidInterval",
    "InvalidReflector",
    "InvalidRpcUrl",
    "MalformedResponse",
    "PriceFeedError",
    "Reflector",
    "RoundData",
    "RpcGateway",
    "RpcHTTPError",
    "RpcResponseError",
    "RpcTimeoutError",
    "SchedulerState",
    "SchedulerStateError",
    "TaskRunner",
    "ThreadTaskRunner",
    "TooShort",
    "TransportError",
    "decode_decimals",
    "decode_round_data",
    "encode_call",
    "resolve_rpc_url",
]
