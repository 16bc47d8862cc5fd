"""
Readers for the ChatGPT backend API.
"""

from .chatgpt_reader import ChatGPTReader
from .credentials import CredentialSupplier, ResolvedCredentialSupplier, StaticCredentialSupplier
from .requester import RateLimitedRequester, RequestOptions, RequestState

__all__ = [
    "ChatGPTReader",
    "CredentialSupplier",
    "ResolvedCredentialSupplier",
    "StaticCredentialSupplier",
    "RateLimitedRequester",
    "RequestOptions",
    "RequestState",
]
