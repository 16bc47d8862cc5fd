"""
Extractors turning ChatGPT API payloads into extracted conversations.
"""

from .assets import AssetFetcher, AssetHint
from .content import MessageContentExtractor
from .conversation import ConversationExtractor
from .tree import MessageTree, MessageTreeBuilder, TreeEntry, traverse_mapping

__all__ = [
    "AssetFetcher",
    "AssetHint",
    "ConversationExtractor",
    "MessageContentExtractor",
    "MessageTree",
    "MessageTreeBuilder",
    "TreeEntry",
    "traverse_mapping",
]
