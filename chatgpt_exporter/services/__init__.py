"""
Services orchestrating exports and conversation mutations.
"""

from .exporter import ConversationExporter
from .mutations import ConversationManager

__all__ = ["ConversationExporter", "ConversationManager"]
