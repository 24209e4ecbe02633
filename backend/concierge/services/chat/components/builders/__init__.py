from concierge.services.chat.components.builders.ask import AskBuilder
from concierge.services.chat.components.builders.comparison import ComparisonBuilder
from concierge.services.chat.components.builders.evidence import EvidenceBuilder
from concierge.services.chat.components.builders.narrative import NarrativeBuilder
from concierge.services.chat.components.builders.note import NoteBuilder
from concierge.services.chat.components.builders.options import OptionsBuilder
from concierge.services.chat.components.builders.products import ProductsBuilder

__all__ = [
    "AskBuilder",
    "ComparisonBuilder",
    "EvidenceBuilder",
    "NarrativeBuilder",
    "NoteBuilder",
    "OptionsBuilder",
    "ProductsBuilder",
]
