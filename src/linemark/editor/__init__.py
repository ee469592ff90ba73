"""Editor-facing adapters: edit events and their translation onto spans."""

from .edits import EditEvent, EditTranslator, translate_range

__all__ = ["EditEvent", "EditTranslator", "translate_range"]
