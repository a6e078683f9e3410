"""Slot extraction from fragment HTML."""

from src.slots.extractor import SLOT_ATTRIBUTE, ExtractionError, HtmlSlotExtractor


__all__ = ["SLOT_ATTRIBUTE", "ExtractionError", "HtmlSlotExtractor"]
