"""Extract named content slots from fragment HTML."""

import structlog
from bs4 import BeautifulSoup, Tag


logger = structlog.get_logger()

# Attribute that marks an element's inner HTML as a named slot
SLOT_ATTRIBUTE = "cx-define-slot"


class ExtractionError(Exception):
    """Fragment content could not be turned into slots."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.status_code: int | None = None


class HtmlSlotExtractor:
    """Extracts slots from HTML using BeautifulSoup.

    Every element carrying ``cx-define-slot="name"`` contributes its
    inner HTML under ``name``. When a name is defined twice the first
    definition wins.
    """

    def __init__(self, parser: str = "lxml") -> None:
        """Initialize the extractor.

        Args:
            parser: BeautifulSoup tree builder to use.
        """
        self._parser = parser

    def extract_slots(self, content: str) -> dict[str, str]:
        """Extract slots from fragment HTML.

        Args:
            content: Fragment HTML.

        Returns:
            Mapping of slot name to inner HTML.

        Raises:
            ExtractionError: If the content is not text, cannot be parsed,
                or declares a slot without a name.
        """
        if not isinstance(content, str):
            msg = f"Slot extraction needs text content, got {type(content).__name__}"
            raise ExtractionError(msg)

        try:
            soup = BeautifulSoup(content, self._parser)
        except Exception as e:  # noqa: BLE001
            msg = f"Failed to parse fragment HTML: {e}"
            raise ExtractionError(msg) from e

        slots: dict[str, str] = {}
        for element in soup.find_all(attrs={SLOT_ATTRIBUTE: True}):
            if not isinstance(element, Tag):
                continue
            name = str(element.get(SLOT_ATTRIBUTE) or "").strip()
            if not name:
                msg = f"Element <{element.name}> declares a slot without a name"
                raise ExtractionError(msg)
            if name in slots:
                logger.debug("duplicate_slot_ignored", component="slots", slot=name)
                continue
            slots[name] = element.decode_contents()

        return slots
