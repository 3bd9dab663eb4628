"""
Prescription image → text extraction via an Ollama vision model.

Strategies are tried in order. The next one runs only when the previous one
raised; a strategy that answers with empty text ends the chain. When every
strategy fails, the first strategy's (already classified) error surfaces.
"""

import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from app.errors import EmptyResponseError, ManualEntryRequiredError
from app.services.ollama_client import OllamaClient

logger = logging.getLogger("rxsafe.vision")

ImageSource = Union[str, Path, bytes, bytearray]

EXTRACTION_INSTRUCTION = (
    "Extract all text from this prescription image. Return only the prescription text "
    "exactly as it appears, including medication names, dosages, instructions, and any "
    "other relevant information. Do not add any interpretation or analysis, just extract "
    "the raw text."
)


def image_to_base64(image: ImageSource) -> str:
    """Base64-encode raw bytes, or the contents of the file at `image`."""
    if isinstance(image, (bytes, bytearray)):
        raw = bytes(image)
    else:
        raw = Path(image).read_bytes()
    return base64.b64encode(raw).decode("ascii")


@dataclass(frozen=True)
class ExtractionStrategy:
    name: str
    run: Callable[[OllamaClient, str, str], str]


def _chat_strategy(client: OllamaClient, instruction: str, image_b64: str) -> str:
    return client.chat(
        [{"role": "user", "content": instruction, "images": [image_b64]}],
        model=client.vision_model,
        timeout=client.vision_timeout,
        vision=True,
    )


def _generate_strategy(client: OllamaClient, instruction: str, image_b64: str) -> str:
    return client.generate(
        instruction,
        model=client.vision_model,
        images=[image_b64],
        timeout=client.vision_timeout,
        vision=True,
    )


DEFAULT_STRATEGIES = (
    ExtractionStrategy("chat", _chat_strategy),
    ExtractionStrategy("generate", _generate_strategy),
)


class VisionExtractor:
    def __init__(
        self,
        client: OllamaClient,
        strategies: tuple = DEFAULT_STRATEGIES,
        instruction: str = EXTRACTION_INSTRUCTION,
    ):
        self.client = client
        self.strategies = tuple(strategies)
        self.instruction = instruction

    def extract_text(self, image: ImageSource) -> str:
        """Return the trimmed text the vision model reads from `image`."""
        image_b64 = image_to_base64(image)
        first_error: Optional[Exception] = None

        for strategy in self.strategies:
            try:
                text = strategy.run(self.client, self.instruction, image_b64)
            except Exception as exc:
                logger.warning("Vision strategy '%s' failed: %s", strategy.name, exc)
                if first_error is None:
                    first_error = exc
                continue

            text = (text or "").strip()
            if not text:
                raise EmptyResponseError("Empty response from Ollama vision model")
            logger.info("Vision strategy '%s' extracted %d chars", strategy.name, len(text))
            return text

        if first_error is None:
            raise EmptyResponseError("No vision extraction strategy is configured")
        raise first_error

    def extract_text_manual(self, image: Optional[ImageSource] = None) -> str:
        """Explicit manual-entry signal; always raises."""
        raise ManualEntryRequiredError(
            "Automatic text extraction is not available. Please use manual entry or "
            f"install a vision model: ollama pull {self.client.vision_model}",
            suggestion=(
                f"Please install a vision model: ollama pull {self.client.vision_model}, "
                "or use manual entry instead."
            ),
        )
