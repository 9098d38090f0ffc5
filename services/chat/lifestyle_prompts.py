"""Prompt template for lifestyle product shots.

The product description and the per-keyword context phrases are data, so a
deployment can swap in its own product without touching the controller.
Every generated prompt carries the fixed product-accuracy constraints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

DEFAULT_PRODUCT_WITH_REFERENCE = (
    "black curved back stretcher massage device with numerous small pointed acupressure nodes on surface, "
    "prominent ribbed light blue strip running down center, rigid ergonomic design for back pain relief"
)

DEFAULT_PRODUCT_WITHOUT_REFERENCE = (
    "black curved back stretcher massage device with numerous small pointed acupressure nodes covering the "
    "entire surface, prominent ribbed light blue strip running down the center, rigid ergonomic curved design "
    "for back pain relief, NOT a U-shaped neck massager, NOT a circular device, specifically a curved back "
    "stretcher with acupressure nodes"
)

WOMAN_HOLDING_CONTEXT = (
    "friendly young woman holding the exact same back stretcher device, looking directly at camera with warm "
    "smile, hands positioned to show the product clearly"
)

DEFAULT_CONTEXTS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("woman holding", "with a woman"), WOMAN_HOLDING_CONTEXT),
    (
        ("person holding", "with someone"),
        "person holding the exact same back stretcher device, looking directly at camera with friendly "
        "expression, hands positioned to show the product clearly",
    ),
    (
        ("lifestyle",),
        "lifestyle photography of person using the exact same back stretcher device in natural setting",
    ),
    (
        ("product shot", "product image"),
        "professional product photography with person demonstrating the exact same back stretcher device",
    ),
)

DEFAULT_ACCURACY_CONSTRAINTS = (
    "ensure the product is exactly the same as the reference image, clean background, high-quality commercial "
    "photography, natural lighting, professional presentation, sharp focus, authentic expression, product must "
    "match reference image exactly, the device must be a curved back stretcher with acupressure nodes, not a "
    "U-shaped neck massager, 8K resolution, studio lighting, professional camera, commercial product "
    "photography style, high-end retouching, magazine quality, cinematic composition, perfect exposure, "
    "vibrant colors, professional retouching, commercial advertising quality"
)


@dataclass(frozen=True)
class LifestyleTemplate:
    """Product description and context phrases for lifestyle prompts.

    Attributes:
        product_with_reference: Product text used when a reference image is sent.
        product_without_reference: Longer, disambiguating text for text-only generation.
        contexts: Ordered (keywords, phrase) pairs; the first pair with a
            keyword found in the message wins.
        default_context: Phrase used when no keyword matches.
        accuracy_constraints: Appended to every prompt.
    """

    product_with_reference: str = DEFAULT_PRODUCT_WITH_REFERENCE
    product_without_reference: str = DEFAULT_PRODUCT_WITHOUT_REFERENCE
    contexts: Tuple[Tuple[Tuple[str, ...], str], ...] = field(default=DEFAULT_CONTEXTS)
    default_context: str = WOMAN_HOLDING_CONTEXT
    accuracy_constraints: str = DEFAULT_ACCURACY_CONSTRAINTS

    def context_for(self, message: str) -> str:
        lowered = (message or "").lower()
        for keywords, phrase in self.contexts:
            if any(keyword in lowered for keyword in keywords):
                return phrase
        return self.default_context


def build_lifestyle_prompt(template: LifestyleTemplate, original_message: str, has_reference: bool) -> str:
    """Compose the lifestyle photography prompt for `original_message`."""
    product = template.product_with_reference if has_reference else template.product_without_reference
    context = template.context_for(original_message)
    return f"Professional lifestyle photography of a {context}, {product}, {template.accuracy_constraints}"
