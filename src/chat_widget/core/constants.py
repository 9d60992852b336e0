"""Defaults, user-facing copy and timings for the chat widget."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Tuple


class RejectionReason(str, enum.Enum):
    """Why the stager refused a file."""

    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    DUPLICATE_FILE = "DUPLICATE_FILE"


# The only notice a failed send or host error ever shows.
GENERAL_ERROR_MESSAGE = "Sorry, I encountered an error processing your message."

FALLBACK_RESPONSES: Tuple[str, ...] = (
    "Thanks for your message! I'd be happy to help you with that.",
    "I understand what you're asking. Let me provide you with some information.",
    "Great question! Here's what I can tell you about that.",
    "I'm here to help! Based on your message, I can suggest a few things.",
    "That's an interesting point. Let me break that down for you.",
)

POSITIONS: Tuple[str, ...] = ("bottom-right", "bottom-left", "top-right", "top-left")
THEMES: Tuple[str, ...] = ("modern", "minimal", "rounded", "classic", "dark")

WILDCARD_TYPE = "*/*"
MEGABYTE = 1024 * 1024

# Scripted prompts appended by the flow engine.
POLICY_NUMBER_PROMPT = "Please provide your Policy Number."
CLAIM_NUMBER_PROMPT = "Please provide your Claim Number."
CLAIM_SUBMISSION_PROMPT = "Please provide your medical details along with your Policy Number."
SEGMENT_PROMPT = "Please select a product segment:"
PRODUCTS_PROMPT = "Here are the products available under {segment}:"

SEGMENTS_FAILED = "Failed to fetch product segments. Please try again later."
PRODUCTS_FAILED = "Failed to fetch products. Please try again later."
PRODUCT_DETAIL_FAILED = "Failed to fetch product details. Please try again later."

DOCUMENTS_REQUIRED_STAGE = "DocumentsRequired"
CONTEXT_HEADER = "x-user-context"


@dataclass(frozen=True, slots=True)
class AnimationTimings:
    """Named delays, in seconds, handed to the scheduler."""

    slide_in: float = 0.3
    slide_out: float = 0.2
    typing: float = 1.0
    bot_prompt: float = 0.5


DEFAULT_TIMINGS = AnimationTimings()


@dataclass(frozen=True, slots=True)
class ApiDefaults:
    base_url: str = "https://localhost:7166/api"
    chat_path: str = "/chat"
    timeout: float = 30.0
    retry_attempts: int = 3


API_DEFAULTS = ApiDefaults()
