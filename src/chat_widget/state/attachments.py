"""Staging area for files chosen but not yet sent."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

from chat_widget.core.constants import RejectionReason
from chat_widget.core.text import format_file_size, matches_allowed_type
from chat_widget.models import chat as chat_models


@dataclass(slots=True)
class StageResult:
    accepted: List[chat_models.Attachment] = field(default_factory=list)
    rejected: List[chat_models.AttachmentRejection] = field(default_factory=list)


class AttachmentStager:
    def __init__(self, max_file_size: int, allowed_types: Sequence[str]) -> None:
        self._max_file_size = max_file_size
        self._allowed_types = tuple(allowed_types)
        self._staged: List[chat_models.Attachment] = []

    @property
    def staged(self) -> Tuple[chat_models.Attachment, ...]:
        return tuple(self._staged)

    def __len__(self) -> int:
        return len(self._staged)

    def stage(self, candidates: Iterable[chat_models.Attachment]) -> StageResult:
        """Validate candidates in order and append the accepted ones."""

        result = StageResult()
        seen = {attachment.key for attachment in self._staged}
        for candidate in candidates:
            rejection = self._validate(candidate, seen)
            if rejection is not None:
                result.rejected.append(rejection)
                continue
            seen.add(candidate.key)
            result.accepted.append(candidate)
        self._staged.extend(result.accepted)
        return result

    def remove(self, index: int) -> chat_models.Attachment | None:
        if not 0 <= index < len(self._staged):
            return None
        return self._staged.pop(index)

    def drain(self) -> Tuple[chat_models.Attachment, ...]:
        drained = tuple(self._staged)
        self._staged = []
        return drained

    def _validate(self, candidate: chat_models.Attachment, seen: set) -> chat_models.AttachmentRejection | None:
        if candidate.key in seen:
            return chat_models.AttachmentRejection(
                name=candidate.name,
                reason=RejectionReason.DUPLICATE_FILE.value,
                message=f"{candidate.name} is already attached",
            )
        if candidate.size > self._max_file_size:
            return chat_models.AttachmentRejection(
                name=candidate.name,
                reason=RejectionReason.FILE_TOO_LARGE.value,
                message=f"{candidate.name} exceeds size limit ({format_file_size(self._max_file_size)})",
            )
        if not matches_allowed_type(candidate.content_type, self._allowed_types):
            return chat_models.AttachmentRejection(
                name=candidate.name,
                reason=RejectionReason.INVALID_FILE_TYPE.value,
                message=f"{candidate.name} is not an allowed file type",
            )
        return None
