"""Construction and escalation rules for consequences."""
from __future__ import annotations

import hashlib
import itertools
import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Sequence, Tuple

from .classifier import ImpactClassifier, KeywordImpactClassifier
from .config import Settings, get_settings
from .errors import AlreadyResolvedError, InvalidInputError
from .models import Consequence, ConsequenceStatus, House, ImpactVector

logger = logging.getLogger(__name__)


class ConsequenceRecorder:
    """Turns resolved chapter choices into :class:`Consequence` records."""

    def __init__(
        self,
        settings: Settings | None = None,
        classifier: ImpactClassifier | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.classifier = classifier or KeywordImpactClassifier()
        self._sequence = itertools.count(1)

    def create_from_choice(
        self,
        chapter: int,
        choice_id: str,
        choice_text: str,
        houses_affected: Sequence[House],
        description_hint: str | None = None,
    ) -> Consequence:
        if chapter < 1:
            raise InvalidInputError(f"Chapter must be positive, got {chapter}")
        houses = [House(house) for house in houses_affected]
        vector = self.classifier.classify(choice_text, houses)
        severity = self.compute_severity(vector)
        window = self.resolution_window(chapter, severity)
        description = description_hint or self.narrate(choice_text, houses, vector)
        return Consequence(
            id=self.generate_id(chapter, choice_id),
            chapter_origin=chapter,
            choice_id=choice_id,
            houses_affected=houses,
            description=description,
            severity=severity,
            vector=vector,
            expected_window=window,
            status=ConsequenceStatus.PENDING,
            narrative_debt=float(severity),
        )

    def escalate(
        self,
        consequence: Consequence,
        reason: str,
        current_chapter: int,
    ) -> Consequence:
        """Return an intensified copy with a fresh window from ``current_chapter``."""

        if consequence.is_resolved:
            raise AlreadyResolvedError(consequence.id)
        if current_chapter < consequence.chapter_origin:
            raise InvalidInputError(
                f"Cannot escalate {consequence.id} at chapter {current_chapter}, "
                f"before its origin chapter {consequence.chapter_origin}"
            )
        cfg = self.settings
        severity = min(5, consequence.severity + 1)
        base = consequence.vector
        political = min(1.0, abs(base.political_pressure) * cfg.escalation_political_scale)
        if base.political_pressure < 0:
            political = -political
        vector = ImpactVector(
            political_pressure=political,
            resource_delta=base.resource_delta * cfg.escalation_resource_scale,
            alliance_shift=base.alliance_shift * cfg.escalation_alliance_scale,
            corruption_level=base.corruption_level + cfg.escalation_corruption_increment,
            survival_threat=base.survival_threat + cfg.escalation_survival_increment,
        )
        window_start = current_chapter + 1
        escalated = replace(
            consequence,
            severity=severity,
            vector=vector,
            status=ConsequenceStatus.ESCALATED,
            description=f"[ESCALATED: {reason}] {consequence.description}",
            expected_window=(
                window_start,
                window_start + severity * cfg.escalation_span_factor,
            ),
            narrative_debt=severity * cfg.escalation_debt_factor,
            child_ids=list(consequence.child_ids),
            bets=list(consequence.bets),
            updated_at=datetime.now(timezone.utc),
        )
        logger.info(
            "Escalated %s to severity %d at chapter %d (%s)",
            consequence.id,
            severity,
            current_chapter,
            reason,
        )
        return escalated

    def compute_severity(self, vector: ImpactVector) -> int:
        weights = self.settings.severity_weights
        magnitude = (
            abs(vector.political_pressure) * weights["political_pressure"]
            + abs(vector.resource_delta) * weights["resource_delta"]
            + abs(vector.alliance_shift) * weights["alliance_shift"]
            + vector.corruption_level * weights["corruption_level"]
            + vector.survival_threat * weights["survival_threat"]
        )
        for severity in sorted(self.settings.severity_thresholds, reverse=True):
            if magnitude > self.settings.severity_thresholds[severity]:
                return severity
        return 1

    def resolution_window(self, origin: int, severity: int) -> Tuple[int, int]:
        return (
            origin + severity * self.settings.window_min_factor,
            origin + severity * self.settings.window_max_factor,
        )

    def generate_id(self, chapter: int, choice_id: str) -> str:
        seed = f"{chapter}-{choice_id}-{next(self._sequence)}-{time.time_ns()}"
        digest = hashlib.sha1(seed.encode("utf-8")).hexdigest()[:4].upper()  # nosec B324 - ids only
        return f"CH{chapter:02d}-{digest}"

    @staticmethod
    def narrate(choice_text: str, houses: Sequence[House], vector: ImpactVector) -> str:
        house_names = " and ".join(house.display_name for house in houses)
        if vector.political_pressure < -0.4:
            pressure = "Political fractures deepen"
        elif vector.political_pressure > 0.4:
            pressure = "Political unity strengthens"
        else:
            pressure = "Political tensions simmer"
        corruption = " The Stitching spreads." if vector.corruption_level > 0.3 else ""
        prefix = f"{house_names}: " if house_names else ""
        return f"{prefix}{choice_text}. {pressure}.{corruption}"


__all__ = ["ConsequenceRecorder"]
