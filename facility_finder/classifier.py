"""
Accept/reject filtering of search results against the target category.

Nearby search regularly returns listings that are tagged with the right type
but are not the facility itself (a physician's personal listing tagged
"hospital", a closed site). The rules here weed those out; the thresholds are
tuned by observation, so they live in ClassifierConfig rather than as constants.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .models import BusinessStatus, Candidate

logger = logging.getLogger(__name__)

DEFAULT_MIN_RATING_COUNT = 5

DEFAULT_CATEGORY_KEYWORDS: Dict[str, FrozenSet[str]] = {
    'hospital': frozenset({
        'Hospital', 'Medical', 'Clinic', 'Center', 'Centre', 'Health', 'Urgent',
        'Regional', 'General', 'Children', 'ER', 'Emergency', 'Care',
    }),
    'pharmacy': frozenset({'Pharmacy', 'Drug', 'Drugs', 'Chemist', 'Rx', 'Apothecary'}),
    'police': frozenset({'Police', 'Station', 'Department', 'Precinct', 'Sheriff'}),
    'fire_station': frozenset({'Fire', 'Station', 'Department', 'Rescue'}),
}

# Two or three capitalised tokens (a middle initial counts as one), with an
# optional honorific in front and an optional degree at the end.
_PERSON_NAME_RE = re.compile(
    r"^(?:(?:Dr|Mr|Mrs|Ms|Prof)\.?\s+)?"
    r"[A-Z][a-z'\-]+"
    r"(?:\s+(?:[A-Z]\.?|[A-Z][a-z'\-]+)){1,2}"
    r"(?:,?\s+(?:MD|M\.D\.|DO|D\.O\.|PhD|NP|PA-C))?$"
)


@dataclass(frozen=True)
class ClassifierConfig:
    min_rating_count: int = DEFAULT_MIN_RATING_COUNT
    category_keywords: Dict[str, FrozenSet[str]] = field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_KEYWORDS)
    )

    def keywords_for(self, category: str) -> FrozenSet[str]:
        keywords = self.category_keywords.get(category)
        if keywords:
            return keywords
        return frozenset({category.replace('_', ' ').title()})

    def with_keywords(self, category: str, keywords: Iterable[str]) -> "ClassifierConfig":
        merged = dict(self.category_keywords)
        merged[category] = frozenset(k.strip() for k in keywords if k.strip())
        return ClassifierConfig(min_rating_count=self.min_rating_count, category_keywords=merged)


def looks_like_person_name(name: str) -> bool:
    return bool(_PERSON_NAME_RE.match(name.strip()))


def contains_keyword(name: str, keywords: Iterable[str]) -> bool:
    for keyword in keywords:
        if re.search(rf"\b{re.escape(keyword)}\b", name, re.IGNORECASE):
            return True
    return False


class CandidateClassifier:
    """Decides whether a search result really is a facility of the target category"""

    def __init__(self, config: Optional[ClassifierConfig] = None):
        self.config = config or ClassifierConfig()

    def rejection_reason(self, candidate: Candidate, target_category: str) -> Optional[str]:
        """Return the first rule the candidate fails, or None if it passes all of them."""
        if candidate.business_status not in (BusinessStatus.OPERATIONAL, BusinessStatus.UNKNOWN):
            return f"business status {candidate.business_status.value}"

        if candidate.primary_type != target_category and target_category not in candidate.types:
            return f"not tagged {target_category}"

        if looks_like_person_name(candidate.name) and not contains_keyword(
            candidate.name, self.config.keywords_for(target_category)
        ):
            return "name looks like a person"

        if candidate.rating_count is not None and candidate.rating_count < self.config.min_rating_count:
            return f"only {candidate.rating_count} ratings"

        return None

    def accept(self, candidate: Candidate, target_category: str) -> bool:
        reason = self.rejection_reason(candidate, target_category)
        if reason is not None:
            logger.debug(f"Rejected {candidate.id} ({candidate.name!r}): {reason}")
            return False
        return True

    def filter(self, candidates: Sequence[Candidate], target_category: str) -> Tuple[List[Candidate], bool]:
        """
        Apply accept() to every candidate, keeping provider order.

        Filtering is best effort: if nothing routable survives, the unfiltered
        input is returned instead and the second element of the result is True.
        """
        accepted = [c for c in candidates if self.accept(c, target_category)]
        if candidates and not any(c.location is not None for c in accepted):
            logger.info(
                f"Classifier kept no routable {target_category} out of {len(candidates)} results; "
                "falling back to the unfiltered set"
            )
            return list(candidates), True
        logger.info(f"Classifier accepted {len(accepted)} of {len(candidates)} results")
        return accepted, False
