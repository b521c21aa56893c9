"""
Step 4: Advice Generator
Turns raw scores into ordered coaching tips.
"""

from typing import List

import config
from .step3_pose_scorer import ScoreSet


class AdviceGenerator:
    """
    Rule-based coaching tips.

    Rules are checked independently in a fixed order (stability,
    coordination, hip extension); every rule that fires adds its tip. The
    "good" tip is only returned when no rule fired.
    """

    RULE_ORDER = ('stability', 'coordination', 'hip_extension')

    def __init__(self, language: str = config.LANGUAGE, threshold: float = config.ADVICE_THRESHOLD):
        if language not in config.TIPS:
            raise ValueError(f"Unsupported language: {language!r} (expected one of {config.SUPPORTED_LANGUAGES})")
        self.language = language
        self.threshold = threshold
        self.tips = config.TIPS[language]

    def generate(self, scores: ScoreSet) -> List[str]:
        """
        Build the tip list for one frame.

        Args:
            scores: Raw (unclamped) ScoreSet

        Returns:
            Ordered list of tips, never empty
        """
        raw = scores.as_dict()
        tips = [self.tips[name] for name in self.RULE_ORDER if raw[name] < self.threshold]
        if not tips:
            tips.append(self.tips['good'])
        return tips


def generate_advice(scores: ScoreSet, language: str = config.LANGUAGE) -> List[str]:
    """Shortcut for AdviceGenerator(language).generate(scores)."""
    return AdviceGenerator(language).generate(scores)
