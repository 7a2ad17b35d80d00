"""Prebuilt rule templates offered to rule authors."""

from dataclasses import dataclass, field

from db.enums import ExerciseType, RuleCategory, Subject
from unlock.services._helpers import JsonDict


@dataclass(frozen=True)
class RuleTemplate:
    key: str
    name: str
    description: str
    criteria: JsonDict
    action: JsonDict
    limits: JsonDict
    category: RuleCategory
    tags: tuple[str, ...] = ()
    level: str = "beginner"
    recommended_for: tuple[str, ...] = field(default_factory=tuple)

    def to_rule_dict(self) -> JsonDict:
        """A camelCase rule definition ready to be validated and stored."""
        return {
            "name": self.name,
            "description": self.description,
            "criteria": dict(self.criteria),
            "action": dict(self.action),
            "limits": dict(self.limits),
            "metadata": {"category": self.category.value, "tags": list(self.tags)},
        }


RULE_TEMPLATES: dict[str, RuleTemplate] = {
    "EXCELLENCE_REWARD": RuleTemplate(
        key="EXCELLENCE_REWARD",
        name="Academic Excellence Reward",
        description="Unlock iPad time for scoring 90%+ on exercises",
        criteria={
            "subject": [Subject.ALL.value],
            "minScore": 90,
            "exerciseType": [ExerciseType.HOMEWORK.value, ExerciseType.PRACTICE.value],
        },
        action={
            "unlockMinutes": 30,
            "message": "Excellent work! You've earned iPad time for your outstanding performance!",
            "achievements": ["high-achiever"],
            "parentNotification": True,
        },
        limits={"maxDaily": 120, "maxTriggers": 4, "cooldownMinutes": 60},
        category=RuleCategory.ACADEMIC,
        tags=("high-performance", "daily-reward"),
        level="beginner",
        recommended_for=("all-students",),
    ),
    "CONSISTENCY_BONUS": RuleTemplate(
        key="CONSISTENCY_BONUS",
        name="Consistency Champion",
        description="Bonus time for maintaining learning streaks",
        criteria={"subject": [Subject.ALL.value], "behaviorModifiers": {"completionStreak": 5}},
        action={
            "unlockMinutes": 60,
            "bonusMinutes": 30,
            "message": "Amazing consistency! Your learning streak has earned you bonus iPad time!",
            "achievements": ["consistency-champion"],
            "parentNotification": True,
        },
        limits={"maxWeekly": 120, "cooldownMinutes": 10080},  # one week
        category=RuleCategory.BEHAVIORAL,
        tags=("consistency", "habit-building"),
        level="intermediate",
        recommended_for=("regular-users",),
    ),
    "SPEED_BONUS": RuleTemplate(
        key="SPEED_BONUS",
        name="Speed and Accuracy Bonus",
        description="Extra time for quick and correct completion",
        criteria={
            "subject": [Subject.ALL.value],
            "minScore": 80,
            "timeLimit": {"bonusUnderSeconds": 300},
        },
        action={
            "unlockMinutes": 15,
            "message": "Lightning fast and accurate! Speed bonus earned!",
            "achievements": ["speed-demon"],
        },
        limits={"maxDaily": 60, "maxTriggers": 8},
        category=RuleCategory.BONUS,
        tags=("speed", "accuracy", "micro-reward"),
        level="advanced",
        recommended_for=("high-performers",),
    ),
    "IMPROVEMENT_REWARD": RuleTemplate(
        key="IMPROVEMENT_REWARD",
        name="Improvement Recognition",
        description="Reward students for showing improvement over time",
        criteria={"subject": [Subject.ALL.value], "behaviorModifiers": {"improvementRate": 10}},
        action={
            "unlockMinutes": 20,
            "message": "Great improvement! Your hard work is paying off!",
            "achievements": ["improver"],
            "parentNotification": True,
        },
        limits={"maxDaily": 40, "cooldownMinutes": 1440},  # 24 hours
        category=RuleCategory.BEHAVIORAL,
        tags=("improvement", "growth-mindset"),
        level="intermediate",
        recommended_for=("struggling-students", "new-users"),
    ),
}


def list_templates() -> list[RuleTemplate]:
    return list(RULE_TEMPLATES.values())


def get_template(key: str) -> RuleTemplate | None:
    return RULE_TEMPLATES.get(key.upper())
