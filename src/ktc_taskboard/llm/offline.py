# src/ktc_taskboard/llm/offline.py

from __future__ import annotations

from ..tasks.task_models import Quadrant, QuadrantAdvice

URGENT_WORDS: tuple[str, ...] = ("gấp", "khẩn", "ngay", "hôm nay", "deadline")
IMPORTANT_WORDS: tuple[str, ...] = (
    "quan trọng",
    "báo cáo",
    "khách hàng",
    "chiến lược",
    "hợp đồng",
)


def _hits(text: str, words: tuple[str, ...]) -> list[str]:
    return [w for w in words if w in text]


class OfflineQuadrantAdvisor:
    """
    Deterministic keyword heuristic used when no LLM is configured.

    Urgency and importance are each "present" when any of their keywords
    appears in the lower-cased title + description.
    """

    def analyze(self, title: str, description: str) -> QuadrantAdvice:
        text = f"{title}\n{description}".lower()
        urgent = _hits(text, URGENT_WORDS)
        important = _hits(text, IMPORTANT_WORDS)

        if urgent and important:
            quadrant = Quadrant.Q1
        elif important:
            quadrant = Quadrant.Q2
        elif urgent:
            quadrant = Quadrant.Q3
        else:
            quadrant = Quadrant.Q4

        found = ", ".join(urgent + important) or "không có từ khóa"
        reasoning = (
            f"Phân loại tự động (ngoại tuyến): {quadrant.description}. "
            f"Từ khóa: {found}."
        )
        return QuadrantAdvice(quadrant=quadrant, reasoning=reasoning)
