"""
Chart generation for the chat leaderboard.
"""
import html
import io
from typing import List, Optional, Tuple

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import seaborn as sns  # noqa: E402

from .config import logger  # noqa: E402


def generate_leaderboard_chart(rows: List[Tuple[str, int]], title: str = "Очки") -> Optional[io.BytesIO]:
    """
    Generate a mobile-friendly horizontal bar chart of the leaderboard.

    Args:
        rows: (name, value) pairs, best first

    Returns:
        BytesIO buffer containing the PNG image, or None if error
    """
    if not rows:
        return None

    try:
        plt.style.use("default")
        sns.set_palette("husl")

        names = [html.unescape(name) for name, _ in rows][::-1]
        values = [value for _, value in rows][::-1]

        plt.figure(figsize=(8, max(4, len(rows) * 0.8)))
        bars = plt.barh(names, values, color=sns.color_palette("husl", len(rows)))
        for bar, value in zip(bars, values):
            plt.text(bar.get_width(), bar.get_y() + bar.get_height() / 2, f" {value}",
                     va="center", fontsize=14, fontweight="bold")

        plt.xlabel(title, fontsize=16, fontweight="bold")
        plt.grid(True, axis="x", alpha=0.3)
        plt.yticks(fontsize=14)
        plt.xticks(fontsize=12)
        plt.tight_layout()

        buffer = io.BytesIO()
        plt.savefig(buffer, format="PNG", dpi=150, bbox_inches="tight")
        buffer.seek(0)
        plt.close()

        logger.info(f"Generated leaderboard chart for {len(rows)} players")
        return buffer

    except Exception as e:
        logger.error(f"Failed to generate leaderboard chart: {e}")
        plt.close()
        return None
