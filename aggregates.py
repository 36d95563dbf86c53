from typing import Iterable, Mapping


def compute_total_price(price, quantity=1, discount=0):
    return max(0, price * quantity - discount)


def compute_dashboard_stats(projects: Iterable[Mapping]) -> dict:
    """Counts and revenue split by completed ("done") vs. everything else."""
    stats = {
        "total": 0,
        "ongoing": 0,
        "completed": 0,
        "ongoingRevenue": 0,
        "completedRevenue": 0,
    }
    for p in projects:
        stats["total"] += 1
        revenue = p.get("totalPrice") or 0
        if p.get("status") == "done":
            stats["completed"] += 1
            stats["completedRevenue"] += revenue
        else:
            stats["ongoing"] += 1
            stats["ongoingRevenue"] += revenue
    return stats
