from collections.abc import Iterable

from cardrewards.domain.models import CalculationPeriod, Card, Transaction


def milliunits_to_dollars(amount: int) -> float:
    return abs(amount) / 1000


def filter_for_card(transactions: Iterable[Transaction], account_id: str) -> list[Transaction]:
    # Outflows only; refunds and inflows are dropped, never netted.
    return [txn for txn in transactions if txn.account_id == account_id and txn.amount < 0]


def filter_by_period(transactions: Iterable[Transaction], period: CalculationPeriod) -> list[Transaction]:
    return [txn for txn in transactions if period.start <= txn.date <= period.end]


def match_transactions(
    card: Card, transactions: Iterable[Transaction], period: CalculationPeriod
) -> list[Transaction]:
    return filter_by_period(filter_for_card(transactions, card.account_id), period)


def total_spend(transactions: Iterable[Transaction]) -> float:
    return sum(milliunits_to_dollars(txn.amount) for txn in transactions)


def available_tags(transactions: Iterable[Transaction]) -> list[str]:
    """Distinct tag names present in ``transactions``, for labelling tags in a UI."""
    tags: set[str] = set()
    for txn in transactions:
        if txn.flag_name:
            tags.add(txn.flag_name)
        elif txn.flag_color:
            tags.add(txn.flag_color)
    return sorted(tags)
