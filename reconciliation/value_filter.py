"""
Value Filter - Drop economically negligible transactions.

Each transaction is valued as ``amount * rate`` using a static price
table. Transactions below the configured minimum are discarded with
an audit reason unless their asset is exempt.
"""

import logging
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Set, Tuple

from core.config import UnknownAssetPolicy, ValueFilterConfig
from reconciliation.models import FilteredTransaction, FilterResult, Transaction


logger = logging.getLogger(__name__)


class ValueFilter:
    """
    Threshold filter over approximate fiat value.

    Example:
        vf = ValueFilter(ValueFilterConfig(price_table={"USDT": "3.67"}))
        result = vf.filter(transactions)
        result.kept, result.discarded, result.unknown_assets
    """

    def __init__(self, config: Optional[ValueFilterConfig] = None) -> None:
        self.config = config or ValueFilterConfig()

    def rate_for(
        self,
        asset: str,
        price_table: Optional[Mapping[str, Decimal]] = None,
    ) -> Tuple[Optional[Decimal], bool]:
        """
        Look up the fiat rate for an asset.

        Returns:
            (rate, used_default). Rate is None under the KEEP policy
            for assets missing from the table.
        """
        table = self.config.price_table if price_table is None else price_table
        symbol = asset.strip().upper()
        if symbol in table:
            return Decimal(str(table[symbol])), False
        if self.config.unknown_asset_policy == UnknownAssetPolicy.KEEP:
            return None, True
        return self.config.default_rate, True

    def filter(
        self,
        transactions: Iterable[Transaction],
        price_table: Optional[Mapping[str, Decimal]] = None,
    ) -> FilterResult:
        """
        Split transactions into kept and discarded.

        Args:
            transactions: Deduplicated candidates
            price_table: Overrides the configured table for this call
        """
        if price_table is not None:
            price_table = {k.strip().upper(): Decimal(str(v)) for k, v in price_table.items()}

        cfg = self.config
        exempt = set(cfg.exempt_assets)
        result = FilterResult()
        unknown: Set[str] = set()

        for tx in transactions:
            rate, used_default = self.rate_for(tx.asset, price_table)
            if used_default:
                unknown.add(tx.asset.upper())

            if tx.asset.upper() in exempt:
                result.kept.append(tx)
                continue

            if rate is None:
                # KEEP policy: unpriced assets are never filtered
                result.kept.append(tx)
                continue

            value = tx.amount_decimal * rate
            if value >= cfg.minimum_value:
                result.kept.append(tx)
                continue

            result.discarded.append(FilteredTransaction(
                transaction=tx,
                calculated_value=value,
                used_default_rate=used_default,
                filter_reason=(
                    f"Value {value:.2f} {cfg.fiat_currency} < "
                    f"{format_threshold(cfg.minimum_value)} {cfg.fiat_currency} minimum"
                ),
            ))

        result.unknown_assets = sorted(unknown)

        if unknown:
            logger.warning(f"Assets missing from price table: {', '.join(result.unknown_assets)}")
        logger.info(
            f"Value filter: {len(result.kept)} kept, {len(result.discarded)} "
            f"below {format_threshold(cfg.minimum_value)} {cfg.fiat_currency}"
        )
        return result


def format_threshold(value: Decimal) -> str:
    """Render the minimum with at least one decimal place: 1 -> "1.0", 0.25 -> "0.25"."""
    text = format(value.normalize(), "f")
    return text if "." in text else f"{text}.0"
