"""
Reconciliation Tests.

============================================================
PURPOSE
============================================================
Tests for the pure pipeline stages between the source adapters
and the ledger writer.

TEST CATEGORIES:
- Transaction model: validation and projections
- AddressMap / Normalizer: friendly names, vocabulary
- Deduplicator: type scoping, same-run collapse, missing ids
- ValueFilter: threshold boundary, unknown assets, audit reason
- Sequencer: stable ascending order

============================================================
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.config import AddressMatchConfig, UnknownAssetPolicy, ValueFilterConfig
from core.wallets import Chain, WalletConfig
from reconciliation import (
    AddressMap,
    Deduplicator,
    Normalizer,
    Sequencer,
    ValueFilter,
    format_threshold,
)
from reconciliation.models import (
    FilteredTransaction,
    Transaction,
    TransactionStatus,
    TransactionType,
)


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_tx(
    tx_id: str = "T1",
    tx_type=TransactionType.DEPOSIT,
    asset: str = "USDT",
    amount: str = "10",
    timestamp: datetime = T0,
    platform: str = "Binance (Main)",
    **fields,
) -> Transaction:
    return Transaction(
        platform=platform,
        type=tx_type,
        asset=asset,
        amount=amount,
        timestamp=timestamp,
        tx_id=tx_id,
        **fields,
    )


# ============================================================
# TRANSACTION MODEL TESTS
# ============================================================

class TestTransaction:
    """Tests for the Transaction model."""

    def test_type_synonyms(self):
        assert make_tx(tx_type="in").type == TransactionType.DEPOSIT
        assert make_tx(tx_type="Sent").type == TransactionType.WITHDRAWAL

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            make_tx(tx_type="swap")

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            make_tx(amount="-1")

    def test_non_numeric_amount_rejected(self):
        with pytest.raises(ValueError):
            make_tx(amount="ten")

    def test_zero_amount_allowed(self):
        assert make_tx(amount="0").amount_decimal == Decimal("0")

    def test_string_timestamp_parsed(self):
        tx = make_tx(timestamp="2024-01-01T00:05:00Z")

        assert tx.timestamp == T0 + timedelta(minutes=5)
        assert tx.timestamp_iso == "2024-01-01T00:05:00Z"

    def test_ledger_row_projection(self):
        tx = make_tx(
            amount="50.125",
            from_address="External",
            to_address="Binance (Main)",
            network="TRX",
            api_source="binance_deposits",
        )

        assert tx.to_ledger_row() == [
            "Binance (Main)", "USDT", "50.125", "2024-01-01 00:00",
            "External", "Binance (Main)", "T1",
        ]

    def test_recycle_row(self):
        item = FilteredTransaction(
            transaction=make_tx(amount="0.01", tx_id="A2", network="TRX"),
            calculated_value=Decimal("0.0367"),
            used_default_rate=False,
            filter_reason="Value 0.04 AED < 1.0 AED minimum",
        )
        row = item.to_recycle_row()

        assert len(row) == 13
        assert row[4] == "0.01000000"
        assert row[5] == "0.04"
        assert row[6] == "NO"
        assert row[10] == "A2"
        assert row[11] == "Completed"

    def test_dict_round_trip_keeps_enums(self):
        tx = make_tx(status=TransactionStatus.COMPLETED)
        data = tx.to_dict()

        assert data["type"] == "deposit"
        assert Transaction.from_dict(data) == tx


# ============================================================
# ADDRESS MAP / NORMALIZER TESTS
# ============================================================

class TestAddressMap:
    """Tests for friendly-name lookup."""

    @pytest.fixture
    def wallets(self):
        return [WalletConfig("Treasury", "0xAbCdEf0123456789", Chain.ETHEREUM)]

    def test_exact_and_case_insensitive(self, wallets):
        address_map = AddressMap.from_wallets(wallets)

        assert address_map.lookup("0xAbCdEf0123456789") == "Treasury"
        assert address_map.lookup("0xabcdef0123456789") == "Treasury"

    def test_prefix_match_off_by_default(self, wallets):
        address_map = AddressMap.from_wallets(wallets)
        assert address_map.lookup("0xabcdef01ffffffff") is None

    def test_prefix_match_opt_in(self, wallets):
        address_map = AddressMap.from_wallets(wallets, AddressMatchConfig(allow_prefix_match=True))

        assert address_map.lookup("0xabcdef01ffffffff") == "Treasury"
        assert address_map.lookup("0xabcdef01") is None


class TestNormalizer:
    """Tests for the Normalizer."""

    def test_friendly_name_replaces_platform(self):
        address_map = AddressMap({"TXYZ": "Tron Hot"})
        tx = make_tx(platform="TXYZ", from_address="TXYZ")

        [normalized] = Normalizer(address_map).normalize([tx])

        assert normalized.platform == "Tron Hot"
        assert normalized.from_address == "TXYZ"

    def test_mapping_input_and_vocabulary(self):
        raw = {
            "platform": " ByBit ",
            "type": "incoming",
            "asset": "usdt",
            "amount": " 5 ",
            "timestamp": "2024-01-01T00:00:00Z",
            "tx_id": " abc ",
        }

        [normalized] = Normalizer().normalize([raw])

        assert normalized.platform == "ByBit"
        assert normalized.type == TransactionType.DEPOSIT
        assert normalized.asset == "USDT"
        assert normalized.amount == "5"
        assert normalized.tx_id == "abc"

    def test_unrepresentable_records_dropped(self):
        normalizer = Normalizer()
        good = make_tx()
        bad = {"platform": "X", "type": "swap", "asset": "BTC", "amount": "1", "timestamp": T0}

        result = normalizer.normalize([bad, good])

        assert result == [good]
        assert normalizer.rejected == 1


# ============================================================
# DEDUPLICATOR TESTS
# ============================================================

class TestDeduplicator:
    """Tests for the Deduplicator."""

    def test_existing_ids_removed(self):
        result = Deduplicator().dedupe([make_tx("A"), make_tx("B")], {"A"}, set())

        assert [tx.tx_id for tx in result.unique] == ["B"]
        assert result.duplicates_removed == 1

    def test_type_scoped(self):
        withdrawal = make_tx("X", tx_type=TransactionType.WITHDRAWAL)

        result = Deduplicator().dedupe([withdrawal], {"X"}, set())

        assert result.unique == [withdrawal]

    def test_same_run_repeats_collapse(self):
        first = make_tx("R", amount="1")
        repeat = make_tx("R", amount="1")
        other_type = make_tx("R", tx_type=TransactionType.WITHDRAWAL)

        result = Deduplicator().dedupe([first, repeat, other_type], set(), set())

        assert result.unique == [first, other_type]
        assert result.total_in == 3

    def test_missing_id_passthrough(self):
        a = make_tx("")
        b = make_tx("")

        result = Deduplicator().dedupe([a, b], {""}, set())

        assert len(result.unique) == 2

    def test_idempotent_against_own_output(self):
        batch = [make_tx("A"), make_tx("B", tx_type=TransactionType.WITHDRAWAL)]
        first = Deduplicator().dedupe(batch, set(), set())

        deposits = {tx.tx_id for tx in first.unique if tx.is_deposit}
        withdrawals = {tx.tx_id for tx in first.unique if not tx.is_deposit}
        second = Deduplicator().dedupe(batch, deposits, withdrawals)

        assert second.unique == []


# ============================================================
# VALUE FILTER TESTS
# ============================================================

class TestValueFilter:
    """Tests for the ValueFilter."""

    @pytest.fixture
    def value_filter(self):
        return ValueFilter(ValueFilterConfig(price_table={"USDT": "3.67"}, minimum_value="1.0"))

    def test_concrete_usdt_scenario(self, value_filter):
        a1 = make_tx("A1", amount="50", timestamp="2024-01-01T00:00:00Z")
        a2 = make_tx("A2", amount="0.01", timestamp="2024-01-01T00:05:00Z")

        result = value_filter.filter([a1, a2])

        assert result.kept == [a1]
        rate, used_default = value_filter.rate_for("usdt")
        assert a1.amount_decimal * rate == Decimal("183.50")
        assert used_default is False
        [discarded] = result.discarded
        assert discarded.transaction == a2
        assert discarded.calculated_value == Decimal("0.0367")
        assert "< 1.0" in discarded.filter_reason

    def test_threshold_boundary(self):
        vf = ValueFilter(ValueFilterConfig(price_table={"USDT": "1"}, minimum_value="1.0"))
        exact = make_tx("E", amount="1.0")
        below = make_tx("B", amount="0.999999999")

        result = vf.filter([exact, below])

        assert result.kept == [exact]
        assert result.discarded[0].transaction == below
        assert result.discarded[0].filter_reason

    def test_zero_amount_always_filtered(self, value_filter):
        result = value_filter.filter([make_tx(amount="0")])
        assert result.kept == []

    def test_unknown_asset_default_rate(self, value_filter):
        result = value_filter.filter([make_tx("U", asset="XYZ", amount="0.5")])

        assert result.unknown_assets == ["XYZ"]
        assert result.discarded[0].used_default_rate is True

    def test_unknown_asset_keep_policy(self):
        vf = ValueFilter(ValueFilterConfig(
            price_table={},
            unknown_asset_policy=UnknownAssetPolicy.KEEP,
        ))

        result = vf.filter([make_tx(asset="XYZ", amount="0.0001")])

        assert len(result.kept) == 1
        assert result.unknown_assets == ["XYZ"]

    def test_exempt_assets_never_filtered(self):
        vf = ValueFilter(ValueFilterConfig(price_table={"BTC": "1"}, exempt_assets=["btc"]))

        result = vf.filter([make_tx(asset="BTC", amount="0.00001")])

        assert len(result.kept) == 1

    def test_price_table_override(self, value_filter):
        result = value_filter.filter([make_tx(amount="1")], price_table={"usdt": "0.5"})
        assert len(result.discarded) == 1

    def test_reason_keeps_one_decimal_for_whole_minimum(self):
        vf = ValueFilter(ValueFilterConfig(price_table={"USDT": "3.67"}, minimum_value="1"))

        [discarded] = vf.filter([make_tx("A2", amount="0.01")]).discarded

        assert discarded.filter_reason == "Value 0.04 AED < 1.0 AED minimum"

    @pytest.mark.parametrize("minimum,expected", [
        ("1", "1.0"),
        ("1.00", "1.0"),
        ("0", "0.0"),
        ("100", "100.0"),
        ("0.25", "0.25"),
    ])
    def test_format_threshold(self, minimum, expected):
        assert format_threshold(Decimal(minimum)) == expected


# ============================================================
# SEQUENCER TESTS
# ============================================================

class TestSequencer:
    """Tests for the Sequencer."""

    def test_ascending(self):
        t1 = make_tx("1", timestamp=T0)
        t2 = make_tx("2", timestamp=T0 + timedelta(minutes=1))
        t3 = make_tx("3", timestamp=T0 + timedelta(minutes=2))

        assert Sequencer().sort([t3, t1, t2]) == [t1, t2, t3]

    def test_stable_for_equal_timestamps(self):
        a = make_tx("a")
        b = make_tx("b")

        assert Sequencer().sort([b, a]) == [b, a]
