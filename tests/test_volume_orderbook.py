"""
Tests for volume flow and order book metrics
"""

import pytest

from signal_engine.indicators import (
    buyer_pressure,
    chaikin_money_flow,
    detect_accumulation,
    order_book_metrics,
)
from signal_engine.indicators.volume import is_selling_climax
from signal_engine.models import OrderBookSnapshot


@pytest.fixture
def climax_data(frame_factory):
    opens = [100.0] * 20 + [99.5]
    highs = [100.5] * 20 + [100.5]
    lows = [99.5] * 20 + [97.5]
    closes = [100.0] * 20 + [100.0]
    volumes = [100.0] * 20 + [400.0]
    return frame_factory(opens, highs, lows, closes, volumes)


class TestChaikinMoneyFlow:
    """Test CMF"""

    def test_closes_at_high(self, frame_factory):
        n = 20
        df = frame_factory([100.0] * n, [101.0] * n, [99.0] * n, [101.0] * n)

        assert chaikin_money_flow(df) == pytest.approx(1.0)

    def test_closes_at_low(self, frame_factory):
        n = 20
        df = frame_factory([100.0] * n, [101.0] * n, [99.0] * n, [99.0] * n)

        assert chaikin_money_flow(df) == pytest.approx(-1.0)

    def test_zero_range_bars(self, frame_factory):
        n = 20
        df = frame_factory([100.0] * n, [100.0] * n, [100.0] * n, [100.0] * n)

        assert chaikin_money_flow(df) == pytest.approx(0.0)

    def test_short_input(self, sample_data):
        assert chaikin_money_flow(sample_data.iloc[:19]) is None


class TestAccumulation:
    """Test Wyckoff climax and CMF accumulation"""

    def test_selling_climax(self, climax_data):
        assert is_selling_climax(climax_data)

        acc = detect_accumulation(climax_data)
        assert acc.kind == 'climax'
        assert acc.strength == 1.0

    def test_no_climax_without_volume(self, climax_data):
        df = climax_data.copy()
        df.loc[20, 'volume'] = 250.0

        assert not is_selling_climax(df)

    def test_cmf_accumulation_in_range(self, frame_factory):
        n = 21
        df = frame_factory([100.0] * n, [101.0] * n, [99.0] * n, [100.1] * n)

        acc = detect_accumulation(df)

        assert acc.kind == 'cmf'
        assert acc.cmf == pytest.approx(0.1)
        assert acc.strength == pytest.approx(0.4)

    def test_no_accumulation_on_outflow(self, frame_factory):
        n = 21
        df = frame_factory([100.0] * n, [101.0] * n, [99.0] * n, [99.5] * n)

        assert detect_accumulation(df) is None


class TestBuyerPressure:
    """Test taker buy share"""

    def test_share_in_percent(self, frame_factory):
        df = frame_factory([1.0] * 5, [2.0] * 5, [0.5] * 5, [1.5] * 5, taker_ratio=0.6)

        assert buyer_pressure(df, 3) == pytest.approx(60.0)

    def test_missing_column(self, frame_factory):
        df = frame_factory([1.0] * 5, [2.0] * 5, [0.5] * 5, [1.5] * 5)
        df = df.drop(columns=['taker_buy_base_volume'])

        assert buyer_pressure(df) is None

    def test_no_volume(self, frame_factory):
        df = frame_factory([1.0] * 5, [2.0] * 5, [0.5] * 5, [1.5] * 5, volumes=[0.0] * 5)

        assert buyer_pressure(df) is None


class TestOrderBookMetrics:
    """Test spread and imbalance"""

    def test_imbalance_and_spread(self):
        book = OrderBookSnapshot.from_levels([(100.0, 2.0), (99.0, 1.0)], [(101.0, 1.0)])
        metrics = order_book_metrics(book)

        assert metrics.bid_notional == pytest.approx(299.0)
        assert metrics.ask_notional == pytest.approx(101.0)
        assert metrics.imbalance == pytest.approx(198.0 / 400.0)
        assert metrics.spread_bps == pytest.approx(1.0 / 100.5 * 10_000)

    def test_depth_limits_levels(self):
        book = OrderBookSnapshot.from_levels([(100.0, 1.0), (99.0, 100.0)], [(101.0, 1.0)])
        metrics = order_book_metrics(book, depth=1)

        assert metrics.bid_notional == pytest.approx(100.0)

    def test_empty_side(self):
        book = OrderBookSnapshot.from_levels([(100.0, 1.0)], [])

        assert order_book_metrics(book) is None
        assert order_book_metrics(None) is None
