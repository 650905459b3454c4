"""
Tests for price levels and candlestick patterns
"""

import pytest

from signal_engine.indicators import (
    CandlePattern,
    best_pattern,
    detect_patterns,
    dynamic_support_resistance,
    fibonacci_pivots,
    find_order_blocks,
    pivot_points,
    prior_period_pivots,
)
from signal_engine.models import Direction


class TestPivots:
    """Test pivot point calculations"""

    def test_classic_pivots(self):
        levels = pivot_points(110.0, 90.0, 100.0)

        assert levels.pivot == pytest.approx(100.0)
        assert levels.r1 == pytest.approx(110.0)
        assert levels.s1 == pytest.approx(90.0)
        assert levels.r2 == pytest.approx(120.0)
        assert levels.s2 == pytest.approx(80.0)

    def test_fibonacci_pivots(self):
        levels = fibonacci_pivots(110.0, 90.0, 100.0)

        assert levels.r1 == pytest.approx(107.64)
        assert levels.s2 == pytest.approx(87.64)
        assert levels.r3 == pytest.approx(120.0)
        assert levels.kind == 'fibonacci'

    def test_nearest_levels(self):
        levels = pivot_points(110.0, 90.0, 100.0)

        assert levels.nearest_above(101.0) == pytest.approx(110.0)
        assert levels.nearest_below(101.0) == pytest.approx(100.0)
        assert levels.nearest_above(130.0) is None

    def test_prior_period_uses_completed_bar(self, frame_factory):
        df = frame_factory([100, 105], [110, 200], [90, 50], [100, 150])
        levels = prior_period_pivots(df, 'classic')

        assert levels.pivot == pytest.approx(100.0)

    def test_prior_period_needs_two_bars(self, frame_factory):
        df = frame_factory([100], [110], [90], [100])

        assert prior_period_pivots(df) is None

    def test_unknown_kind(self, frame_factory):
        df = frame_factory([100, 105], [110, 200], [90, 50], [100, 150])

        with pytest.raises(ValueError):
            prior_period_pivots(df, 'camarilla')


class TestSupportResistance:
    """Test swing-based support / resistance"""

    def test_falls_back_to_window_extremes(self, trending_data):
        # Strictly rising lows and highs have no swing points
        sr = dynamic_support_resistance(trending_data, 50)

        assert sr.support == pytest.approx(225.0)
        assert sr.resistance == pytest.approx(252.0)
        assert sr.near_support is False
        assert sr.near_resistance is True

    def test_levels_bracket_price(self, sample_data):
        sr = dynamic_support_resistance(sample_data, 50)
        price = sample_data['close'].iloc[-1]

        if sr.support is not None:
            assert sr.support < price
        if sr.resistance is not None:
            assert sr.resistance > price

    def test_short_history(self, sample_data):
        assert dynamic_support_resistance(sample_data.iloc[:49], 50) is None


class TestOrderBlocks:
    """Test order block detection"""

    @pytest.fixture
    def impulse_data(self, frame_factory):
        opens = [100.0] * 7 + [100.1, 99.95, 101.0]
        closes = [100.1] * 7 + [99.95, 101.0, 101.05]
        highs = [100.2] * 7 + [100.15, 101.1, 101.1]
        lows = [99.9] * 7 + [99.9, 99.9, 100.95]
        return frame_factory(opens, highs, lows, closes)

    def test_bullish_block(self, impulse_data):
        blocks = find_order_blocks(impulse_data, lookback=10)

        assert len(blocks) == 1
        block = blocks[0]
        assert block.kind == 'bullish'
        assert block.index == 7
        assert block.top == pytest.approx(100.15)
        assert block.bottom == pytest.approx(99.9)

    def test_mitigated_block_dropped(self, impulse_data):
        df = impulse_data.copy()
        df.loc[9, ['open', 'close', 'low']] = [100.5, 99.5, 99.4]

        blocks = find_order_blocks(df, lookback=10)

        assert [b for b in blocks if b.kind == 'bullish'] == []

    def test_contains_with_tolerance(self, impulse_data):
        block = find_order_blocks(impulse_data, lookback=10)[0]

        assert block.contains(100.0)
        assert not block.contains(100.5)
        assert block.contains(100.5, tolerance_pct=0.5)


class TestCandlePatterns:
    """Test candlestick pattern detection"""

    def test_hammer(self, frame_factory):
        df = frame_factory([100.0], [100.25], [99.0], [100.2])
        names = [p.name for p in detect_patterns(df)]

        assert names == ['Hammer']

    def test_shooting_star(self, frame_factory):
        df = frame_factory([100.2], [101.2], [99.95], [100.0])
        names = [p.name for p in detect_patterns(df)]

        assert names == ['Shooting Star']

    def test_bullish_engulfing(self, frame_factory):
        df = frame_factory([101.0, 99.8], [101.1, 101.6], [99.9, 99.7], [100.0, 101.5])
        names = [p.name for p in detect_patterns(df)]

        assert 'Bullish Engulfing' in names
        assert 'Bearish Engulfing' not in names

    def test_morning_star(self, frame_factory):
        df = frame_factory(
            [105.0, 99.9, 100.2],
            [105.2, 100.3, 103.6],
            [99.8, 99.5, 100.0],
            [100.0, 100.0, 103.5],
        )
        names = [p.name for p in detect_patterns(df)]

        assert 'Morning Star' in names

    def test_three_black_crows(self, frame_factory):
        df = frame_factory(
            [110.0, 108.0, 106.0],
            [110.2, 108.2, 106.2],
            [107.8, 105.8, 103.8],
            [107.9, 105.9, 103.9],
        )
        names = [p.name for p in detect_patterns(df)]

        assert 'Three Black Crows' in names

    def test_no_pattern_on_plain_bar(self, frame_factory):
        df = frame_factory([100.0], [101.1], [99.9], [101.0])

        assert detect_patterns(df) == []

    def test_best_pattern_respects_direction(self):
        patterns = [
            CandlePattern('Doji', 'neutral', 10),
            CandlePattern('Bullish Engulfing', 'bullish', 30),
        ]

        assert best_pattern(patterns, Direction.BUY).name == 'Bullish Engulfing'
        assert best_pattern(patterns, Direction.SELL).name == 'Doji'
        assert best_pattern([], Direction.BUY) is None
