"""
Tests for price / oscillator divergence detection
"""

import numpy as np
import pytest

from signal_engine.indicators import detect_divergences, macd_divergences, rsi_divergences
from signal_engine.indicators.divergence import find_pivots
from signal_engine.models import Direction


def with_dips(baseline: float, dips: dict, n: int = 30) -> np.ndarray:
    values = np.full(n, baseline)
    for index, value in dips.items():
        values[index] = value
    return values


def with_peaks(baseline: float, peaks: dict, n: int = 30) -> np.ndarray:
    return with_dips(baseline, peaks, n)


class TestPivots:
    """Test strict pivot detection"""

    def test_strict_pivots_only(self):
        values = np.array([1.0, 2.0, 3.0, 2.0, 1.0, 1.0, 1.0, 1.0])

        assert find_pivots(values, True) == [(2, 3.0)]
        assert find_pivots(values, False) == []

    def test_nan_never_pivots(self):
        values = np.array([5.0, 4.0, np.nan, 4.0, 5.0, 6.0, 5.0])

        assert find_pivots(values, False) == []


class TestDetectDivergences:
    """Test regular and hidden divergences"""

    def test_regular_bullish(self):
        prices = with_dips(100.0, {10: 90.0, 20: 85.0})
        osc = with_dips(50.0, {10: 20.0, 20: 30.0})

        found = detect_divergences(prices, osc)

        assert len(found) == 1
        div = found[0]
        assert div.name == 'Regular Bullish Divergence'
        assert div.hidden is False
        assert div.strength == pytest.approx(10.0)
        assert div.supports(Direction.BUY)
        assert not div.supports(Direction.SELL)

    def test_hidden_bullish(self):
        prices = with_dips(100.0, {10: 85.0, 20: 90.0})
        osc = with_dips(50.0, {10: 30.0, 20: 20.0})

        found = detect_divergences(prices, osc)

        assert [d.name for d in found] == ['Hidden Bullish Divergence']
        assert found[0].hidden is True

    def test_regular_bearish(self):
        prices = with_peaks(100.0, {8: 110.0, 22: 115.0})
        osc = with_peaks(50.0, {9: 80.0, 21: 70.0})

        found = detect_divergences(prices, osc)

        assert [d.name for d in found] == ['Regular Bearish Divergence']
        assert found[0].supports(Direction.SELL)

    def test_pivots_too_close(self):
        prices = with_dips(100.0, {10: 90.0, 13: 85.0})
        osc = with_dips(50.0, {10: 20.0, 13: 30.0})

        assert detect_divergences(prices, osc) == []

    def test_pivots_misaligned(self):
        prices = with_dips(100.0, {10: 90.0, 20: 85.0})
        osc = with_dips(50.0, {10: 20.0, 24: 30.0})

        assert detect_divergences(prices, osc) == []

    def test_no_divergence_when_both_agree(self):
        prices = with_dips(100.0, {10: 90.0, 20: 85.0})
        osc = with_dips(50.0, {10: 30.0, 20: 20.0})

        assert detect_divergences(prices, osc) == []

    def test_only_trailing_window_is_scanned(self):
        prices = np.concatenate([with_dips(100.0, {10: 90.0, 20: 85.0}), np.full(30, 100.0)])
        osc = np.concatenate([with_dips(50.0, {10: 20.0, 20: 30.0}), np.full(30, 50.0)])

        assert detect_divergences(prices, osc, lookback=30) == []

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            detect_divergences(np.ones(30), np.ones(29))

    def test_short_input(self):
        assert detect_divergences(np.ones(10), np.ones(10), lookback=30) == []


class TestOscillatorDivergences:
    """Test RSI / MACD wrappers"""

    def test_rsi_needs_warmup(self, sample_data):
        closes = sample_data['close']

        assert rsi_divergences(closes.iloc[:44]) == []

    def test_macd_strength_normalised(self, sample_data):
        for div in macd_divergences(sample_data['close']):
            assert 0.0 <= div.strength <= 1.0
            assert div.source == 'macd'

    def test_rsi_divergence_labels(self, long_sample_data):
        for div in rsi_divergences(long_sample_data['close']):
            assert div.source == 'rsi'
            assert div.bias in ('bullish', 'bearish')
