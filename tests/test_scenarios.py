"""
End-to-end scenarios through generate_signal()
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from signal_engine.analysis import SignalEmitter, generate_signal
from signal_engine.models import Direction, RegimeLabel

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def mirrored(df, pivot: float = 500.0):
    """Reflect prices around `pivot`: uptrends become downtrends"""
    out = df.copy()
    out['open'] = pivot - df['open']
    out['close'] = pivot - df['close']
    out['high'] = pivot - df['low']
    out['low'] = pivot - df['high']
    out['taker_buy_base_volume'] = df['volume'] - df['taker_buy_base_volume']
    return out


class TestTrendingMarket:
    """Steady uptrend on the working timeframe"""

    def test_buy_signal(self, trending_data):
        signal = generate_signal('BTCUSDT', trending_data, 'BALANCED', SignalEmitter(), now=NOW)

        assert signal is not None
        assert signal.direction is Direction.BUY
        assert signal.regime is RegimeLabel.TRENDING_BULL
        assert signal.score > 40
        assert signal.reasons[0].key == 'regime'
        assert any('Tendencia' in r.text for r in signal.reasons)
        assert 50 < signal.indicators['rsi'] < 70

    def test_levels(self, trending_data):
        signal = generate_signal('BTCUSDT', trending_data, 'BALANCED', SignalEmitter(), now=NOW)

        assert signal.entry == pytest.approx(249.75)
        assert signal.stop_loss == pytest.approx(249.75 - 2.625 * 1.5)
        assert signal.stop_loss < signal.entry < signal.take_profit1 < signal.take_profit2
        assert signal.risk_reward >= 1.0

    def test_serialisable(self, trending_data):
        signal = generate_signal('BTCUSDT', trending_data, 'BALANCED', SignalEmitter(), now=NOW)
        data = json.loads(json.dumps(signal.to_dict()))

        assert data['type'] == 'BUY'
        assert data['mode'] == 'BALANCED'
        assert set(data['levels']) == {'entry', 'stopLoss', 'takeProfit1', 'takeProfit2'}

    def test_cooldown(self, trending_data):
        emitter = SignalEmitter()

        assert generate_signal('BTCUSDT', trending_data, 'BALANCED', emitter, now=NOW) is not None
        assert generate_signal('BTCUSDT', trending_data, 'BALANCED', emitter, now=NOW) is None
        assert generate_signal('ETHUSDT', trending_data, 'BALANCED', emitter, now=NOW) is not None
        later = NOW + timedelta(hours=2)
        assert generate_signal('BTCUSDT', trending_data, 'BALANCED', emitter, now=later) is not None

    def test_higher_timeframe_confirmation(self, trending_data):
        plain = generate_signal('BTCUSDT', trending_data, 'BALANCED', SignalEmitter(), now=NOW)
        confirmed = generate_signal(
            'BTCUSDT', trending_data, 'BALANCED', SignalEmitter(),
            higher={'1d': trending_data, '4h': trending_data},
            now=NOW,
        )

        assert confirmed.score >= plain.score

    def test_bearish_daily_blocks_buy(self, trending_data):
        signal = generate_signal(
            'BTCUSDT', trending_data, 'BALANCED', SignalEmitter(),
            higher={'1d': mirrored(trending_data)},
            now=NOW,
        )

        assert signal is None


class TestDowntrend:
    """Mirror image of the uptrend"""

    def test_sell_signal(self, trending_data):
        signal = generate_signal('BTCUSDT', mirrored(trending_data), 'BALANCED', SignalEmitter(), now=NOW)

        assert signal is not None
        assert signal.direction is Direction.SELL
        assert signal.regime is RegimeLabel.TRENDING_BEAR
        assert signal.take_profit2 < signal.take_profit1 < signal.entry < signal.stop_loss


class TestRangeReversion:
    """Slow slide out of a flat range that closes under the lower Bollinger band"""

    @pytest.fixture
    def oversold_range(self, frame_factory):
        # 285 flat bars, 14 closes down 0.05 each, then a 0.6 drop to 98.5
        n = 285
        closes = [99.8 if i % 2 == 0 else 100.2 for i in range(n)]
        opens, highs, lows = [100.0] * n, [100.5] * n, [99.5] * n

        steps = [0.05] * 14 + [0.6]
        for step in steps:
            open_price = closes[-1]
            close = open_price - step
            opens.append(open_price)
            highs.append(open_price + 0.5)
            lows.append(close - 0.5)
            closes.append(close)

        return frame_factory(opens, highs, lows, closes)

    def test_buy_signal(self, oversold_range):
        signal = generate_signal('BTCUSDT', oversold_range, 'BALANCED', SignalEmitter(), now=NOW)

        assert signal is not None
        assert signal.direction is Direction.BUY
        assert signal.regime is RegimeLabel.RANGING
        assert signal.entry == pytest.approx(98.5)
        assert signal.indicators['rsi'] < 30
        assert signal.indicators['choppiness'] > 60
        assert signal.entry <= signal.indicators['bbLower']
        assert signal.subscores['levels'] == 100
        assert signal.subscores['trend'] == 0
        assert any('Bollinger' in r.text for r in signal.reasons)
        assert 'Mercado lateral: estrategia de reversión a la media' in signal.warnings

    def test_wider_stop_in_chop(self, oversold_range):
        signal = generate_signal('BTCUSDT', oversold_range, 'BALANCED', SignalEmitter(), now=NOW)
        atr = (13 * 1.05 + 1.6) / 14

        assert signal.stop_loss == pytest.approx(98.5 - atr * 1.5 * 1.25)


class TestSidewaysMarket:
    """Flat chop without an extreme"""

    def test_no_signal(self, sideways_data):
        for mode in ('CONSERVATIVE', 'BALANCED', 'RISKY', 'SCALPING'):
            assert generate_signal('BTCUSDT', sideways_data, mode, SignalEmitter(), now=NOW) is None

    def test_short_history(self, sideways_data):
        assert generate_signal('BTCUSDT', sideways_data.iloc[:100], 'BALANCED', SignalEmitter(), now=NOW) is None
