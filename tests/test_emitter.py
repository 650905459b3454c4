"""
Tests for risk levels, emission gates and cooldown de-duplication
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from signal_engine.analysis import (
    ScoreResult,
    ScoringContext,
    SignalEmitter,
    aggregate_timeframes,
    compute_risk_levels,
    generate_signal,
)
from signal_engine.cooldown import CooldownState
from signal_engine.indicators import IndicatorSet, OrderBlock, PivotLevels
from signal_engine.models import ConfidenceTier, Direction, Reason, RegimeLabel
from signal_engine.modes import get_mode_config

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_context(ind: IndicatorSet, symbol: str = 'TESTUSDT') -> ScoringContext:
    return ScoringContext(symbol=symbol, view=aggregate_timeframes(ind))


def make_result(score: float, direction: Direction = Direction.BUY, aligned: int = 2) -> ScoreResult:
    subscores = {'momentum': 0.0, 'trend': 0.0, 'levels': 0.0}
    for name in list(subscores)[:aligned]:
        subscores[name] = 0.8
    return ScoreResult(
        direction=direction,
        strategy='trend',
        score=score,
        raw_score=score,
        subscores=subscores,
        weights={},
        reasons=[Reason('Tendencia alcista (EMA20 > EMA50)', 60, 'trend')],
    )


@pytest.fixture
def indicators():
    return IndicatorSet(price=100.0, atr=2.0, ema20=101.0, ema50=100.0, choppiness=45.0)


class TestRiskLevels:
    """Test ATR stops and targets"""

    def test_buy_levels(self, indicators):
        levels = compute_risk_levels(indicators, Direction.BUY, get_mode_config('BALANCED'))

        assert levels.entry == 100.0
        assert levels.stop_loss == pytest.approx(97.0)
        assert levels.take_profit1 == pytest.approx(104.5)
        assert levels.take_profit2 == pytest.approx(107.5)
        assert levels.risk_reward == 1.5
        assert levels.structural_target is False

    def test_sell_levels_mirror(self, indicators):
        levels = compute_risk_levels(indicators, Direction.SELL, get_mode_config('BALANCED'))

        assert levels.stop_loss == pytest.approx(103.0)
        assert levels.take_profit1 == pytest.approx(95.5)
        assert levels.take_profit2 == pytest.approx(92.5)

    def test_choppy_widens_stop(self, indicators):
        levels = compute_risk_levels(indicators, Direction.BUY, get_mode_config('BALANCED'), choppy=True)

        assert levels.stop_loss == pytest.approx(100.0 - 3.0 * 1.25)

    def test_structural_target_between_1r_and_tp1(self, indicators):
        indicators.pivots = PivotLevels(pivot=95.0, r1=103.5, r2=110.0, s1=90.0, s2=85.0)
        levels = compute_risk_levels(indicators, Direction.BUY, get_mode_config('BALANCED'))

        assert levels.take_profit1 == pytest.approx(103.5)
        assert levels.structural_target is True
        assert levels.risk_reward == pytest.approx(1.17)

    def test_structural_target_inside_1r_ignored(self, indicators):
        indicators.order_blocks = [OrderBlock('bearish', top=102.5, bottom=101.0, index=0)]
        levels = compute_risk_levels(indicators, Direction.BUY, get_mode_config('BALANCED'))

        assert levels.take_profit1 == pytest.approx(104.5)

    def test_no_atr(self):
        ind = IndicatorSet(price=100.0)

        assert compute_risk_levels(ind, Direction.BUY, get_mode_config('BALANCED')) is None


class TestSignalEmitter:
    """Test emission gates"""

    def test_emits_above_threshold(self, indicators):
        emitter = SignalEmitter()
        signal = emitter.emit(make_result(0.72), make_context(indicators), get_mode_config('BALANCED'), NOW)

        assert signal.direction is Direction.BUY
        assert signal.score == 72
        assert signal.confidence is ConfidenceTier.MEDIUM
        assert signal.regime is RegimeLabel.TRENDING_BULL
        assert signal.categories_aligned == 2
        assert signal.timestamp == NOW
        assert signal.stop_loss < signal.entry < signal.take_profit1 < signal.take_profit2

    def test_threshold_is_exclusive(self, indicators):
        mode = get_mode_config('BALANCED')

        assert SignalEmitter().emit(make_result(0.40), make_context(indicators), mode, NOW) is None

    @pytest.mark.parametrize('threshold', [0.3, 0.5, 0.7])
    def test_threshold_monotonic(self, indicators, threshold):
        """Lowering the threshold never turns an emitted signal off"""
        base = get_mode_config('BALANCED')
        strict = replace(base, score_to_emit=threshold)
        lenient = replace(base, score_to_emit=threshold - 0.1)
        result = make_result(0.6)

        strict_signal = SignalEmitter().emit(result, make_context(indicators), strict, NOW)
        lenient_signal = SignalEmitter().emit(result, make_context(indicators), lenient, NOW)

        if strict_signal is not None:
            assert lenient_signal is not None

    def test_convergence_required(self, indicators):
        mode = get_mode_config('CONSERVATIVE')

        assert SignalEmitter().emit(make_result(0.9, aligned=1), make_context(indicators), mode, NOW) is None
        assert SignalEmitter().emit(make_result(0.9, aligned=2), make_context(indicators), mode, NOW) is not None

    def test_none_result(self, indicators):
        assert SignalEmitter().emit(None, make_context(indicators), get_mode_config('BALANCED'), NOW) is None

    def test_cooldown_suppresses_repeat(self, indicators):
        emitter = SignalEmitter()
        mode = get_mode_config('BALANCED')
        context = make_context(indicators)

        assert emitter.emit(make_result(0.7), context, mode, NOW) is not None
        assert emitter.emit(make_result(0.7), context, mode, NOW) is None
        assert emitter.emit(make_result(0.7), context, mode, NOW + timedelta(minutes=119)) is None
        assert emitter.emit(make_result(0.7), context, mode, NOW + timedelta(minutes=120)) is not None

    def test_cooldown_is_per_direction(self, indicators):
        emitter = SignalEmitter()
        mode = get_mode_config('BALANCED')
        context = make_context(indicators)

        assert emitter.emit(make_result(0.7), context, mode, NOW) is not None
        assert emitter.emit(make_result(0.7, Direction.SELL), context, mode, NOW) is not None

    def test_cooldown_key(self, indicators):
        cooldown = CooldownState()
        emitter = SignalEmitter(cooldown)
        emitter.emit(make_result(0.7), make_context(indicators), get_mode_config('BALANCED'), NOW)

        assert cooldown.store.get('TESTUSDT:BUY:trend') == NOW


class TestGenerateSignal:
    """Test the per-symbol pipeline"""

    def test_short_history_skipped(self, trending_data):
        signal = generate_signal('TESTUSDT', trending_data.iloc[:100], 'BALANCED', SignalEmitter(), now=NOW)

        assert signal is None

    def test_no_candidate_in_flat_market(self, sideways_data):
        assert generate_signal('TESTUSDT', sideways_data, 'BALANCED', SignalEmitter(), now=NOW) is None
