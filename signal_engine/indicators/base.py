"""
Indicator Helpers

Input validation and conversion shared by every indicator function.

Indicators follow one contract: they take an ordered price series or a candle
DataFrame plus fixed parameters and return None when the window is too short.
Invalid parameters or malformed frames are programmer errors and raise.
"""

from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

REQUIRED_COLUMNS = ['open', 'high', 'low', 'close', 'volume']

PriceInput = Union[pd.Series, np.ndarray, Iterable[float]]


def validate_period(period: int, min_period: int = 2) -> int:
    """Validate period parameter"""
    if not isinstance(period, (int, np.integer)) or isinstance(period, bool):
        raise ValueError(f"Period must be integer, got {type(period)}")

    if period < min_period:
        raise ValueError(f"Period must be >= {min_period}, got {period}")

    return int(period)


def validate_candles(df: pd.DataFrame) -> pd.DataFrame:
    """
    Validate that DataFrame has the OHLCV columns.

    Args:
        df: Candle DataFrame

    Returns:
        The same DataFrame

    Raises:
        ValueError if columns are missing
    """
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]

    if missing:
        raise ValueError(f"DataFrame missing required columns: {missing}")

    return df


def to_series(values: PriceInput) -> pd.Series:
    """Return a float Series with a fresh 0..n-1 index"""
    if isinstance(values, pd.Series):
        return values.astype(float).reset_index(drop=True)
    return pd.Series(np.asarray(list(values), dtype=float))


def last_valid(series: pd.Series) -> Optional[float]:
    """Last element as float, None when empty or NaN"""
    if series is None or len(series) == 0:
        return None
    value = series.iloc[-1]
    if pd.isna(value):
        return None
    return float(value)


def true_range(df: pd.DataFrame) -> pd.Series:
    """
    True range per bar. The first bar has no previous close and is NaN.
    """
    prev_close = df['close'].shift(1)
    ranges = pd.concat(
        [
            df['high'] - df['low'],
            (df['high'] - prev_close).abs(),
            (df['low'] - prev_close).abs(),
        ],
        axis=1,
    )
    tr = ranges.max(axis=1, skipna=False)
    return tr.reset_index(drop=True).astype(float)
