"""
Tests for the command line entry point
"""

import pytest

import run as run_module
from signal_engine.errors import MarketDataError
from signal_engine.scanner import SignalScanner


class UnreachableProvider:
    """Provider whose universe ranking always fails"""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def get_top_symbols(self, quote='USDT', limit=20, min_quote_volume=0.0):
        raise MarketDataError('GET /ticker/24hr failed: connection refused')


class TestMain:
    """Test main() exit paths"""

    @pytest.fixture
    def unreachable(self, monkeypatch, tmp_path):
        monkeypatch.setattr(
            run_module,
            'build_scanner',
            lambda config: SignalScanner(UnreachableProvider(), config.scanner),
        )
        monkeypatch.setattr(
            'sys.argv',
            ['run.py', '--once', '--config', str(tmp_path / 'missing.yaml')],
        )

    def test_market_data_error_exits_cleanly(self, unreachable, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run_module.main()

        assert exc_info.value.code == 1
        assert 'Market data unavailable' in capsys.readouterr().out

    def test_invalid_config_exits(self, monkeypatch, tmp_path, capsys):
        path = tmp_path / 'config.yaml'
        path.write_text("scanner: [unclosed\n")
        monkeypatch.setattr('sys.argv', ['run.py', '--once', '--config', str(path)])

        with pytest.raises(SystemExit) as exc_info:
            run_module.main()

        assert exc_info.value.code == 1
        assert 'Error loading configuration' in capsys.readouterr().out
