import pytest

from ets_article.cli import main


@pytest.fixture
def env(monkeypatch, data_dir, tmp_path):
    monkeypatch.setenv('ETS_DATA_DIR', str(data_dir))
    monkeypatch.setenv('ETS_OUTPUT_DIR', str(tmp_path / 'out'))
    monkeypatch.setenv('ETS_LOG_LEVEL', 'WARNING')
    return tmp_path


def test_datasets_command(env, capsys):
    assert main(['datasets']) == 0
    out = capsys.readouterr().out
    assert 'austourists' in out
    assert 'cached' in out


def test_forecast_command_with_plot(env, capsys):
    plot = env / 'fc.png'
    assert main(['forecast', 'lynx', '--model', 'naive', '--horizon', '3', '--plot', str(plot)]) == 0
    out = capsys.readouterr().out
    assert 'Naive on lynx' in out
    assert 'lo95' in out
    assert plot.exists()


def test_select_command(env, capsys):
    assert main(['select', 'austres']) == 0
    assert 'Selected ETS(' in capsys.readouterr().out


def test_errors_return_nonzero(env):
    assert main(['forecast', 'lynx', '--model', 'arima']) == 1
    assert main(['forecast', 'sunspots']) == 1


def test_lint_command(env, capsys):
    md = env / 'post.md'
    md.write_text('Title: x\n\nBody\n')
    assert main(['lint', str(md)]) == 1
    assert 'missing metadata field' in capsys.readouterr().out

    md.write_text('Title: x\nAuthor: y\nDate: 2020-01-01\nSlug: x\nTags: a\n\nBody\n')
    assert main(['lint', str(md)]) == 0


def test_bad_configuration_and_horizon(env, monkeypatch):
    assert main(['forecast', 'lynx', '--model', 'naive', '--horizon', '0']) == 1
    monkeypatch.setenv('ETS_REQUEST_TIMEOUT', 'soon')
    assert main(['datasets']) == 1
