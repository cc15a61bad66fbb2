import locale
from unittest import mock

from agcoats import __main__ as entry_point


def test_setup_locale_uses_user_time_locale():
    with mock.patch("agcoats.__main__.locale.setlocale") as mock_setlocale:
        entry_point.setup_locale()
    mock_setlocale.assert_called_once_with(locale.LC_TIME, "")


def test_setup_locale_tolerates_unknown_locale():
    with mock.patch("agcoats.__main__.locale.setlocale", side_effect=locale.Error("unsupported locale setting")):
        entry_point.setup_locale()  # must not raise


def test_run_sets_locale_before_dispatch():
    calls = []
    with mock.patch.object(entry_point, "setup_locale", side_effect=lambda: calls.append("locale")), \
            mock.patch.object(entry_point, "app", side_effect=lambda **kwargs: calls.append("app")):
        entry_point.run()
    assert calls == ["locale", "app"]
