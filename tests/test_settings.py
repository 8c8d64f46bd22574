import io
import random

import pytest

from udpcopy import debug
from udpcopy.msgevents import ErrorDrop, ErrorFlipBits
from udpcopy.packet_manager import PacketManager
from udpcopy.settings import EnvKey, SettingsManager, parse_long_list


@pytest.fixture(autouse=True)
def quiet_debug():
    saved = debug.get_level()
    debug.set_stream(io.StringIO())
    yield
    debug.set_stream(None)
    debug.set_level(saved)


def make(env):
    pm = PacketManager(random.Random(0))
    return pm, SettingsManager(pm, env)


def test_env_key_names():
    _, settings = make({"CPE464_OVERRIDE_ERR_RATE": "0.3"})
    assert settings.is_overridden(EnvKey.OVERRIDE_ERR_RATE)
    assert not settings.is_overridden(EnvKey.OVERRIDE_PORT)
    _, settings = make({"CPE464_OVERRIDE_PORT": "5000"})
    assert settings.is_overridden(EnvKey.OVERRIDE_PORT)
    assert not settings.is_overridden(EnvKey.OVERRIDE_ERR_RATE)


def test_parse_long_list_basic():
    assert parse_long_list("1,2,3") == [1, 2, 3]


def test_parse_long_list_skips_empty_items():
    assert parse_long_list(",,3,") == [3]


def test_parse_long_list_stops_at_invalid():
    assert parse_long_list("1,2,x,4") == [1, 2]


def test_parse_long_list_accepts_numeric_prefix_and_sign():
    assert parse_long_list("7abc,-1") == [7, -1]


def test_no_environment_applies_user_settings():
    pm, settings = make({})
    assert settings.overrides == {}
    assert settings.set_error_rate(0.5) is True
    assert pm.error_rate == 0.5
    assert settings.set_drop(True) is True
    assert settings.set_flip(True) is True
    assert [type(e) for e in pm.random_events] == [ErrorDrop, ErrorFlipBits]


def test_disabled_drop_adds_nothing():
    pm, settings = make({})
    assert settings.set_drop(False) is True
    assert pm.random_events == []


def test_construction_sets_warn_level():
    make({})
    assert debug.get_level() == debug.DebugLevel.WARN


def test_env_error_rate_overrides_user():
    pm, settings = make({"CPE464_OVERRIDE_ERR_RATE": "0.25"})
    assert pm.error_rate == 0.25
    assert settings.set_error_rate(0.5) is False
    assert pm.error_rate == 0.25


def test_env_debug_overrides_user():
    _, settings = make({"CPE464_OVERRIDE_DEBUG": "2"})
    assert debug.get_level() == 2
    assert settings.set_debug(3) is False
    assert debug.get_level() == 2


def test_invalid_long_is_ignored():
    _, settings = make({"CPE464_OVERRIDE_DEBUG": "abc"})
    assert not settings.is_overridden(EnvKey.OVERRIDE_DEBUG)
    assert settings.set_debug(3) is True
    assert debug.get_level() == 3


def test_env_seed_makes_sequence_repeatable():
    pm1, s1 = make({"CPE464_OVERRIDE_SEEDRAND": "42"})
    pm2, _ = make({"CPE464_OVERRIDE_SEEDRAND": "42"})
    assert pm1.rng.random() == pm2.rng.random()
    assert s1.set_seed(7) is False


def test_env_drop_negative_enables_random_drop():
    pm, settings = make({"CPE464_OVERRIDE_ERR_DROP": "-1"})
    assert len(pm.random_events) == 1
    assert isinstance(pm.random_events[0], ErrorDrop)
    assert pm.random_events[0].drop_all is True
    assert settings.set_drop(True) is False
    assert len(pm.random_events) == 1


def test_env_drop_list_adds_standard_event():
    pm, _ = make({"CPE464_OVERRIDE_ERR_DROP": "3,5"})
    assert pm.random_events == []
    (event,) = pm.standard_events
    assert event.drop_all is False
    assert event.drop_list == [3, 5]


def test_env_flip_empty_enables_random_flip():
    pm, settings = make({"CPE464_OVERRIDE_ERR_FLIP": ""})
    assert [type(e) for e in pm.random_events] == [ErrorFlipBits]
    assert settings.set_flip(True) is False


def test_env_flip_list_adds_nothing():
    pm, settings = make({"CPE464_OVERRIDE_ERR_FLIP": "2"})
    assert pm.random_events == [] and pm.standard_events == []
    assert settings.set_flip(True) is False


def test_autograder_string_is_kept():
    _, settings = make({"CPE464_AUTOGRADER": "yes"})
    assert settings.overrides[EnvKey.AUTOGRADER] == "yes"