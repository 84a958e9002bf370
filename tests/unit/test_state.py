from __future__ import annotations

import pytest

from stepledger.core.engine.errors import ConfigurationError
from stepledger.core.engine.keys import RunKeys
from stepledger.core.engine.state import (
    STEP_LIMIT,
    Complete,
    Pending,
    format_last_step,
    is_done,
    parse_int,
    parse_last_step,
)


def test_keys_are_derived_from_prefix() -> None:
    keys = RunKeys.for_prefix("food")
    assert keys.epoch == "food_epoch"
    assert keys.last_step == "food_last_step"
    assert keys.breakpoint == "food_breakpoint"
    assert keys.in_flight == "food_in_flight"


def test_keys_require_prefix() -> None:
    with pytest.raises(ConfigurationError):
        RunKeys.for_prefix("")


def test_parse_int_unset_and_padding() -> None:
    assert parse_int("", key="k") is None
    assert parse_int("  ", key="k") is None
    assert parse_int(" 12\n", key="k") == 12


def test_parse_int_rejects_garbage() -> None:
    with pytest.raises(ConfigurationError, match="'k'"):
        parse_int("twelve", key="k")


def test_last_step_encoding() -> None:
    assert parse_last_step("", key="k") == Pending(0)
    assert parse_last_step("30", key="k") == Pending(30)
    assert parse_last_step(str(STEP_LIMIT), key="k") == Complete()
    assert format_last_step(Pending(30)) == "30"
    assert format_last_step(Complete()) == str(STEP_LIMIT)


def test_negative_last_step_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        parse_last_step("-4", key="k")


def test_is_done() -> None:
    assert is_done(Pending(10), 10)
    assert is_done(Pending(10), 3)
    assert not is_done(Pending(10), 11)
    assert is_done(Complete(), STEP_LIMIT - 1)
