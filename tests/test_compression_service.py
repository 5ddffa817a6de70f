import threading

import pytest

from services.compression_service import (
    CompressionService,
    EncodeAttempt,
    Phase,
    SearchConfig,
    TargetSizeEncoder,
    can_shrink,
    initial_state,
    next_request,
    shrink,
    step,
    target_bytes_from_kb,
)
from services.exceptions import (
    CompressionCancelled,
    EncodeError,
    InvalidTarget,
    TargetUnreachable,
)
from services.image_service import SourceImage


class ScriptedEncoder:
    """Encode stub whose output size comes from a function or a list of sizes."""

    def __init__(self, sizes):
        self.sizes = sizes
        self.calls = []

    def __call__(self, image, quality, width, height):
        self.calls.append((quality, width, height))
        if callable(self.sizes):
            size = self.sizes(quality, width, height)
        else:
            size = self.sizes[len(self.calls) - 1]
        return b"x" * size


def source(width=400, height=300):
    return SourceImage(image=None, width=width, height=height, original_size=0)


def test_bisection_runs_exactly_ten_encodes_when_everything_fits():
    encoder = ScriptedEncoder(lambda q, w, h: 10)
    result = TargetSizeEncoder(encode=encoder).compress(source(), 100)

    assert len(encoder.calls) == 10
    assert result.phase == "bisection"
    assert result.within_budget
    assert result.quality == pytest.approx(1 - 2 ** -10)


def test_bisection_picks_highest_quality_within_budget():
    encoder = ScriptedEncoder(lambda q, w, h: round(q * 1000))
    result = TargetSizeEncoder(encode=encoder).compress(source(), 300)

    assert len(encoder.calls) == 10
    assert result.size <= 300
    assert 0.29 < result.quality <= 0.3005


def test_latest_on_budget_attempt_wins():
    sizes = [50, 200, 80, 150, 90, 120, 95, 110, 99, 101]
    encoder = ScriptedEncoder(sizes)
    result = TargetSizeEncoder(encode=encoder).compress(source(), 100)

    assert result.size == 99
    assert result.quality == pytest.approx(0.666015625)
    assert [round(q, 6) for q, _, _ in encoder.calls[:3]] == [0.5, 0.75, 0.625]


def test_bisection_encodes_at_capped_source_dimensions():
    encoder = ScriptedEncoder(lambda q, w, h: 10)
    TargetSizeEncoder(encode=encoder).compress(source(1920, 1440), 100)

    assert {(w, h) for _, w, h in encoder.calls} == {(1920, 1440)}


def test_fallback_shrinks_until_under_budget():
    encoder = ScriptedEncoder(lambda q, w, h: w * h // 100)
    result = TargetSizeEncoder(encode=encoder).compress(source(400, 300), 400)

    assert result.within_budget
    assert result.size <= 400
    assert result.phase == "shrink"
    assert result.quality == 0.7
    assert result.width < 400

    fallback_calls = encoder.calls[10:]
    assert fallback_calls[0] == (0.1, 400, 300)
    assert all(q == 0.7 for q, _, _ in fallback_calls[1:])
    assert fallback_calls[1][1:] == (360, 270)


def test_fallback_never_goes_below_dimension_floor():
    encoder = ScriptedEncoder(lambda q, w, h: 5000)

    with pytest.raises(TargetUnreachable) as excinfo:
        TargetSizeEncoder(encode=encoder).compress(source(400, 300), 100)

    assert excinfo.value.last_size == 5000
    assert "try raising the target" in str(excinfo.value).lower()
    assert all(w >= 100 and h >= 100 for _, w, h in encoder.calls)
    assert min(encoder.calls[-1][1:]) == 100


def test_fallback_floor_applies_to_the_shorter_side():
    encoder = ScriptedEncoder(lambda q, w, h: 5000)

    with pytest.raises(TargetUnreachable):
        TargetSizeEncoder(encode=encoder).compress(source(1920, 200), 100)

    assert all(h >= 100 for _, _, h in encoder.calls)


def test_best_effort_returns_over_budget_result_flagged():
    encoder = ScriptedEncoder(lambda q, w, h: 5000)
    result = TargetSizeEncoder(encode=encoder).compress(source(400, 300), 100, allow_best_effort=True)

    assert not result.within_budget
    assert result.size == 5000
    assert result.phase == "shrink"
    assert min(result.width, result.height) == 100


def test_tiny_image_only_probes_once_before_failing():
    encoder = ScriptedEncoder(lambda q, w, h: 5000)

    with pytest.raises(TargetUnreachable):
        TargetSizeEncoder(encode=encoder).compress(source(50, 40), 100)

    assert len(encoder.calls) == 11
    assert encoder.calls[-1] == (0.1, 50, 40)


@pytest.mark.parametrize("target", [0, -1, -1024])
def test_invalid_target_raises_before_encoding(target):
    encoder = ScriptedEncoder(lambda q, w, h: 10)

    with pytest.raises(InvalidTarget):
        TargetSizeEncoder(encode=encoder).compress(source(), target)

    assert encoder.calls == []


def test_invalid_target_raises_before_decoding():
    with pytest.raises(InvalidTarget):
        CompressionService().compress(b"definitely not an image", 0)


def test_encode_error_is_not_retried():
    calls = []

    def failing(image, quality, width, height):
        calls.append(quality)
        raise EncodeError("boom")

    with pytest.raises(EncodeError):
        TargetSizeEncoder(encode=failing).compress(source(), 100)

    assert len(calls) == 1


def test_cancel_before_start_encodes_nothing():
    encoder = ScriptedEncoder(lambda q, w, h: 10)
    event = threading.Event()
    event.set()

    with pytest.raises(CompressionCancelled):
        TargetSizeEncoder(encode=encoder).compress(source(), 100, cancel_event=event)

    assert encoder.calls == []


def test_cancel_mid_search_returns_no_partial_result():
    event = threading.Event()
    calls = []

    def encode(image, quality, width, height):
        calls.append(quality)
        if len(calls) == 3:
            event.set()
        return b"x" * 10

    with pytest.raises(CompressionCancelled) as excinfo:
        TargetSizeEncoder(encode=encode).compress(source(), 100, cancel_event=event)

    assert len(calls) == 3
    assert excinfo.value.last_size == 10


def test_custom_iteration_budget():
    encoder = ScriptedEncoder(lambda q, w, h: 10)
    TargetSizeEncoder(encode=encoder, config=SearchConfig(iterations=4)).compress(source(), 100)

    assert len(encoder.calls) == 4


def test_step_moves_interval_bounds():
    state = initial_state(400, 300)
    fit = EncodeAttempt(quality=0.5, width=400, height=300, data=b"x" * 10)
    over = EncodeAttempt(quality=0.5, width=400, height=300, data=b"x" * 1000)

    after_fit = step(state, fit, 100)
    assert (after_fit.low, after_fit.high) == (0.5, 1.0)
    assert after_fit.best is fit
    assert after_fit.iteration == 1

    after_over = step(state, over, 100)
    assert (after_over.low, after_over.high) == (0.0, 0.5)
    assert after_over.best is None
    assert after_over.last_size == 1000


def test_step_enters_probe_after_fruitless_bisection():
    config = SearchConfig(iterations=1)
    state = initial_state(400, 300)
    over = EncodeAttempt(quality=0.5, width=400, height=300, data=b"x" * 1000)

    state = step(state, over, 100, config)
    assert state.phase is Phase.PROBING
    assert next_request(state, config) == (0.1, 400, 300)

    state = step(state, EncodeAttempt(0.1, 400, 300, b"x" * 1000, Phase.PROBING), 100, config)
    assert state.phase is Phase.SHRINKING
    assert next_request(state, config) == (0.7, 360, 270)


def test_finished_state_rejects_further_steps():
    state = step(
        initial_state(400, 300),
        EncodeAttempt(0.5, 400, 300, b"x"),
        100,
        SearchConfig(iterations=1),
    )
    assert state.phase is Phase.DONE

    with pytest.raises(ValueError):
        next_request(state)
    with pytest.raises(ValueError):
        step(state, EncodeAttempt(0.5, 400, 300, b"x"), 100)


def test_shrink_clamps_shorter_side_to_floor():
    assert shrink(1000, 150) == pytest.approx((900, 135))
    width, height = shrink(1000, 105)
    assert height == pytest.approx(100)
    assert width == pytest.approx(1000 * 100 / 105)
    assert not can_shrink(100.4, 500)
    assert can_shrink(101, 500)


@pytest.mark.parametrize("target_kb, expected", [("50", 51200), (0.5, 512), (1, 1024)])
def test_target_bytes_from_kb(target_kb, expected):
    assert target_bytes_from_kb(target_kb) == expected


@pytest.mark.parametrize("target_kb", ["abc", None, 0, "-5", 0.0001, "inf"])
def test_target_bytes_from_kb_rejects_bad_values(target_kb):
    with pytest.raises(InvalidTarget):
        target_bytes_from_kb(target_kb)
