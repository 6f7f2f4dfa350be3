import gc
import logging
from dataclasses import dataclass

import pytest

from odmi.database import QueryContext, Result, ResultState
from odmi.errors import (
    IndexOutOfBounds,
    InvalidOperation,
    OperationTimedOut,
    ResultNotExpected,
    ResultNotFound,
)
from odmi.models import ModelRegistry, odmi_model


registry = ModelRegistry()


@odmi_model(registry=registry)
@dataclass
class Item:
    id: int = 0
    name: str = ""


def documents(count: int) -> list[dict]:
    return [{"_id": index, "name": f"item-{index}"} for index in range(count)]


@pytest.fixture
def make_result(counting_cursor):
    def make_result(count: int, **kwargs):
        cursor = counting_cursor(documents(count), **kwargs)
        return Result(Item.__odmi__, cursor), cursor

    return make_result


def test_at_reads_lazily(make_result):
    result, cursor = make_result(5)
    assert result.at(1).name == "item-1"
    assert cursor.reads == 2

    assert result.at(0).id == 0
    assert cursor.reads == 2
    assert result.state is ResultState.RANDOM_ACCESS


def test_at_past_the_end(make_result):
    result, cursor = make_result(2)
    with pytest.raises(IndexOutOfBounds) as error:
        result.at(2)

    assert error.value.length == 2
    assert isinstance(error.value, IndexError)
    assert cursor.closes == 1
    assert result.state is ResultState.EXHAUSTED


def test_negative_index_is_out_of_bounds(make_result):
    result, _ = make_result(2)
    with pytest.raises(IndexOutOfBounds):
        result.at(-1)


def test_count_drains_and_closes_once(make_result):
    result, cursor = make_result(3)
    assert result.count() == 3
    assert result.count() == 3
    assert cursor.reads == 3
    assert cursor.closes == 1

    result.close()
    assert cursor.closes == 1


def test_first_and_last(make_result):
    result, _ = make_result(3)
    assert result.first().id == 0
    assert result.last().id == 2


def test_first_and_last_of_empty_result(make_result):
    result, _ = make_result(0)
    with pytest.raises(ResultNotFound):
        result.first()

    with pytest.raises(ResultNotFound):
        result.last()


def test_one(make_result):
    result, cursor = make_result(1)
    assert result.one().name == "item-0"
    assert cursor.closes == 1


def test_one_of_empty_result(make_result):
    result, cursor = make_result(0)
    with pytest.raises(ResultNotFound):
        result.one()

    assert cursor.closes == 1


def test_one_with_many_records_reads_two(make_result):
    result, cursor = make_result(10)
    with pytest.raises(ResultNotExpected):
        result.one()

    assert cursor.reads == 2
    assert cursor.closes == 1
    assert result.state is ResultState.CLOSED


def test_random_access_after_streaming_is_invalid(make_result):
    result, _ = make_result(3)
    result.streaming()
    for method in (lambda: result.at(0), result.first, result.last, result.count, result.one):
        with pytest.raises(InvalidOperation):
            method()


def test_streaming_after_random_access_is_invalid(make_result):
    result, _ = make_result(3)
    result.at(0)
    with pytest.raises(InvalidOperation):
        result.streaming()


def test_streaming_is_single_pass(make_result):
    result, cursor = make_result(3)
    assert result.streaming() is result
    assert result.state is ResultState.STREAMING
    assert [item.id for item in result.to_list()] == [0, 1, 2]
    assert cursor.closes == 1
    assert result.state is ResultState.EXHAUSTED

    with pytest.raises(InvalidOperation):
        result.to_list()


def test_random_access_iteration_is_repeatable(make_result):
    result, cursor = make_result(3)
    assert [item.id for item in result.to_list()] == [0, 1, 2]
    assert [item.id for item in result] == [0, 1, 2]
    assert cursor.reads == 3


def test_for_each(make_result):
    result, _ = make_result(3)
    names = []
    result.streaming().for_each(lambda item: names.append(item.name))
    assert names == ["item-0", "item-1", "item-2"]


def test_each_access_builds_a_new_record(make_result):
    result, _ = make_result(1)
    first, again = result.at(0), result.at(0)
    assert first == again
    assert first is not again

    first.name = "changed"
    assert result.at(0).name == "item-0"


def test_records_are_persisted_and_unchanged(make_result):
    result, _ = make_result(1)
    item = result.first()
    assert isinstance(item, Item)
    assert item.is_persisted()
    assert not item.is_changed()


def test_close_is_idempotent_and_blocks_reads(make_result):
    result, cursor = make_result(3)
    result.at(0)
    result.close()
    result.close()
    assert cursor.closes == 1
    assert result.state is ResultState.CLOSED

    assert result.at(0).id == 0
    with pytest.raises(InvalidOperation):
        result.at(1)


def test_with_block_closes(make_result):
    result, cursor = make_result(3)
    with result as items:
        assert items.at(0).id == 0

    assert cursor.closes == 1


def test_abandoned_results_are_released(make_result, caplog):
    result, cursor = make_result(3)
    result.at(0)
    with caplog.at_level(logging.WARNING, logger="odmi.database.cursor"):
        del result
        gc.collect()

    assert cursor.closes == 1
    assert "never closed" in caplog.text


def test_driver_errors_release_the_cursor(make_result):
    result, cursor = make_result(3, fail_after=1, error=RuntimeError("connection reset"))
    assert result.at(0).id == 0
    with pytest.raises(RuntimeError):
        result.at(1)

    assert cursor.closes == 1


def test_cancelled_context_fails_reads(counting_cursor):
    context = QueryContext.background()
    cursor = counting_cursor(documents(3))
    result = Result(Item.__odmi__, cursor, context=context)
    assert result.at(0).id == 0

    context.cancel()
    with pytest.raises(OperationTimedOut):
        result.at(1)

    assert cursor.reads == 1
    assert cursor.closes == 1
    assert result.state is ResultState.CLOSED
    with pytest.raises(InvalidOperation):
        result.at(2)
    assert result.at(0).id == 0


def test_expired_context_fails_reads(counting_cursor):
    cursor = counting_cursor(documents(3))
    result = Result(Item.__odmi__, cursor, context=QueryContext.with_timeout(0))
    with pytest.raises(OperationTimedOut):
        result.count()

    assert cursor.reads == 0
    assert cursor.closes == 1
