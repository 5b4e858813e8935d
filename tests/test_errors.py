import pytest

from mcpjson.errors import (
    AppError,
    ErrorType,
    config_error,
    file_error,
    general_error,
    validation_error,
)


def test_validation_error():
    err = validation_error("バリデーションエラーです")
    assert err.type is ErrorType.VALIDATION
    assert err.message == "バリデーションエラーです"
    assert err.code == 7
    assert err.cause is None


def test_file_error():
    cause = ValueError("原因のエラー")
    err = file_error("ファイルエラーです", cause)
    assert err.type is ErrorType.FILE
    assert err.message == "ファイルエラーです"
    assert err.code == 3
    assert err.cause is cause


def test_config_error():
    cause = ValueError("設定の原因エラー")
    err = config_error("設定エラーです", cause)
    assert err.type is ErrorType.CONFIG
    assert err.message == "設定エラーです"
    assert err.code == 5
    assert err.cause is cause


def test_general_error():
    cause = ValueError("一般的な原因エラー")
    err = general_error("一般的なエラーです", cause)
    assert err.type is ErrorType.GENERAL
    assert err.message == "一般的なエラーです"
    assert err.code == 1
    assert err.cause is cause


@pytest.mark.parametrize(
    ("cause", "expected"),
    [
        (ValueError("原因エラー"), "メインエラー: 原因エラー"),
        (None, "メインエラー"),
    ],
)
def test_str(cause, expected):
    assert str(AppError("メインエラー", cause=cause)) == expected


def test_cause_chain():
    cause = ValueError("原因エラー")
    assert AppError("メインエラー", cause=cause).__cause__ is cause
    assert AppError("メインエラー").__cause__ is None


def test_raised_and_caught():
    err = file_error("壊れたファイル", OSError("x"))
    assert str(err) == "壊れたファイル: x"
    with pytest.raises(AppError) as info:
        raise err
    assert info.value is err
    assert info.value.code == 3
    assert info.value.type is ErrorType.FILE