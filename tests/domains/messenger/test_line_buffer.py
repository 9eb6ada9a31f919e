"""
LineBuffer 单元测试
"""

from hoshino.domains.messenger import LineBuffer, classify


def test_push_without_newline_returns_nothing():
    buffer = LineBuffer()
    assert buffer.push("你好") == []
    assert buffer.pending == "你好"


def test_push_returns_complete_lines():
    buffer = LineBuffer()
    assert buffer.push("第一句\n第二句\n第三") == ["第一句", "第二句"]
    assert buffer.pending == "第三"


def test_line_split_across_deltas():
    buffer = LineBuffer()
    assert buffer.push("今天") == []
    assert buffer.push("好累\n") == ["今天好累"]
    assert buffer.pending == ""


def test_blank_lines_are_skipped():
    buffer = LineBuffer()
    assert buffer.push("a\n\n   \nb\n") == ["a", "b"]


def test_lines_are_trimmed():
    buffer = LineBuffer()
    assert buffer.push("  嗯嗯  \n") == ["嗯嗯"]


def test_flush_returns_remainder_once():
    buffer = LineBuffer()
    buffer.push("a\nb")
    assert buffer.flush() == "b"
    assert buffer.flush() is None


def test_flush_whitespace_remainder():
    buffer = LineBuffer()
    buffer.push("a\n   ")
    assert buffer.flush() is None


def test_translation_delimiter_split_across_deltas():
    buffer = LineBuffer()
    lines = []
    for delta in ["*She s", "miles*|||*She", " smiles*\n"]:
        lines.extend(buffer.push(delta))

    assert lines == ["*She smiles*|||*She smiles*"]
    result = classify(lines[0])
    assert result.content == "*She smiles*"
    assert result.translation == "*She smiles*"


def test_no_line_emitted_twice():
    buffer = LineBuffer()
    emitted = []
    for delta in ["一\n二", "\n三\n", "四"]:
        emitted.extend(buffer.push(delta))
    emitted.append(buffer.flush())
    assert emitted == ["一", "二", "三", "四"]
