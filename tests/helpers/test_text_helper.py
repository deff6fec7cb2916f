import pytest

from src.helpers import text_helper


@pytest.mark.parametrize(
    "text, length, expected_result",
    [
        ("short", 10, "short"),
        ("exactly10!", 10, "exactly10!"),
        ("a longer text", 8, "a longer..."),
        ("", 5, ""),
    ],
)
def test_truncate(text, length, expected_result):
    assert text_helper.truncate(text, length) == expected_result


def test_failure_summary():
    assert text_helper.failure_summary("x" * 150) == f"Review failed: {'x' * 100}..."
    assert text_helper.failure_summary("boom") == "Review failed: boom..."


def test_render_template():
    template = "Details:\n__PR_DETAILS_CONTENT__\nDiff:\n__DIFF_CONTENT__\n__DIFF_CONTENT__"
    assert (
        text_helper.render_template(template, pr_details_content="PR 1", diff_content="+a")
        == "Details:\nPR 1\nDiff:\n+a\n+a"
    )
