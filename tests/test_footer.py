"""Tests for aetheria.footer."""

from aetheria.footer import STATUS_MARKER, parse_footer, split_footer

NARRATIVE = (
    "The rain has not stopped for three days.\n\n"
    "--- NOVEL STATE ---\n"
    "**Aldric** | **Condition:** Wounded | **Time:** Dusk\n"
    "**Wounds:** Gash on the forearm\n"
    "**Leads:** The merchant keeps watching the door\n"
)


def test_parses_condition_and_time() -> None:
    assert parse_footer(NARRATIVE) == {"health": "Wounded", "time": "Dusk"}


def test_minimal_footer() -> None:
    text = "...narrative...\n--- NOVEL STATE ---\n**X** | **Condition:** Wounded | **Time:** Dusk"
    fields = parse_footer(text)
    assert fields["health"] == "Wounded"
    assert fields["time"] == "Dusk"


def test_no_marker_is_noop() -> None:
    assert parse_footer("Condition: Fine | Time: Noon") == {}


def test_empty_text() -> None:
    assert parse_footer("") == {}


def test_fields_on_separate_lines() -> None:
    text = f"story\n{STATUS_MARKER}\nCondition: Winded\nTime: Second bell, day 4\n"
    assert parse_footer(text) == {"health": "Winded", "time": "Second bell, day 4"}


def test_later_line_overrides_earlier() -> None:
    text = f"story\n{STATUS_MARKER}\nTime: Dawn\nTime: Noon\nCondition: Fine\nCondition: Bleeding | x\n"
    assert parse_footer(text) == {"time": "Noon", "health": "Bleeding"}


def test_empty_later_value_keeps_earlier() -> None:
    text = f"story\n{STATUS_MARKER}\nTime: Dawn\n**Time:** \n"
    assert parse_footer(text) == {"time": "Dawn"}


def test_only_text_after_last_marker_counts() -> None:
    text = (
        f"{STATUS_MARKER}\nTime: Yesterday\n"
        f"more story\n{STATUS_MARKER}\nTime: Today\n"
    )
    assert parse_footer(text) == {"time": "Today"}


def test_unrecognised_and_empty_lines_ignored() -> None:
    text = f"story\n{STATUS_MARKER}\n**Lore:** The Ash Choir\n**Condition:**   \n"
    assert parse_footer(text) == {}


def test_split_footer() -> None:
    narrative, footer = split_footer(NARRATIVE)
    assert narrative.strip() == "The rain has not stopped for three days."
    assert footer is not None
    assert "Condition:" in footer


def test_split_without_marker() -> None:
    assert split_footer("Just story.") == ("Just story.", None)
