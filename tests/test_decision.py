from lingobatch.translation.decision import (
    KEEP,
    TRANSLATE,
    decide,
    decide_key,
    empty_source_keys,
    keys_to_translate,
)


def test_missing_existing_translation_is_translated():
    record = decide_key("greeting", "Hello", None)
    assert record.decision == TRANSLATE
    assert record.ratio is None


def test_empty_existing_translation_is_translated():
    record = decide_key("greeting", "Hello", "")
    assert record.decision == TRANSLATE
    assert record.ratio == 0


def test_short_existing_translation_is_retranslated():
    # 3 / 10 = 30% of the source
    record = decide_key("k", "a" * 10, "abc")
    assert record.decision == TRANSLATE
    assert record.ratio == 30


def test_threshold_boundary_keeps_translation():
    # Exactly 40% is not below the threshold
    assert decide_key("k", "a" * 10, "b" * 4).decision == KEEP
    assert decide_key("k", "a" * 100, "b" * 39).decision == TRANSLATE


def test_plausible_translation_is_kept():
    record = decide_key("save", "Save changes", "Зберегти зміни")
    assert record.decision == KEEP
    assert not record.needs_translation


def test_empty_source_with_existing_value_is_kept():
    assert decide_key("blank", "", "something").decision == KEEP


def test_decide_preserves_source_order_and_ignores_non_strings():
    source = {"b": "Bravo", "a": "Alpha", "c": "Charlie"}
    existing = {"a": "Альфа", "c": 42}

    records = decide(source, existing)

    assert [r.key for r in records] == ["b", "a", "c"]
    assert [r.decision for r in records] == [TRANSLATE, KEEP, TRANSLATE]
    assert records[2].existing_translation is None


def test_keys_to_translate_without_prior_output():
    source = {"one": "One", "two": "Two"}
    assert keys_to_translate(decide(source, None)) == source


def test_empty_source_is_never_sent():
    assert decide_key("blank", "", None).decision == KEEP
    assert decide_key("blank", "", "").decision == KEEP


def test_empty_source_keys_are_copied_only_when_absent():
    records = decide({"a": "Hello", "b": "", "c": ""}, {"c": ""})
    assert keys_to_translate(records) == {"a": "Hello"}
    assert empty_source_keys(records) == {"b": ""}
