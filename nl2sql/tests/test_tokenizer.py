from nl2sql.tokenizer import normalize


def test_normalize_drops_stop_words_and_short_tokens():
    assert normalize("How many trips were made?") == ('many', 'trips', 'made')


def test_normalize_strips_punctuation_and_lowercases():
    tokens = normalize("Which DOCKING-point saw the most departures?!")
    assert tokens == ('docking', 'point', 'saw', 'most', 'departures')


def test_normalize_removes_duplicates_keeping_first_position():
    assert normalize("rain rain go away, rain") == ('rain', 'away')


def test_normalize_keeps_numbers_and_underscores():
    assert normalize("ride_time in June 2025") == ('ride_time', 'june', '2025')


def test_normalize_empty_input():
    assert normalize("") == ()
    assert normalize("   ") == ()
    assert normalize(None) == ()
