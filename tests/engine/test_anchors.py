"""Anchor discovery and selection tests."""

from __future__ import annotations

from smartlinker.engine.anchors import (
    distinctive_words,
    extract_candidate_anchors,
    find_anchor,
    select_anchor,
)

from .conftest import make_document, make_entry


def test_distinctive_words_skip_short_stop_and_generic_terms(engine_config):
    words = distinctive_words("How the BRRRR Strategy Works for Rental Financing", engine_config)

    assert words == ["brrrr", "strategy", "works", "rental"]


def test_generic_title_yields_no_anchor_even_when_present_verbatim(engine_config):
    document = make_document(
        "<p>Compare mortgage financing options before you sign anything with a lender.</p>"
    )
    target = make_entry("9", "Mortgage Financing Options")

    assert distinctive_words(target.title, engine_config) == []
    assert extract_candidate_anchors(document, target, engine_config) == []
    assert find_anchor(document, target, engine_config) is None


def test_title_without_long_words_is_skipped(engine_config):
    document = make_document("<p>Tax and the law can be a big mess for all of us.</p>")
    target = make_entry("3", "Tax and the Law")

    assert extract_candidate_anchors(document, target, engine_config) == []


def test_phrase_strategy_finds_title_ngram_verbatim(engine_config):
    document = make_document(
        "<p>Investors should track tenant screening checklists every single year.</p>"
    )
    target = make_entry("4", "Tenant Screening Checklists for Landlords")

    candidates = extract_candidate_anchors(document, target, engine_config)
    phrases = [candidate for candidate in candidates if candidate.strategy == "phrase"]

    assert phrases
    assert phrases[0].text == "tenant screening checklists"
    assert document.text[phrases[0].start:phrases[0].end] == phrases[0].text


def test_anchor_text_never_comes_from_existing_link_or_heading(engine_config):
    document = make_document(
        "<h2>Tenant screening checklists</h2>"
        "<p>Read our <a href='/old'>tenant screening checklists</a> first.</p>"
        "<p>Every landlord needs solid tenant screening checklists today.</p>"
    )
    target = make_entry("4", "Tenant Screening Checklists for Landlords")

    anchor = find_anchor(document, target, engine_config)

    assert anchor is not None
    assert anchor.start > document.text.index("Every landlord")
    segment = document.linkable_segment(anchor.start, anchor.end)
    assert segment is not None
    assert document.text[anchor.start:anchor.end] == anchor.text


def test_candidates_are_labelled_by_position(engine_config):
    filler = "<p>" + "Plain filler sentence about nothing in particular. " * 60 + "</p>"
    document = make_document(
        "<p>Rental arbitrage basics for new hosts.</p>"
        + filler
        + "<p>Closing thoughts on rental arbitrage basics.</p>"
    )
    target = make_entry("5", "Rental Arbitrage Basics")

    positions = {
        candidate.position
        for candidate in extract_candidate_anchors(document, target, engine_config)
        if candidate.strategy == "phrase"
    }

    assert positions == {"intro", "conclusion"}


def test_exact_title_match_is_penalised(engine_config):
    document = make_document(
        "<p>Rental Arbitrage Basics. Learn rental arbitrage basics for hosts.</p>"
    )
    target = make_entry("5", "Rental Arbitrage Basics")

    candidates = extract_candidate_anchors(document, target, engine_config)
    exact = [candidate for candidate in candidates if candidate.is_exact_title_match]

    assert exact
    assert all(candidate.raw_score < max(c.raw_score for c in candidates) for candidate in exact)


def test_selection_skips_used_texts_and_blocks(engine_config):
    document = make_document(
        "<p>Short term rental arbitrage works well downtown.</p>"
        "<p>A second note on rental arbitrage profits here.</p>"
    )
    target = make_entry("6", "Rental Arbitrage Profits")
    candidates = extract_candidate_anchors(document, target, engine_config)

    first = select_anchor(document, candidates, used_texts=set(), used_blocks=set())
    assert first is not None
    assert first.context

    second = select_anchor(document, candidates, used_texts={first.text.lower()}, used_blocks={first.block})
    assert second is None or second.block != first.block

    assert select_anchor(document, candidates, used_texts=set(), used_blocks={0, 1}) is None


def test_session_used_anchors_are_not_reused(engine_config):
    document = make_document("<p>Our guide to rental arbitrage profits explains the numbers.</p>")
    target = make_entry("6", "Rental Arbitrage Profits")
    candidates = extract_candidate_anchors(document, target, engine_config)
    session_used = {candidate.text.lower() for candidate in candidates}

    assert select_anchor(document, candidates, set(), set(), session_used) is None


def test_scores_are_reproducible(engine_config):
    html = "<p>The BRRRR refinance timeline matters. Plan the BRRRR refinance early.</p>"
    target = make_entry("7", "BRRRR Refinance Timeline")

    first = extract_candidate_anchors(make_document(html), target, engine_config)
    second = extract_candidate_anchors(make_document(html), target, engine_config)

    assert [(c.text, c.start, c.raw_score) for c in first] == [(c.text, c.start, c.raw_score) for c in second]
