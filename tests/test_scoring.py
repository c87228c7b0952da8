import pytest

from venue_enrichment.enrichment import scoring
from venue_enrichment.models import EnrichmentRecord


def _full_record(**overrides):
    fields = dict(
        venue_name="Oakview Hall",
        ai_overview="x" * 150,
        event_manager_name="Jo Rivera",
        event_manager_email="events@oakviewhall.com",
        event_manager_phone="(555) 234-9876",
        common_event_types=["Wedding", "Gala"],
        in_house_catering=False,
        venue_capacity=250,
        amenities=["Parking"],
        pricing_information="From $4,500",
        preferred_caterers=["Bella Bites"],
        website="https://oakviewhall.com/",
    )
    fields.update(overrides)
    return EnrichmentRecord(**fields)


def test_empty_record_scores_zero():
    result = scoring.score(EnrichmentRecord(venue_name="Nowhere"))
    assert result.score == 0
    assert result.reasons == ()
    assert result.potential == "low"


def test_standard_profile_maximum_is_100():
    result = scoring.score(_full_record())

    assert result.score == 100
    assert result.potential == "high"
    assert result.reasons == (
        "Has contact email",
        "Has contact phone",
        "Has contact name",
        "Venue capacity: 250",
        "Hosts events: Wedding, Gala",
        "Pricing information available",
        "No in-house catering (potential for partnership)",
        "Has functional website",
        "Has detailed venue description",
    )


def test_scenario_a_scores_medium():
    record = EnrichmentRecord(
        venue_name="Oakview Hall",
        event_manager_email="events@oakviewhall.com",
        event_manager_phone="(555) 234-9876",
        venue_capacity=250,
        common_event_types=["Wedding", "Corporate", "Gala"],
        in_house_catering=True,
    )
    result = scoring.score(record)

    assert result.score == 65
    assert result.potential == "medium"


def test_capacity_must_exceed_fifty():
    assert "Venue capacity: 50" not in scoring.score(_full_record(venue_capacity=50)).reasons
    assert "Venue capacity: 51" in scoring.score(_full_record(venue_capacity=51)).reasons


def test_unknown_catering_earns_nothing():
    with_unknown = scoring.score(_full_record(in_house_catering=None))
    assert with_unknown.score == 80
    assert not any("catering" in reason for reason in with_unknown.reasons)


def test_thresholds():
    assert scoring.potential_for(70) == "high"
    assert scoring.potential_for(69) == "medium"
    assert scoring.potential_for(40) == "medium"
    assert scoring.potential_for(39) == "low"


def test_extended_profile_is_clamped():
    result = scoring.score(_full_record(), scoring.EXTENDED_PROFILE)

    assert result.score == 100
    assert "Has a short list of preferred caterers" in result.reasons
    assert "Lists venue amenities" in result.reasons


def test_extended_profile_weights_differ():
    record = EnrichmentRecord(venue_name="Oakview Hall", event_manager_email="a@b.com", event_manager_name="Jo")
    assert scoring.score(record).score == 30
    assert scoring.score(record, scoring.EXTENDED_PROFILE).score == 25


def test_score_is_deterministic_for_same_record():
    record = _full_record()
    first = scoring.score(record)
    second = scoring.score(record)
    assert (first.score, first.reasons, first.potential) == (second.score, second.reasons, second.potential)


def test_profile_named():
    assert scoring.profile_named("extended") is scoring.EXTENDED_PROFILE
    with pytest.raises(ValueError):
        scoring.profile_named("generous")


def test_score_serialises_with_last_calculated():
    payload = scoring.score(_full_record()).to_dict()
    assert set(payload) == {"score", "reasons", "potential", "lastCalculated"}


@pytest.mark.parametrize(
    "profile, email_points",
    [(scoring.STANDARD_PROFILE, 25), (scoring.EXTENDED_PROFILE, 15)],
)
def test_adding_email_to_empty_record_adds_email_weight(profile, email_points):
    empty = EnrichmentRecord(venue_name="Nowhere")
    with_email = EnrichmentRecord(venue_name="Nowhere", event_manager_email="events@oakviewhall.com")

    before = scoring.score(empty, profile)
    after = scoring.score(with_email, profile)

    assert after.score - before.score == email_points
    assert after.reasons == ("Has contact email",)


@pytest.mark.parametrize("profile", [scoring.STANDARD_PROFILE, scoring.EXTENDED_PROFILE])
@pytest.mark.parametrize(
    "overrides",
    [
        {},
        {"in_house_catering": True},
        {"in_house_catering": None, "ai_overview": ""},
        {"event_manager_email": None},
        {"venue_capacity": None, "common_event_types": [], "amenities": []},
    ],
)
def test_score_stays_within_bounds_and_email_never_lowers_it(profile, overrides):
    record = _full_record(**overrides)
    without_email = _full_record(**dict(overrides, event_manager_email=None))

    result = scoring.score(record, profile)

    assert 0 <= result.score <= 100
    assert result.score >= scoring.score(without_email, profile).score
