"""
Tests for admission_forecaster/taxonomy/admission_taxonomy.py.

What we test
------------
parse_track():
  - Canonical values, English and Korean aliases, case and separator noise.
  - Unknown names raise ValueError listing the valid values.

parse_sub_group():
  - Canonical A/B/C, romanized ga/na/da, Korean 가/나/다 with or without 군.
  - Free-text admission types such as "정시(가군)".
  - None, blank and unrelated text → None.

Orderings and labels cover every enum member.
"""

from __future__ import annotations

import pytest

from admission_forecaster.taxonomy.admission_taxonomy import (
    SUB_GROUP_LABELS,
    SUB_GROUP_ORDER,
    TIER_LABELS,
    TIER_RANK,
    AdmissionTrack,
    SubGroup,
    Tier,
    parse_sub_group,
    parse_track,
)


class TestParseTrack:
    @pytest.mark.parametrize("value,expected", [
        ("susi", AdmissionTrack.SUSI),
        ("SUSI", AdmissionTrack.SUSI),
        (" rolling ", AdmissionTrack.SUSI),
        ("수시", AdmissionTrack.SUSI),
        ("jungsi", AdmissionTrack.JUNGSI),
        ("jeongsi", AdmissionTrack.JUNGSI),
        ("exam-based", AdmissionTrack.JUNGSI),
        ("exam_based", AdmissionTrack.JUNGSI),
        ("정시", AdmissionTrack.JUNGSI),
    ])
    def test_aliases(self, value, expected):
        assert parse_track(value) == expected

    def test_unknown(self):
        with pytest.raises(ValueError, match="Valid values"):
            parse_track("early")


class TestParseSubGroup:
    @pytest.mark.parametrize("value,expected", [
        ("A", SubGroup.A),
        ("ga", SubGroup.A),
        ("가", SubGroup.A),
        ("가군", SubGroup.A),
        ("na", SubGroup.B),
        ("나군", SubGroup.B),
        ("c", SubGroup.C),
        ("다", SubGroup.C),
        ("정시(가군)", SubGroup.A),
        ("정시 다군 일반전형", SubGroup.C),
        ("(나)", SubGroup.B),
    ])
    def test_known(self, value, expected):
        assert parse_sub_group(value) == expected

    @pytest.mark.parametrize("value", [None, "", "   ", "학생부종합전형", "D"])
    def test_unknown_is_none(self, value):
        assert parse_sub_group(value) is None


class TestLabels:
    def test_every_tier_ranked_and_labelled(self):
        assert set(TIER_RANK) == set(Tier)
        assert set(TIER_LABELS) == set(Tier)
        assert TIER_RANK[Tier.S] > TIER_RANK[Tier.A] > TIER_RANK[Tier.B] > TIER_RANK[Tier.C]

    def test_sub_group_order_and_labels(self):
        assert SUB_GROUP_ORDER == (SubGroup.A, SubGroup.B, SubGroup.C)
        assert [SUB_GROUP_LABELS[g] for g in SUB_GROUP_ORDER] == ["가군", "나군", "다군"]
