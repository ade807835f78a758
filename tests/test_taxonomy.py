"""Tests for semspine.taxonomy: code grammar, snapshot views and the curation lifecycle."""

import pytest

from semspine.core.errors import ConflictError, NotFoundError, ValidationError
from semspine.taxonomy.models import (
    SENTINEL_CODE,
    Tagset,
    TagsetStatus,
    TaxonomySnapshot,
    depth_of,
    is_well_formed,
    parent_of,
    top_level,
)
from semspine.taxonomy.seed import DEFAULT_TAGSETS, seed_default_taxonomy


class TestCodeGrammar:
    @pytest.mark.parametrize("code", ["NA", "NA.FAU", "SE.TRI.X1", "AP.ALI.CAR.SUL"])
    def test_well_formed(self, code):
        assert is_well_formed(code)

    @pytest.mark.parametrize("code", ["", "N", "na", "NAT", "NA.", "NA.fau", "NA.FAU.X.Y.Z"])
    def test_malformed(self, code):
        assert not is_well_formed(code)

    def test_depth_parent_top(self):
        assert depth_of("NA") == 1
        assert depth_of("NA.FAU.AVE") == 3
        assert parent_of("NA") is None
        assert parent_of("NA.FAU.AVE") == "NA.FAU"
        assert top_level("SE.TRI") == "SE"


class TestSeed:
    def test_installs_every_default(self, conn):
        from semspine.taxonomy.store import TaxonomyStore

        store = TaxonomyStore(conn)
        assert seed_default_taxonomy(store) == len(DEFAULT_TAGSETS)
        assert len(store.load_active_tagsets()) == len(DEFAULT_TAGSETS)

    def test_idempotent(self, store):
        assert seed_default_taxonomy(store) == 0

    def test_sentinel_active(self, store):
        assert store.is_valid_tagset(SENTINEL_CODE)


class TestReads:
    def test_is_valid_tagset_requires_exact_active_code(self, store):
        assert store.is_valid_tagset("SE.TRI")
        assert not store.is_valid_tagset("se.tri")
        assert not store.is_valid_tagset("SE.XYZ")
        assert not store.is_valid_tagset(None)
        assert not store.is_valid_tagset("")

    def test_children_by_parent(self, store):
        codes = [t.code for t in store.get_child_tagsets("NA")]
        assert codes == ["NA.FAU", "NA.FLO", "NA.GEO"]

    def test_children_by_depth(self, store):
        level_one = store.get_child_tagsets(depth=1)
        assert all(t.depth_level == 1 for t in level_one)
        assert "NC" in {t.code for t in level_one}

    def test_children_needs_an_argument(self, store):
        with pytest.raises(ValueError):
            store.get_child_tagsets()

    def test_require_missing(self, store):
        with pytest.raises(NotFoundError):
            store.require("ZZ")

    def test_list_with_status_filter(self, store):
        store.propose("SE.RAI", "Raiva")
        items, total = store.list_tagsets(TagsetStatus.PENDING)
        assert total == 1
        assert items[0].code == "SE.RAI"

    def test_list_paginates(self, store):
        items, total = store.list_tagsets(limit=5, offset=0)
        assert len(items) == 5
        assert total == len(DEFAULT_TAGSETS)


class TestLifecycle:
    def test_propose_is_pending_and_not_valid(self, store):
        tagset = store.propose("SE.RAI", "Raiva", description="Ira", examples=["ódio"], created_by="ana")
        assert tagset.status == TagsetStatus.PENDING
        assert tagset.parent_code == "SE"
        assert tagset.depth_level == 2
        assert not store.is_valid_tagset("SE.RAI")

    def test_propose_normalizes_case(self, store):
        assert store.propose("se.rai", "Raiva").code == "SE.RAI"

    def test_approve_activates(self, store):
        store.propose("SE.RAI", "Raiva")
        approved = store.approve("SE.RAI", approved_by="curador")
        assert approved.status == TagsetStatus.ACTIVE
        assert approved.approved_by == "curador"
        assert approved.approved_at is not None
        assert store.is_valid_tagset("SE.RAI")

    def test_reject_records_reason(self, store):
        store.propose("SE.RAI", "Raiva")
        rejected = store.reject("SE.RAI", reason="duplicado")
        assert rejected.status == TagsetStatus.REJECTED
        assert rejected.rejection_reason == "duplicado"
        assert not store.is_valid_tagset("SE.RAI")

    def test_transitions_are_one_way(self, store):
        store.propose("SE.RAI", "Raiva")
        store.approve("SE.RAI")
        with pytest.raises(ConflictError):
            store.approve("SE.RAI")
        with pytest.raises(ConflictError):
            store.reject("SE.RAI")

    def test_approve_unknown(self, store):
        with pytest.raises(NotFoundError):
            store.approve("ZZ.NOPE")

    def test_duplicate_code(self, store):
        with pytest.raises(ConflictError):
            store.propose("NA.FAU", "Fauna outra vez")

    @pytest.mark.parametrize("code", ["N", "NATUREZA", "NA..X", "1A"])
    def test_malformed_code(self, store, code):
        with pytest.raises(ValidationError) as exc_info:
            store.propose(code, "Qualquer")
        assert exc_info.value.field == "code"

    def test_missing_parent(self, store):
        with pytest.raises(ValidationError):
            store.propose("ZZ.ABC", "Órfão")

    def test_mismatched_parent(self, store):
        with pytest.raises(ValidationError):
            store.propose("SE.RAI", "Raiva", parent_code="NA")

    def test_rejected_parent(self, store):
        store.propose("ZZ", "Temporário")
        store.reject("ZZ")
        with pytest.raises(ValidationError):
            store.propose("ZZ.ABC", "Filho")

    def test_empty_name(self, store):
        with pytest.raises(ValidationError):
            store.propose("SE.RAI", "  ")

    def test_child_waits_for_pending_parent(self, store):
        store.propose("ZZ", "Zona")
        store.propose("ZZ.ABC", "Zona ABC")
        with pytest.raises(ConflictError):
            store.approve("ZZ.ABC")
        assert store.require("ZZ.ABC").status == TagsetStatus.PENDING

        store.approve("ZZ")
        assert store.approve("ZZ.ABC").status == TagsetStatus.ACTIVE
        assert store.is_valid_tagset("ZZ.ABC")

    def test_active_child_under_inactive_domain_is_not_valid(self, store):
        store.seed([
            Tagset(code="ZZ", name="Zona", status=TagsetStatus.PENDING),
            Tagset(code="ZZ.ABC", name="Zona ABC", parent_code="ZZ", depth_level=2, status=TagsetStatus.ACTIVE),
        ])
        assert not store.is_valid_tagset("ZZ.ABC")
        snapshot = store.load_active_tagsets()
        assert "ZZ.ABC" in snapshot
        assert not snapshot.is_valid_tagset("ZZ.ABC")
        assert snapshot.resolve_code("ZZ.ABC") == SENTINEL_CODE


class TestSnapshot:
    def test_unaffected_by_later_approval(self, store):
        store.propose("SE.RAI", "Raiva")
        snapshot = store.load_active_tagsets()
        store.approve("SE.RAI")
        assert "SE.RAI" not in snapshot
        assert "SE.RAI" in store.load_active_tagsets()

    def test_mapping_is_read_only(self, store):
        snapshot = store.load_active_tagsets()
        with pytest.raises(TypeError):
            snapshot.tagsets["XX"] = None

    def test_resolve_code(self, store):
        snapshot = store.load_active_tagsets()
        assert snapshot.resolve_code("SE.TRI") == "SE.TRI"
        assert snapshot.resolve_code("SE.BOGUS") == "SE"
        assert snapshot.resolve_code("QQ.BOGUS") == SENTINEL_CODE
        assert snapshot.resolve_code(None) == SENTINEL_CODE

    def test_family_and_depth(self, store):
        snapshot = store.load_active_tagsets()
        assert [t.code for t in snapshot.family("SE.TRI")] == ["SE", "SE.ALE", "SE.AMO", "SE.TRI"]
        assert all(t.depth_level == 2 for t in snapshot.at_depth(2))
        assert [t.code for t in snapshot.children("CC")] == ["CC.MUS"]

    def test_orphan_child_is_not_valid(self):
        snapshot = TaxonomySnapshot.of([
            Tagset(code="NA.FAU", name="Fauna", parent_code="NA", depth_level=2, status=TagsetStatus.ACTIVE),
        ])
        assert "NA.FAU" in snapshot
        assert not snapshot.is_valid_tagset("NA.FAU")
