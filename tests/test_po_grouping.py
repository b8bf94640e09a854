"""
tests/test_po_grouping.py — Tests for services/po_grouping.py

Covers: phone cleaning and validation, email validation, vendor grouping
order and key resolution (primary id vs storage_ref), dropped POs with
unresolvable vendors, and per-group target edits.

Called by: pytest
Depends on: po_manager/services/po_grouping.py
"""

from types import SimpleNamespace

import pytest

from po_manager.models import Vendor
from po_manager.services.po_grouping import (
    EMAIL,
    EMAIL_INVALID,
    EMAIL_MISSING,
    PHONE,
    PHONE_INVALID,
    PHONE_MISSING,
    Selection,
    clean_phone,
    email_error,
    group_by_vendor,
    is_valid_email,
    is_valid_phone,
    phone_error,
    validate_groups,
)


def _po(po_id, vendor_ref):
    return SimpleNamespace(id=po_id, vendor_id=vendor_ref, po_number=f"PO-2024-{po_id:03d}")


def _lookup(*vendors):
    """Resolve by primary id first, then storage_ref, like EntityStore.find_vendor."""
    def find(ref):
        for v in vendors:
            if v.id and v.id == ref:
                return v
        for v in vendors:
            if v.storage_ref and v.storage_ref == ref:
                return v
        return None
    return find


ACME = Vendor(id="V001", storage_ref="sr-1", name="Acme", phone="+91 98765-43210", contact_email="a@acme.example")
BOLT = Vendor(id="V002", storage_ref="sr-2", name="Bolt", phone="12345", contact_email="")


# ── Phone / email ────────────────────────────────────────────────────


class TestContactValidation:
    def test_clean_phone(self):
        assert clean_phone("+91 98765-43210") == "919876543210"
        assert clean_phone("(415) 555-0100") == "4155550100"
        assert clean_phone(None) == ""

    def test_phone_validity(self):
        assert is_valid_phone("+91 98765-43210")
        assert not is_valid_phone("12345")
        assert phone_error("12345") == PHONE_INVALID
        assert phone_error("  ") == PHONE_MISSING
        assert phone_error(None) == PHONE_MISSING

    def test_only_one_leading_plus_stripped(self):
        assert clean_phone("++919876543210") == "+919876543210"

    @pytest.mark.parametrize("email", ["a@b.co", "orders@acme.example", "x.y+z@mail.example.org"])
    def test_valid_emails(self, email):
        assert is_valid_email(email)

    @pytest.mark.parametrize("email", ["plain", "a@b", "a b@c.com", "@c.com", "a@.com x"])
    def test_invalid_emails(self, email):
        assert email_error(email) == EMAIL_INVALID

    def test_missing_email(self):
        assert email_error("") == EMAIL_MISSING
        assert email_error(None) == EMAIL_MISSING


# ── Grouping ─────────────────────────────────────────────────────────


class TestGroupByVendor:
    def test_two_vendors_two_groups_in_selection_order(self):
        selection = Selection.of([_po(1, "V002"), _po(2, "V001"), _po(3, "V002")])
        groups = group_by_vendor(selection, _lookup(ACME, BOLT))
        assert [g.key for g in groups] == ["V002", "V001"]
        assert [po.id for po in groups[0].pos] == [1, 3]
        assert [po.id for po in groups[1].pos] == [2]
        assert groups[0].is_bulk and not groups[1].is_bulk

    def test_storage_ref_and_primary_id_share_a_group(self):
        selection = Selection.of([_po(1, "V001"), _po(2, "sr-1")])
        groups = group_by_vendor(selection, _lookup(ACME))
        assert len(groups) == 1
        assert groups[0].key == "V001"
        assert [po.id for po in groups[0].pos] == [1, 2]

    def test_key_falls_back_to_storage_ref(self):
        legacy = Vendor(id=None, storage_ref="sr-9", name="Legacy", phone="919876543210")
        groups = group_by_vendor(Selection.of([_po(1, "sr-9")]), _lookup(legacy))
        assert groups[0].key == "sr-9"

    def test_unresolvable_vendor_is_dropped(self):
        selection = Selection.of([_po(1, "V404"), _po(2, "V001")])
        groups = group_by_vendor(selection, _lookup(ACME))
        assert [po.id for g in groups for po in g.pos] == [2]

    def test_selection_deduplicates(self):
        po = _po(1, "V001")
        assert Selection.of([po, po]).ids == [1]

    def test_default_targets_per_channel(self):
        selection = Selection.of([_po(1, "V001")])
        assert group_by_vendor(selection, _lookup(ACME), PHONE)[0].target == "+91 98765-43210"
        assert group_by_vendor(selection, _lookup(ACME), EMAIL)[0].target == "a@acme.example"

    def test_unknown_channel(self):
        with pytest.raises(ValueError):
            group_by_vendor(Selection(), _lookup(ACME), "fax")

    def test_grouping_is_pure(self):
        selection = Selection.of([_po(1, "V001"), _po(2, "V002")])
        first = group_by_vendor(selection, _lookup(ACME, BOLT))
        second = group_by_vendor(selection, _lookup(ACME, BOLT))
        assert first == second


class TestValidation:
    def test_invalid_groups_reported(self):
        selection = Selection.of([_po(1, "V001"), _po(2, "V002")])
        groups = group_by_vendor(selection, _lookup(ACME, BOLT), PHONE)
        invalid = validate_groups(groups)
        assert [g.key for g in invalid] == ["V002"]
        assert invalid[0].error == PHONE_INVALID

    def test_with_target_fixes_group(self):
        groups = group_by_vendor(Selection.of([_po(2, "V002")]), _lookup(BOLT), EMAIL)
        assert groups[0].error == EMAIL_MISSING
        fixed = groups[0].with_target("  buyer@bolt.example ")
        assert fixed.valid
        assert fixed.target == "buyer@bolt.example"
        assert groups[0].valid is False

    def test_edited_sets_subject_and_message(self):
        group = group_by_vendor(Selection.of([_po(1, "V001")]), _lookup(ACME), EMAIL)[0]
        edited = group.edited(subject="Urgent", message="Hello")
        assert (edited.subject, edited.message, edited.target) == ("Urgent", "Hello", group.target)
