from __future__ import annotations

from dataclasses import replace

import pytest

from entity_editor.errors import NonEditableColumnError, PermissionDeniedError
from entity_editor.ledger.edit_ledger import EditLedger
from entity_editor.models.ledger_entry import EditStatus
from entity_editor.models.schema import EntityPermissions


@pytest.fixture()
def ledger(schema) -> EditLedger:
    return EditLedger(schema)


def test_first_edit_creates_pending_entry(ledger):
    entry = ledger.set_pending_edit("r1", "status", "Inactive", 4)
    assert entry.status is EditStatus.PENDING
    assert entry.base_version == 4
    assert entry.patch == {"status": "Inactive"}
    assert ledger.has_row_changes("r1")
    assert ledger.has_pending_changes()


def test_merge_preserves_earlier_fields_and_version(ledger):
    ledger.set_pending_edit("r1", "status", "Inactive", 4)
    entry = ledger.set_pending_edit("r1", "priority", 9, 5)
    assert entry.patch == {"status": "Inactive", "priority": 9}
    assert entry.base_version == 4


def test_rows_are_independent(ledger):
    ledger.set_pending_edit("r1", "status", "Inactive", 1)
    ledger.set_pending_edit("r2", "priority", 2, 3)
    ledger.clear_row_edits("r1")
    assert ledger.get_row_edits("r2") == {"priority": 2}
    assert ledger.list_pending_row_ids() == {"r2"}


def test_non_editable_column_rejected(ledger):
    with pytest.raises(NonEditableColumnError):
        ledger.set_pending_edit("r1", "id", "x", 1)
    assert not ledger.has_row_changes("r1")


def test_unknown_column_rejected(ledger):
    with pytest.raises(NonEditableColumnError, match="unknown column"):
        ledger.set_pending_edit("r1", "colour", "red", 1)


def test_edit_permission_required(schema):
    read_only = replace(schema, permissions=EntityPermissions(can_view=True, can_edit=False))
    with pytest.raises(PermissionDeniedError):
        EditLedger(read_only).set_pending_edit("r1", "status", "Active", 1)


def test_get_row_edits_returns_copy(ledger):
    ledger.set_pending_edit("r1", "status", "Inactive", 1)
    edits = ledger.get_row_edits("r1")
    edits["status"] = "Active"
    assert ledger.get_row_edits("r1") == {"status": "Inactive"}
    assert ledger.get_row_edits("missing") is None


def test_clear_row_edits_idempotent(ledger):
    ledger.set_pending_edit("r1", "status", "Inactive", 1)
    ledger.clear_row_edits("r1")
    ledger.clear_row_edits("r1")
    assert not ledger.has_row_changes("r1")
    assert len(ledger) == 0


def test_clear_all_and_switch_schema(ledger, schema):
    ledger.set_pending_edit("r1", "status", "Inactive", 1)
    ledger.set_pending_edit("r2", "status", "Active", 1)
    other = replace(schema, entity_id="OTHER")
    ledger.switch_schema(other)
    assert ledger.schema is other
    assert not ledger.has_pending_changes()


def test_status_lifecycle(ledger):
    ledger.set_pending_edit("r1", "status", "Inactive", 1)
    ledger.update_status("r1", EditStatus.SAVING)
    assert ledger.get_entry("r1").status is EditStatus.SAVING
    ledger.update_status("r1", EditStatus.ERROR, "boom")
    entry = ledger.get_entry("r1")
    assert entry.status is EditStatus.ERROR
    assert entry.error == "boom"
    ledger.update_status("r1", EditStatus.SAVED)
    assert ledger.get_entry("r1") is None


def test_error_entry_stays_editable(ledger):
    ledger.set_pending_edit("r1", "status", "Inactive", 1)
    ledger.update_status("r1", EditStatus.ERROR, "conflict")
    entry = ledger.set_pending_edit("r1", "priority", 4, 1)
    assert entry.status is EditStatus.PENDING
    assert entry.error is None
    assert entry.patch == {"status": "Inactive", "priority": 4}


def test_update_status_without_entry_is_noop(ledger):
    ledger.update_status("ghost", EditStatus.ERROR, "x")
    assert ledger.get_entry("ghost") is None
