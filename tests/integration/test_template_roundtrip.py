from __future__ import annotations

from pathlib import Path

from tutor_import.db.store import DryRunStore
from tutor_import.fields.catalog import FIELD_CATALOG
from tutor_import.fields.template import write_template
from tutor_import.services.pipeline import preview, run_import

from conftest import FIXED_TODAY


def test_filled_template_imports_cleanly(tmp_path: Path, reference_cache):
    template = write_template(tmp_path / "template.csv")
    result = preview(template, reference_cache, today=FIXED_TODAY)

    assert result.unmapped_headers == []
    assert set(result.header_map) == {f.name for f in FIELD_CATALOG}
    assert "row 1: template marker row skipped" in result.warnings
    assert [r.row_number for r in result.records] == [2]

    record = result.records[0]
    assert record.is_valid, record.errors
    assert record.mapped_fields["email"] == "budi.santoso@example.com"
    assert record.mapped_fields["provinsiDomisiliId"] == "p-jkt"
    assert record.mapped_fields["kotaKabupatenDomisiliId"] == "c-jaksel"
    assert record.mapped_fields["namaBankId"] == "b-bca"
    assert record.mapped_fields["selectedProgramIds"] == ["s-mtk", "s-fis"]
    assert record.mapped_fields["ipk"] == 3.65

    store = DryRunStore()
    report = run_import(result, store, show_progress=False).report
    assert (report.success_count, report.partial_count, report.error_count) == (1, 0, 0)
    identity = store.rows("identity")[0]
    assert identity["email"] == "budi.santoso@example.com"
    assert identity["primary_role_id"] == "role-tutor"
    assert "password_hash" not in identity
