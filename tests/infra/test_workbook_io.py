"""تست خواندن فایل ورود و ساخت فایل نمونه."""
from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest
from openpyxl import load_workbook

from daftar.core.common.errors import WorkbookFormatError, WorkbookMissingError
from daftar.core.config_loader import ExcelOptions
from daftar.infra.workbook import (
    GUIDE_SHEET,
    LESSONS_SHEET,
    SAMPLE_SHEET,
    STUDENTS_SHEET,
    read_activity_rows,
    write_template,
)


def test_missing_path_is_reported():
    with pytest.raises(WorkbookMissingError) as excinfo:
        read_activity_rows(None)
    assert excinfo.value.message == "فایلی انتخاب نشده است"


def test_nonexistent_file(tmp_path: Path):
    with pytest.raises(WorkbookMissingError):
        read_activity_rows(tmp_path / "nope.xlsx")


def test_unreadable_file_is_format_error(tmp_path: Path):
    path = tmp_path / "broken.xlsx"
    path.write_text("این فایل اکسل نیست", encoding="utf-8")
    with pytest.raises(WorkbookFormatError) as excinfo:
        read_activity_rows(path)
    assert excinfo.value.message == "فایل خالی است یا فرمت آن صحیح نیست"


def test_missing_core_columns_is_format_error(tmp_path: Path):
    path = tmp_path / "columns.xlsx"
    pd.DataFrame({"نام": ["علی"], "نمره": [12]}).to_excel(path, index=False)
    with pytest.raises(WorkbookFormatError):
        read_activity_rows(path)


def test_header_only_sheet_is_format_error(write_workbook):
    with pytest.raises(WorkbookFormatError):
        read_activity_rows(write_workbook([]))


def test_rows_keep_excel_row_numbers_and_skip_blank_rows(write_workbook, make_row):
    blank = {"ردیف": 2}
    path = write_workbook([make_row(), blank, make_row(**{"نام دانش‌آموز": "زهرا محمدی", "تاریخ": "۱۴۰۴/۰۱/۰۸"})])
    rows = read_activity_rows(path)
    assert [row.row_number for row in rows] == [2, 4]
    first, second = rows
    assert first.student_name == "علی رضایی"
    assert first.class_name == "هفتم-الف"
    assert first.activity_type_label == "آزمون میان‌ترم"
    assert first.national_id == "0012345678"
    assert float(first.score) == 18.0
    assert first.qualitative is None
    assert second.date_text == "۱۴۰۴/۰۱/۰۸"


def test_headers_are_matched_after_normalization(tmp_path: Path):
    path = tmp_path / "aliases.xlsx"
    pd.DataFrame(
        {
            "نام دانش آموز": ["علی رضایی"],
            "كلاس": ["هفتم-الف"],
            "نام درس": ["ریاضی"],
            "نوع فعالیت": ["فعالیت کلاسی"],
            "تاریخ فعالیت": ["1404/01/07"],
            "نمره کمی (۰ تا ۲۰)": [17],
        }
    ).to_excel(path, index=False)
    (row,) = read_activity_rows(path)
    assert row.class_name == "هفتم-الف"
    assert row.lesson_name == "ریاضی"
    assert row.date_text == "1404/01/07"
    assert float(row.score) == 17.0


def test_template_has_four_rtl_sheets_scoped_to_teacher(school_db, tmp_path: Path):
    roster = school_db.load_roster("t1", "s1")
    target = write_template(tmp_path / "out" / "template.xlsx", roster, options=ExcelOptions(font_size=9))

    workbook = load_workbook(target)
    try:
        assert workbook.sheetnames == [SAMPLE_SHEET, STUDENTS_SHEET, LESSONS_SHEET, GUIDE_SHEET]
        for sheet in workbook.worksheets:
            assert sheet.sheet_view.rightToLeft
        students = [cell.value for cell in workbook[STUDENTS_SHEET]["B"][1:]]
        assert students == ["زهرا محمدی", "علی رضایی", "علی رضایی‌نژاد"]
        lessons = [cell.value for cell in workbook[LESSONS_SHEET]["B"][1:]]
        assert lessons == ["ریاضی", "علوم"]
        assert workbook[SAMPLE_SHEET]["A1"].font.bold
        assert workbook[SAMPLE_SHEET]["B2"].font.size == 9
    finally:
        workbook.close()
    assert not [p for p in target.parent.iterdir() if p.name != "template.xlsx"]


def test_untouched_template_reads_back_as_sample_only(school_db, tmp_path: Path):
    target = write_template(tmp_path / "template.xlsx", school_db.load_roster("t1", "s1"))
    (row,) = read_activity_rows(target)
    assert row.student_name.startswith("نمونه")
