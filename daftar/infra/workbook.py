"""خواندن فایل Excel ورود فعالیت و ساخت فایل نمونه (قالب) برای معلم.

سرستون‌ها پس از یکسان‌سازی املایی مقایسه می‌شوند؛ بنابراین «نمره کمی»،
«نمره کمی (0-20)» و «نمره» همگی به ستون نمره نگاشت می‌شوند.
"""
from __future__ import annotations

import contextlib
import logging
import os
import re
import tempfile
from os import PathLike
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Sequence

import pandas as pd
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from daftar.core.common.errors import WorkbookFormatError, WorkbookMissingError
from daftar.core.common.normalization import cell_text, is_blank, normalize_label
from daftar.core.config_loader import ExcelOptions
from daftar.core.models import ImportRow
from daftar.core.roster import RosterSnapshot

__all__ = [
    "IMPORT_HEADERS",
    "GUIDE_SHEET",
    "LESSONS_SHEET",
    "SAMPLE_SHEET",
    "STUDENTS_SHEET",
    "read_activity_rows",
    "write_template",
]

logger = logging.getLogger(__name__)

IMPORT_HEADERS: tuple[str, ...] = (
    "ردیف",
    "نام دانش‌آموز",
    "کد ملی",
    "کلاس",
    "پایه",
    "درس",
    "نوع فعالیت",
    "عنوان فعالیت",
    "تاریخ",
    "نمره کمی (0-20)",
    "ارزیابی کیفی",
)

SAMPLE_SHEET = "نمونه ورود فعالیت"
STUDENTS_SHEET = "لیست دانش‌آموزان"
LESSONS_SHEET = "لیست دروس"
GUIDE_SHEET = "راهنما"

MISSING_FILE_MESSAGE = "فایلی انتخاب نشده است"
BAD_FORMAT_MESSAGE = "فایل خالی است یا فرمت آن صحیح نیست"

_RE_PARENTHETICAL = re.compile(r"\(.*?\)")

# normalized header → ImportRow field
_HEADER_ALIASES: Mapping[str, str] = {
    normalize_label(alias): field_name
    for field_name, aliases in {
        "student_name": ("نام دانش‌آموز", "نام دانش آموز", "نام و نام خانوادگی", "دانش‌آموز"),
        "national_id": ("کد ملی", "کدملی"),
        "class_name": ("کلاس",),
        "grade": ("پایه",),
        "lesson_name": ("درس", "نام درس"),
        "activity_type_label": ("نوع فعالیت",),
        "activity_title": ("عنوان فعالیت", "عنوان"),
        "date_text": ("تاریخ", "تاریخ فعالیت"),
        "score": ("نمره کمی", "نمره"),
        "qualitative": ("ارزیابی کیفی", "ارزیابی"),
    }.items()
    for alias in aliases
}

_REQUIRED_COLUMNS: tuple[str, ...] = ("student_name", "class_name", "lesson_name")


def _canonical_header(header: object) -> str | None:
    text = normalize_label(header)
    if not text:
        return None
    if text in _HEADER_ALIASES:
        return _HEADER_ALIASES[text]
    stripped = normalize_label(_RE_PARENTHETICAL.sub(" ", text))
    return _HEADER_ALIASES.get(stripped)


def _header_map(columns: Sequence[object]) -> Dict[object, str]:
    mapping: Dict[object, str] = {}
    taken: set[str] = set()
    for column in columns:
        canonical = _canonical_header(column)
        if canonical is None or canonical in taken:
            continue
        mapping[column] = canonical
        taken.add(canonical)
    return mapping


def _cell(value: object) -> object:
    return None if is_blank(value) else value


def read_activity_rows(path: Path | str | PathLike[str] | None) -> List[ImportRow]:
    """خواندن شیت اول فایل و تبدیل هر ردیف غیرخالی به :class:`ImportRow`.

    شمارهٔ ردیف برابر شمارهٔ سطر Excel است (سطر ۱ سرستون است).

    Raises:
        WorkbookMissingError: مسیر داده نشده یا فایل وجود ندارد.
        WorkbookFormatError: فایل قابل خواندن نیست، خالی است یا ستون‌های
            اصلی را ندارد.
    """

    if path is None or not str(path).strip():
        raise WorkbookMissingError(MISSING_FILE_MESSAGE)
    source = Path(path)
    if not source.is_file():
        raise WorkbookMissingError(MISSING_FILE_MESSAGE, detail=f"not found: {source}")
    try:
        with pd.ExcelFile(source) as workbook:
            if not workbook.sheet_names:
                raise WorkbookFormatError(BAD_FORMAT_MESSAGE, detail="no sheets")
            frame = workbook.parse(workbook.sheet_names[0], dtype=object)
    except WorkbookFormatError:
        raise
    except Exception as exc:
        raise WorkbookFormatError(BAD_FORMAT_MESSAGE, detail=f"{type(exc).__name__}: {exc}") from exc

    header_map = _header_map(list(frame.columns))
    missing = [name for name in _REQUIRED_COLUMNS if name not in header_map.values()]
    if frame.empty or missing:
        raise WorkbookFormatError(BAD_FORMAT_MESSAGE, detail=f"empty={frame.empty} missing={missing}")

    frame = frame.rename(columns=header_map)
    rows: List[ImportRow] = []
    for position, record in enumerate(frame.to_dict(orient="records")):
        values = {name: _cell(record.get(name)) for name in header_map.values()}
        if all(value is None for value in values.values()):
            continue
        rows.append(
            ImportRow(
                row_number=position + 2,
                student_name=cell_text(values.get("student_name")),
                national_id=cell_text(values.get("national_id")),
                class_name=cell_text(values.get("class_name")),
                grade=cell_text(values.get("grade")),
                lesson_name=cell_text(values.get("lesson_name")),
                activity_type_label=cell_text(values.get("activity_type_label")),
                activity_title=cell_text(values.get("activity_title")),
                date_text=cell_text(values.get("date_text")),
                score=values.get("score"),
                qualitative=values.get("qualitative"),
            )
        )
    if not rows:
        raise WorkbookFormatError(BAD_FORMAT_MESSAGE, detail="no data rows")
    logger.debug("read %d activity rows from %s", len(rows), source)
    return rows


# ---------------------------------------------------------------------------
# قالب
# ---------------------------------------------------------------------------

def _sample_frame() -> pd.DataFrame:
    sample = {
        "ردیف": 1,
        "نام دانش‌آموز": "نمونه: علی احمدی",
        "کد ملی": "1234567890",
        "کلاس": "نمونه: هفتم-الف",
        "پایه": "نمونه: هفتم",
        "درس": "نمونه: ریاضی",
        "نوع فعالیت": "آزمون میان‌ترم",
        "عنوان فعالیت": "نمونه: آزمون فصل اول",
        "تاریخ": "1404/01/07",
        "نمره کمی (0-20)": 18,
        "ارزیابی کیفی": "",
    }
    return pd.DataFrame([sample], columns=list(IMPORT_HEADERS))


def _students_frame(roster: RosterSnapshot) -> pd.DataFrame:
    records = []
    for class_id in sorted(roster.classes, key=lambda cid: roster.classes[cid].display_name):
        ref = roster.classes[class_id]
        for student in sorted(roster.students_in(class_id), key=lambda s: (s.name, s.id)):
            records.append(
                {
                    "نام دانش‌آموز": student.name,
                    "کد ملی": student.national_id or "-",
                    "کلاس": ref.display_name,
                    "پایه": ref.grade_level or "",
                }
            )
    frame = pd.DataFrame(records, columns=["نام دانش‌آموز", "کد ملی", "کلاس", "پایه"])
    frame.insert(0, "ردیف", range(1, len(frame) + 1))
    return frame


def _lessons_frame(roster: RosterSnapshot) -> pd.DataFrame:
    titles = sorted({lesson.title for lesson in roster.all_lessons() if lesson.title})
    return pd.DataFrame({"ردیف": range(1, len(titles) + 1), "نام درس": titles})


def _guide_frame(roster: RosterSnapshot) -> pd.DataFrame:
    lines = [
        "نحوه استفاده از فایل نمونه برای ورود اطلاعات فعالیت‌ها:",
        "",
        f"۱. در شیت '{SAMPLE_SHEET}'، ردیف اول یک نمونه است و هنگام ورود نادیده گرفته می‌شود.",
        "۲. برای هر فعالیت، یک ردیف جدید اضافه کنید.",
        f"۳. نام دانش‌آموزان و کلاس‌ها را مطابق شیت '{STUDENTS_SHEET}' وارد کنید.",
        f"۴. نام درس را دقیقاً مطابق شیت '{LESSONS_SHEET}' وارد کنید.",
        "۵. نوع فعالیت باید یکی از موارد زیر باشد:",
    ]
    lines.extend(f"   - {label}" for label in roster.activity_types.labels.values())
    lines.extend(
        [
            "۶. تاریخ را به فرمت شمسی YYYY/MM/DD وارد کنید (مثل: 1404/01/07)",
            "۷. نمره کمی باید عدد بین 0 تا 20 باشد؛ برای همهٔ انواع آزمون و تکلیف الزامی است.",
            "۸. ارزیابی کیفی فقط برای «فعالیت کلاسی» و «تکلیف کلاسی» پذیرفته می‌شود.",
            "۹. ورود دوبارهٔ همان دانش‌آموز، تاریخ و نوع فعالیت، رکورد قبلی را به‌روزرسانی می‌کند.",
        ]
    )
    return pd.DataFrame({"راهنمای استفاده": lines})


@contextlib.contextmanager
def _temporary_file_path(*, suffix: str = "", directory: Path | str | None = None) -> Iterator[Path]:
    fd, name = tempfile.mkstemp(suffix=suffix, dir=directory)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


def _format_sheets(writer: pd.ExcelWriter, frames: Mapping[str, pd.DataFrame], options: ExcelOptions) -> None:
    workbook = writer.book  # type: ignore[attr-defined]
    font = Font(name=options.font_name, size=options.font_size)
    header_font = Font(name=options.font_name, size=options.font_size, bold=True)
    for sheet_name, frame in frames.items():
        worksheet = workbook[sheet_name]
        if options.rtl:
            worksheet.sheet_view.rightToLeft = True
        worksheet.freeze_panes = "A2"
        for row in worksheet.iter_rows(min_row=1, max_row=worksheet.max_row):
            for cell in row:
                cell.font = header_font if cell.row == 1 else font
                cell.alignment = Alignment(horizontal="right")
        for idx, column in enumerate(frame.columns, start=1):
            lengths = [len(str(column))] + [len(cell_text(value)) for value in frame[column]]
            worksheet.column_dimensions[get_column_letter(idx)].width = min(max(lengths) + 4, 100)


def write_template(
    path: Path | str | PathLike[str],
    roster: RosterSnapshot,
    *,
    options: ExcelOptions | None = None,
) -> Path:
    """نوشتن اتمیک فایل نمونهٔ ورود با چهار شیت و چیدمان راست‌به‌چپ."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    opts = options or ExcelOptions()
    frames: Dict[str, pd.DataFrame] = {
        SAMPLE_SHEET: _sample_frame(),
        STUDENTS_SHEET: _students_frame(roster),
        LESSONS_SHEET: _lessons_frame(roster),
        GUIDE_SHEET: _guide_frame(roster),
    }
    with _temporary_file_path(suffix=".xlsx", directory=target.parent) as tmp_path:
        with pd.ExcelWriter(tmp_path, engine="openpyxl") as writer:
            for sheet_name, frame in frames.items():
                frame.to_excel(writer, sheet_name=sheet_name, index=False)
            _format_sheets(writer, frames, opts)
        os.replace(tmp_path, target)
    logger.info("import template written to %s", target)
    return target
