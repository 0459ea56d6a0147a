"""Spreadsheet export of the issues behind a report range."""

from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font

from services.aggregation import agents_all, organizations_all, person_days
from services.translator import translate

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ISSUE_HEADERS = ["Key", "Organization", "Assignee", "Created", "Updated", "Person-days logged"]


def _naive(moment):
    # Excel cells cannot hold timezone-aware datetimes
    return moment.replace(tzinfo=None) if moment else None


def _append_table(sheet, table):
    sheet.append([text for text, _ in table.columns])
    for row in table.rows:
        sheet.append(row)
    for cell in sheet[1]:
        cell.font = Font(bold=True)


def export_range(service, range_from, range_to, target: str = None) -> BytesIO:
    """Fetch the issues of a range and write them into an .xlsx workbook.

    The workbook has an Issues sheet with one row per issue, plus the
    organization and agent breakdowns of the same issues.

    Raises:
        InvalidRangeError: for a missing or malformed range.
        UpstreamFetchError: if the Jira search fails.
    """
    request = translate(range_from, range_to, [{"target": target or ""}])
    descriptor = request.descriptors[0]
    issues = service.fetch_issues(descriptor.jql)

    workbook = Workbook()
    details = workbook.active
    details.title = "Issues"
    details.append(ISSUE_HEADERS)
    for cell in details[1]:
        cell.font = Font(bold=True)
    for issue in issues:
        details.append([
            issue.key,
            issue.organization,
            issue.assignee.display_name,
            _naive(issue.created_at),
            _naive(issue.updated_at),
            person_days(issue.seconds_logged),
        ])

    _append_table(workbook.create_sheet("Organizations"), organizations_all(issues))
    _append_table(workbook.create_sheet("Agents"), agents_all(issues))

    binary = BytesIO()
    workbook.save(binary)
    binary.seek(0)
    return binary
