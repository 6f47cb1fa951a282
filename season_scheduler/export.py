"""
Export functionality for writing schedules to Excel and CSV.
"""

import pandas as pd
from typing import List, Optional

from .config import SchedulerConfig
from .models import DiagnosticsReport, RepeatDefect, Schedule, SeasonResult


def write_excel(result: SeasonResult, config: SchedulerConfig, output_path: str) -> None:
    """
    Write schedule to Excel file with summary sheets.

    Args:
        result: Successful pipeline result
        config: Scheduler configuration
        output_path: Path to output Excel file
    """
    if result.schedule is None:
        raise ValueError("Cannot export a result without a schedule")

    print(f"Writing schedule to {output_path}")

    with pd.ExcelWriter(output_path, engine='xlsxwriter') as writer:
        # Write main schedule
        _write_final_schedule(result.schedule, config, writer)

        # Write summary sheets if requested
        if config.excel.include_summaries:
            _write_team_grid(result.schedule, config, writer)
            _write_defects(result.schedule.defects, config, writer)
            if result.diagnostics is not None:
                _write_diagnostics(result.diagnostics, config, writer)

    print(f"Schedule exported successfully to {output_path}")


def write_csv(schedule: Schedule, output_path: str) -> None:
    """Write the game list (one row per game) to a CSV file."""
    schedule.to_dataframe().to_csv(output_path, index=False)


def build_team_grid(schedule: Schedule, teams: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Team-by-slot grid: the opponent at home, ``@OPP`` on the road, ``BYE`` when idle.

    Args:
        schedule: Schedule to pivot
        teams: Row order (teams found in the schedule by default)

    Returns:
        pd.DataFrame: One row per team, one column per slot
    """
    teams = teams or schedule.get_teams()

    rows = []
    for team in teams:
        row = {'Team': team}
        row.update({f"W{w}": 'BYE' for w in range(1, schedule.num_slots + 1)})
        for assignment in schedule.get_team_schedule(team):
            if assignment.host == team:
                row[f"W{assignment.slot}"] = assignment.visitor
            else:
                row[f"W{assignment.slot}"] = f"@{assignment.host}"
        rows.append(row)
    return pd.DataFrame(rows, columns=['Team'] + [f"W{w}" for w in range(1, schedule.num_slots + 1)])


def _write_final_schedule(schedule: Schedule, config: SchedulerConfig, writer) -> None:
    """Write the main schedule sheet."""
    df = schedule.to_dataframe()

    if df.empty:
        print("Warning: No games to export")
        return

    sheet_name = config.excel.sheets.get('final_name', 'Schedule')
    df.to_excel(writer, sheet_name=sheet_name, index=False)

    worksheet = writer.sheets[sheet_name]
    workbook = writer.book
    _format_schedule_worksheet(worksheet, workbook, df)


def _write_team_grid(schedule: Schedule, config: SchedulerConfig, writer) -> None:
    """Write the team-by-slot grid."""
    sheet_name = config.excel.sheets.get('team_grid', 'Team Grid')

    df = build_team_grid(schedule, config.get_all_teams())
    df.to_excel(writer, sheet_name=sheet_name, index=False)

    worksheet = writer.sheets[sheet_name]
    workbook = writer.book
    worksheet.set_column(0, 0, 10)
    worksheet.set_column(1, len(df.columns), 7)

    # Highlight byes
    worksheet.conditional_format(1, 1, len(df), len(df.columns) - 1, {
        'type': 'cell',
        'criteria': '==',
        'value': '"BYE"',
        'format': workbook.add_format({'bg_color': '#FFEB9C'})
    })


def _write_defects(defects: List[RepeatDefect], config: SchedulerConfig, writer) -> None:
    """Write the unfixable back-to-back rematches."""
    sheet_name = config.excel.sheets.get('defects', 'Defects')

    rows = [
        {
            'Host': d.first.host,
            'Visitor': d.first.visitor,
            'First Slot': d.first.slot,
            'Second Slot': d.second.slot,
            'Reason': d.reason,
        }
        for d in defects
    ]
    df = pd.DataFrame(rows, columns=['Host', 'Visitor', 'First Slot', 'Second Slot', 'Reason'])
    df.to_excel(writer, sheet_name=sheet_name, index=False)


def _write_diagnostics(report: DiagnosticsReport, config: SchedulerConfig, writer) -> None:
    """Write diagnostics counts, issues and per-team counts."""
    sheet_name = config.excel.sheets.get('diagnostics', 'Diagnostics')

    df = report.to_dataframe()
    df.to_excel(writer, sheet_name=sheet_name, index=False)

    if report.participant_counts:
        teams_df = pd.DataFrame([
            {'Team': team, **counts} for team, counts in report.participant_counts.items()
        ])
        teams_df.to_excel(writer, sheet_name=sheet_name, startrow=len(df) + 3, index=False)


def _format_schedule_worksheet(worksheet, workbook, df: pd.DataFrame) -> None:
    """Apply formatting to the schedule worksheet."""
    header_format = workbook.add_format({
        'bold': True,
        'text_wrap': True,
        'valign': 'top',
        'fg_color': '#D7E4BC',
        'border': 1
    })

    column_widths = {
        'Slot': 6,
        'Host': 12,
        'Visitor': 12,
        'Category': 12,
        'Protected': 10,
    }

    for i, col in enumerate(df.columns):
        worksheet.set_column(i, i, column_widths.get(col, 12))

    for col_num, value in enumerate(df.columns.values):
        worksheet.write(0, col_num, value, header_format)

    # Shade protected games
    if 'Protected' in df.columns:
        protected_col = df.columns.get_loc('Protected')
        worksheet.conditional_format(1, 0, len(df), len(df.columns) - 1, {
            'type': 'formula',
            'criteria': f'=${chr(ord("A") + protected_col)}2=TRUE',
            'format': workbook.add_format({'bg_color': '#DDEBF7'})
        })
